"""Formhand Cookbook Executor — replay of a previously learned page fill.

A cookbook page entry records, per action, the field as it was seen, a DOM
replay descriptor (selector + value template) and optionally a coordinate GUI
descriptor.  Replay resolves ``{{key}}`` templates against the live user data
and tries DOM first (free, verified by readback), then the GUI descriptor
through the automation driver.

Per-action health gates the attempt; a run of consecutive failures aborts the
replay.  Entries are produced by a learning process elsewhere and only read
here.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Any

from formhand.engine.action_executor import ActionExecutor
from formhand.engine.dom import PageDom
from formhand.engine.protocols import (
    AutomationDriver,
    GuiCommand,
    LogEventCallback,
    is_fatal_browser_error,
    safe_log_event,
)
from formhand.engine.types import FieldModel, PageModel, VerificationResult
from formhand.engine.verification import VerificationEngine
from formhand.models import (
    COOKBOOK_MAX_FAILURE_RATIO,
    COOKBOOK_MIN_ATTEMPTED_RATIO,
    DEFAULT_DROPDOWN_OPEN_MS,
    DEFAULT_MAX_CONSECUTIVE_FAILURES,
    DEFAULT_MIN_ACTION_HEALTH,
    DEFAULT_SETTLE_MS,
    DEFAULT_TYPING_DELAY_MS,
    GUI_REPLAY_COST_USD,
)

logger = logging.getLogger("formhand.engine.cookbook")

_TEMPLATE_RE = re.compile(r"^\{\{(.+)\}\}$")


def _as_health(value: Any, default: float) -> float:
    """Health score from a recorded entry; null means not yet scored."""
    return default if value is None else float(value)


@dataclasses.dataclass
class CookbookDomAction:
    selector: str
    value_template: str
    action: str = "fill"  # fill | click | select | check | uncheck | upload | clear_and_fill

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CookbookDomAction:
        return cls(
            selector=str(data.get("selector", "")),
            value_template=str(data.get("value_template", data.get("valueTemplate", ""))),
            action=str(data.get("action", "fill")),
        )


@dataclasses.dataclass
class CookbookGuiAction:
    variant: str  # click | type | scroll
    x: float = 0.0
    y: float = 0.0
    content: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CookbookGuiAction:
        return cls(
            variant=str(data.get("variant", "click")),
            x=float(data.get("x", 0) or 0),
            y=float(data.get("y", 0) or 0),
            content=data.get("content"),
        )


@dataclasses.dataclass
class CookbookAction:
    """One recorded step: the field snapshot plus its DOM and GUI replays."""

    field: FieldModel
    dom_action: CookbookDomAction
    gui_action: CookbookGuiAction | None = None
    executed_by: str = "dom"
    health_score: float = 1.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CookbookAction:
        snapshot = dict(data.get("field_snapshot", data.get("fieldSnapshot", {})))
        # A recorded snapshot describes a field to be filled, not its old state
        snapshot.update(current_value="", is_empty=True, is_visible=True, is_disabled=False)
        gui = data.get("gui_action", data.get("guiAction"))
        return cls(
            field=FieldModel.from_dict(snapshot),
            dom_action=CookbookDomAction.from_dict(data.get("dom_action", data.get("domAction", {}))),
            gui_action=CookbookGuiAction.from_dict(gui) if gui else None,
            executed_by=str(data.get("executed_by", data.get("executedBy", "dom"))),
            health_score=_as_health(data.get("health_score", data.get("healthScore")), 1.0),
        )


@dataclasses.dataclass
class CookbookPageEntry:
    """Learned actions for one page, keyed by its fingerprint."""

    page_fingerprint: str
    url_pattern: str
    platform: str
    actions: list[CookbookAction]
    health_score: float = 1.0
    per_action_health: list[float] = dataclasses.field(default_factory=list)
    success_count: int = 0
    failure_count: int = 0
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CookbookPageEntry:
        def get(snake: str, camel: str, default: Any = None) -> Any:
            return data.get(snake, data.get(camel, default))

        health_score = _as_health(get("health_score", "healthScore"), 1.0)
        return cls(
            page_fingerprint=str(get("page_fingerprint", "pageFingerprint", "")),
            url_pattern=str(get("url_pattern", "urlPattern", "")),
            platform=str(data.get("platform", "generic")),
            actions=[CookbookAction.from_dict(a) for a in data.get("actions", [])],
            health_score=health_score,
            per_action_health=[
                _as_health(h, health_score) for h in get("per_action_health", "perActionHealth") or []
            ],
            success_count=int(get("success_count", "successCount", 0)),
            failure_count=int(get("failure_count", "failureCount", 0)),
            updated_at=str(get("updated_at", "updatedAt", "")),
        )

    def action_health(self, index: int) -> float:
        """Per-action health, falling back to the page's aggregate score."""
        if index < len(self.per_action_health):
            return self.per_action_health[index]
        return self.health_score


@dataclasses.dataclass
class CookbookResult:
    """Aggregate outcome of one replay."""

    success: bool = False
    actions_total: int = 0
    actions_attempted: int = 0
    actions_succeeded: int = 0
    actions_failed: int = 0
    actions_skipped: int = 0
    cost_incurred: float = 0.0
    failed_at: int | None = None
    error: str | None = None


@dataclasses.dataclass
class ReplayStep:
    """Planned handling of one action, from ``CookbookExecutor.preview``."""

    index: int
    label: str
    health: float
    value: str | None
    skip_reason: str | None = None


def resolve_value_template(template: str, user_data: dict[str, str]) -> str | None:
    """Resolve ``{{key}}`` against user data.

    Exact key first, then case-insensitive.  None when the key is missing.
    A template not of the ``{{key}}`` form is a literal value.
    """
    match = _TEMPLATE_RE.match(template)
    if match is None:
        return template

    key = match.group(1)
    if key in user_data:
        return user_data[key]

    lower_key = key.lower()
    for k, v in user_data.items():
        if k.lower() == lower_key:
            return v
    return None


def page_fingerprint(page_model: PageModel) -> str:
    """Cookbook key for a page: URL plus its field selectors."""
    selectors = ",".join(f.selector for f in page_model.fields)
    return f"{page_model.url}::{selectors}"[:256]


class CookbookExecutor:
    """Replays a CookbookPageEntry against a live page."""

    def __init__(
        self,
        driver: AutomationDriver | None = None,
        *,
        min_action_health: float = DEFAULT_MIN_ACTION_HEALTH,
        max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
        attempted_ratio_threshold: float = COOKBOOK_MIN_ATTEMPTED_RATIO,
        failure_ratio_threshold: float = COOKBOOK_MAX_FAILURE_RATIO,
        settle_ms: int = DEFAULT_SETTLE_MS,
        dropdown_open_ms: int = DEFAULT_DROPDOWN_OPEN_MS,
        typing_delay_ms: int = DEFAULT_TYPING_DELAY_MS,
        log_event: LogEventCallback | None = None,
    ) -> None:
        self._driver = driver
        self._min_action_health = min_action_health
        self._max_consecutive_failures = max_consecutive_failures
        self._attempted_ratio = attempted_ratio_threshold
        self._failure_ratio = failure_ratio_threshold
        self._settle_ms = settle_ms
        self._dropdown_open_ms = dropdown_open_ms
        self._typing_delay_ms = typing_delay_ms
        self._log_event = log_event

    @property
    def gui_enabled(self) -> bool:
        return self._driver is not None and not getattr(self._driver, "is_stub", False)

    def preview(self, entry: CookbookPageEntry, user_data: dict[str, str]) -> list[ReplayStep]:
        """Which actions would be attempted or skipped, without touching a page."""
        steps: list[ReplayStep] = []
        for index, action in enumerate(entry.actions):
            health = entry.action_health(index)
            value = resolve_value_template(action.dom_action.value_template, user_data)
            if health < self._min_action_health:
                reason = "below_threshold"
            elif value is None:
                reason = "unresolvable_template"
            elif not value.strip():
                reason = "empty_value"
            else:
                reason = None
            steps.append(ReplayStep(index, action.field.label, health, value, reason))
        return steps

    def execute(self, dom: PageDom, entry: CookbookPageEntry, user_data: dict[str, str]) -> CookbookResult:
        result = CookbookResult(actions_total=len(entry.actions))
        executor = ActionExecutor(
            dom,
            settle_ms=self._settle_ms,
            dropdown_open_ms=self._dropdown_open_ms,
            typing_delay_ms=self._typing_delay_ms,
            log_event=self._log_event,
        )
        verifier = VerificationEngine(dom)
        consecutive_failures = 0

        for index, action in enumerate(entry.actions):
            label = action.field.label
            health = entry.action_health(index)

            if health < self._min_action_health:
                result.actions_skipped += 1
                logger.debug("Cookbook action %d (%s) skipped: health %.2f", index, label, health)
                safe_log_event(
                    self._log_event,
                    "cookbook_action_skipped",
                    {"index": index, "label": label, "health": health, "reason": "below_threshold"},
                )
                continue

            value = resolve_value_template(action.dom_action.value_template, user_data)
            if value is None:
                result.actions_skipped += 1
                logger.debug("Cookbook action %d (%s) skipped: unresolvable template", index, label)
                safe_log_event(
                    self._log_event,
                    "cookbook_action_skipped",
                    {
                        "index": index,
                        "label": label,
                        "reason": "unresolvable_template",
                        "template": action.dom_action.value_template,
                    },
                )
                continue

            # Empty values are never replayed
            if not value.strip():
                result.actions_skipped += 1
                logger.debug("Cookbook action %d (%s) skipped: empty value", index, label)
                safe_log_event(
                    self._log_event,
                    "cookbook_action_skipped",
                    {"index": index, "label": label, "reason": "empty_value"},
                )
                continue

            result.actions_attempted += 1

            if self._try_dom_replay(executor, verifier, action, value):
                result.actions_succeeded += 1
                consecutive_failures = 0
                safe_log_event(
                    self._log_event,
                    "cookbook_action_success",
                    {"index": index, "label": label, "strategy": "dom"},
                )
                continue

            if action.gui_action is not None and self.gui_enabled:
                if self._try_gui_replay(verifier, action, value):
                    result.actions_succeeded += 1
                    result.cost_incurred += GUI_REPLAY_COST_USD
                    consecutive_failures = 0
                    safe_log_event(
                        self._log_event,
                        "cookbook_action_success",
                        {"index": index, "label": label, "strategy": "gui"},
                    )
                    continue

            result.actions_failed += 1
            consecutive_failures += 1
            logger.warning("Cookbook action %d (%s) failed", index, label)
            safe_log_event(self._log_event, "cookbook_action_failed", {"index": index, "label": label})

            if consecutive_failures >= self._max_consecutive_failures:
                result.failed_at = index
                result.error = f"{self._max_consecutive_failures} consecutive failures at action {index}"
                logger.warning("Cookbook replay aborted: %s", result.error)
                safe_log_event(
                    self._log_event,
                    "cookbook_aborted",
                    {"index": index, "consecutive_failures": consecutive_failures},
                )
                return result

        result.success = self._is_success(result)
        logger.info(
            "Cookbook replay %s: %d/%d attempted, %d succeeded, %d failed, %d skipped",
            "succeeded" if result.success else "failed",
            result.actions_attempted,
            result.actions_total,
            result.actions_succeeded,
            result.actions_failed,
            result.actions_skipped,
        )
        return result

    def _is_success(self, result: CookbookResult) -> bool:
        if result.actions_total == 0:
            return False
        attempted_ratio = result.actions_attempted / result.actions_total
        return (
            attempted_ratio > self._attempted_ratio
            and result.actions_succeeded > 0
            and result.actions_failed <= result.actions_succeeded * self._failure_ratio
        )

    def _replay_field(self, action: CookbookAction) -> FieldModel:
        """The snapshot field, pointed at the selector recorded for replay."""
        if action.dom_action.selector and action.dom_action.selector != action.field.selector:
            return dataclasses.replace(action.field, selector=action.dom_action.selector)
        return action.field

    def _try_dom_replay(
        self,
        executor: ActionExecutor,
        verifier: VerificationEngine,
        action: CookbookAction,
        value: str,
    ) -> bool:
        field = self._replay_field(action)
        try:
            tier0 = executor.run_tier0(field, value)
            if not tier0.outcome.succeeded:
                logger.debug("DOM replay of %s: %s", field.label, tier0.error)
                return False
            verification = verifier.verify(field, value)
        except Exception as exc:
            if is_fatal_browser_error(exc):
                raise
            logger.debug("DOM replay of %s threw: %s", field.label, exc)
            return False
        return verification.passed

    def _try_gui_replay(self, verifier: VerificationEngine, action: CookbookAction, value: str) -> bool:
        gui = action.gui_action
        if gui is None or self._driver is None:
            return False
        label = action.field.label
        if gui.variant not in ("click", "type"):
            logger.debug("GUI replay of %s: variant %r is not replayable", label, gui.variant)
            return False

        try:
            click = self._driver.exec_gui(GuiCommand(variant="click", target=label, x=gui.x, y=gui.y))
            if not click.success:
                return False
            if gui.variant != "type":
                return True
            typed = self._driver.exec_gui(GuiCommand(variant="type", target=label, x=gui.x, y=gui.y, content=value))
            if not typed.success:
                return False
            verification: VerificationResult = verifier.verify(self._replay_field(action), value)
        except Exception as exc:
            if is_fatal_browser_error(exc):
                raise
            logger.debug("GUI replay of %s threw: %s", label, exc)
            return False
        return verification.passed
