"""Formhand Action Executor — tier-0 DOM fills with tier-3 LLM fallback.

Executes one ActionItem against the live page.  Tier-0 actions are routed
through a fixed dispatch table keyed by FieldType; each routine returns a
FillOutcome instead of raising, so escalation policy can tell *which* failure
happened.  When tier 0 fails (or the action was planned on tier 3) the
automation driver's ``act()`` is given an instruction scoped to the single
field.

Fatal browser errors (closed page/context/browser) are never caught here.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Callable

from formhand.engine.dom import PageDom
from formhand.engine.protocols import (
    ActResult,
    AutomationDriver,
    LogEventCallback,
    StubDriver,
    is_fatal_browser_error,
    safe_log_event,
)
from formhand.engine.types import (
    ActionItem,
    ExecutionResult,
    FieldModel,
    FieldType,
    FillOutcome,
    Tier,
)
from formhand.models import DEFAULT_DROPDOWN_OPEN_MS, DEFAULT_SETTLE_MS, DEFAULT_TYPING_DELAY_MS

logger = logging.getLogger("formhand.engine.action_executor")

STOP_WORDS = frozenset({"of", "and", "in", "the", "a", "an", "for", "to", "with", "or", "at", "by"})

# Short pause after a popup option click / close
_POPUP_CLOSE_MS = 200

FillRoutine = Callable[[FieldModel, str], FillOutcome]


@dataclasses.dataclass
class Tier0Result:
    """Outcome of the tier-0 attempt plus the diagnostic kept for the caller."""

    outcome: FillOutcome
    error: str | None = None


# ---------------------------------------------------------------------------
# Matching helpers (pure)
# ---------------------------------------------------------------------------


def generate_fallback_terms(original: str) -> list[str]:
    """Progressively shorter search terms for a multi-word dropdown value.

    "Computer Science and Engineering" ->
    ["Computer Science", "Computer", "Engineering", "Science"]

    Order: half-length word prefix (only for values of 3+ words), the first
    significant word, then the remaining significant words longest first.
    Stop words and single-character words are never used on their own.
    """
    words = [w for w in original.split() if len(w) > 1]
    meaningful = [w for w in words if w.lower() not in STOP_WORDS]

    if len(meaningful) <= 1 and len(words) <= 1:
        return []

    terms: list[str] = []
    if len(words) > 2:
        prefix = " ".join(words[: (len(words) + 1) // 2])
        if prefix != original:
            terms.append(prefix)

    if meaningful:
        if meaningful[0] not in terms:
            terms.append(meaningful[0])

    for word in sorted(meaningful[1:], key=len, reverse=True):
        if word not in terms:
            terms.append(word)

    return terms


def score_select_options(options: list[tuple[str, str]], value: str) -> int | None:
    """Index of the best <option> for ``value``, or None if none qualifies.

    Scores: exact text/value 3 (stops the scan), text starts-with 2, text
    contains 1, value contains option text 0.  The first option reaching a
    score wins ties.  An empty value matches nothing.
    """
    target = value.strip().lower()
    if not target:
        return None
    best_index: int | None = None
    best_score = -1

    for index, (text, opt_value) in enumerate(options):
        opt_text = text.strip().lower()
        opt_val = opt_value.strip().lower()

        if opt_text == target or opt_val == target:
            return index
        if opt_text.startswith(target) and best_score < 2:
            best_index, best_score = index, 2
        if target in opt_text and best_score < 1:
            best_index, best_score = index, 1
        if len(opt_text) > 2 and opt_text in target and best_score < 0:
            best_index, best_score = index, 0

    return best_index


def match_choice_label(labels: list[str], value: str) -> int | None:
    """Index of the radio label matching ``value``.

    Exact, then starts-with (either direction), then substring (either
    direction).  Blank labels only ever match exactly; an empty value matches
    nothing.
    """
    target = value.strip().lower()
    if not target:
        return None
    normalized = [label.strip().lower() for label in labels]

    for index, label in enumerate(normalized):
        if label == target:
            return index
    for index, label in enumerate(normalized):
        if label and (label.startswith(target) or target.startswith(label)):
            return index
    for index, label in enumerate(normalized):
        if label and (target in label or label in target):
            return index
    return None


def match_popup_option(texts: list[str], target: str) -> int | None:
    """Index of the popup option matching ``target``.

    Pass 1: option text equals, starts with or contains the target.
    Pass 2: target contains the option text (options longer than 2 chars).
    """
    wanted = target.strip().lower()
    if not wanted:
        return None
    normalized = [t.strip().lower() for t in texts]

    for index, text in enumerate(normalized):
        if text == wanted or text.startswith(wanted) or wanted in text:
            return index
    for index, text in enumerate(normalized):
        if len(text) > 2 and text in wanted:
            return index
    return None


def build_agent_instruction(field: FieldModel, value: str) -> str:
    """Instruction for tier 3, scoped to exactly one field."""
    label = field.label or field.aria_label or field.placeholder or field.selector
    if value:
        return (
            f'Fill ONLY the "{label}" field with "{value}". '
            "Click the field, type/select the value, then click whitespace to deselect. "
            "Do NOT interact with any other fields. Do NOT scroll. Do NOT navigate."
        )
    return (
        f'Look at the "{label}" field and fill it with the most appropriate value based on what you can see. '
        "Do NOT interact with any other fields. Do NOT scroll. Do NOT navigate."
    )


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class ActionExecutor:
    """Runs ActionItems: tier-0 DOM routine first, tier-3 driver on failure."""

    def __init__(
        self,
        dom: PageDom,
        driver: AutomationDriver | None = None,
        *,
        settle_ms: int = DEFAULT_SETTLE_MS,
        dropdown_open_ms: int = DEFAULT_DROPDOWN_OPEN_MS,
        typing_delay_ms: int = DEFAULT_TYPING_DELAY_MS,
        log_event: LogEventCallback | None = None,
    ) -> None:
        self._dom = dom
        self._driver: AutomationDriver = driver if driver is not None else StubDriver()
        self._settle_ms = settle_ms
        self._dropdown_open_ms = dropdown_open_ms
        self._typing_delay_ms = typing_delay_ms
        self._log_event = log_event

        # One entry per FieldType; None means no tier-0 routine exists.
        self._routines: dict[FieldType, FillRoutine | None] = {
            FieldType.TEXT: self.fill_text,
            FieldType.EMAIL: self.fill_text,
            FieldType.PHONE: self.fill_text,
            FieldType.NUMBER: self.fill_text,
            FieldType.TEXTAREA: self.fill_text,
            FieldType.CONTENTEDITABLE: self.fill_text,
            FieldType.DATE: self.fill_date,
            FieldType.SELECT: self.fill_select,
            FieldType.CUSTOM_DROPDOWN: self.fill_custom_dropdown,
            FieldType.TYPEAHEAD: self.fill_typeahead,
            FieldType.RADIO: self.fill_radio,
            FieldType.ARIA_RADIO: self.fill_aria_radio,
            FieldType.CHECKBOX: self.check_checkbox,
            FieldType.PASSWORD: None,
            FieldType.FILE: None,
            FieldType.UPLOAD_BUTTON: None,
            FieldType.UNKNOWN: None,
        }

    @property
    def driver(self) -> AutomationDriver:
        return self._driver

    def routine_for(self, field_type: FieldType) -> FillRoutine | None:
        return self._routines.get(field_type)

    def execute(self, action: ActionItem) -> ExecutionResult:
        """Execute one action.  Never raises except for fatal browser errors."""
        start = time.monotonic()
        field = action.field
        tier0: Tier0Result | None = None

        if action.tier is Tier.DOM:
            tier0 = self.run_tier0(field, action.value)
            if tier0.outcome.succeeded:
                logger.debug("Tier 0 %s: %s (%s)", tier0.outcome.value, field.label, field.field_type.value)
                return ExecutionResult(
                    success=True,
                    outcome=tier0.outcome,
                    tier_used=Tier.DOM,
                    duration_ms=_elapsed_ms(start),
                )

            logger.debug("Tier 0 failed for %s: %s", field.label, tier0.error)
            safe_log_event(
                self._log_event,
                "tier0_failed",
                {
                    "label": field.label,
                    "field_type": field.field_type.value,
                    "outcome": tier0.outcome.value,
                    "error": tier0.error,
                },
            )

        if getattr(self._driver, "is_stub", False):
            # A stub's generic failure would hide the real tier-0 diagnostic
            error = tier0.error if tier0 is not None else "tier 3 unavailable: no automation driver"
            return ExecutionResult(
                success=False,
                error=error,
                outcome=tier0.outcome if tier0 is not None else None,
                tier_used=Tier.DOM if tier0 is not None else Tier.AGENT,
                duration_ms=_elapsed_ms(start),
            )

        result = self.run_tier3(field, action.value)
        if result.success:
            return ExecutionResult(
                success=True,
                outcome=tier0.outcome if tier0 is not None else None,
                tier_used=Tier.AGENT,
                cost_usd=result.cost_usd,
                duration_ms=_elapsed_ms(start),
            )

        if tier0 is not None and tier0.error:
            error = tier0.error
        else:
            error = result.message or f'LLM fill returned failure for "{field.label}"'
        return ExecutionResult(
            success=False,
            error=error,
            outcome=tier0.outcome if tier0 is not None else None,
            tier_used=Tier.AGENT,
            cost_usd=result.cost_usd,
            duration_ms=_elapsed_ms(start),
        )

    # -- Tier 0 -----------------------------------------------------------

    def run_tier0(self, field: FieldModel, value: str) -> Tier0Result:
        """Dispatch to the routine for the field type and classify the outcome."""
        routine = self._routines.get(field.field_type)
        if routine is None:
            return Tier0Result(
                FillOutcome.NO_HANDLER,
                f"no_handler: no tier-0 routine for field type '{field.field_type.value}'",
            )

        try:
            self._dom.scroll_into_view(field.selector)
            self._dom.wait(self._settle_ms)
            outcome = routine(field, value)
        except Exception as exc:
            if is_fatal_browser_error(exc):
                raise
            return Tier0Result(FillOutcome.NOT_FOUND, f"not_found: {type(exc).__name__}: {exc}")

        if outcome.succeeded:
            return Tier0Result(outcome)
        if outcome is FillOutcome.NOT_FOUND:
            return Tier0Result(outcome, f"not_found: element '{field.selector}' is not in the DOM")
        if outcome is FillOutcome.NO_MATCH:
            return Tier0Result(outcome, f"no_match: no option matched '{value}' for '{field.label}'")
        return Tier0Result(outcome, f"{outcome.value}: {field.label}")

    def fill_text(self, field: FieldModel, value: str) -> FillOutcome:
        """Write a text-like value through the native setter.

        A field already holding the value (case-insensitive, trimmed) is left
        alone and reported ALREADY_FILLED.
        """
        current = self._dom.read_value(field.selector)
        if current is None:
            return FillOutcome.NOT_FOUND
        if current.strip() and current.strip().lower() == value.strip().lower():
            return FillOutcome.ALREADY_FILLED
        if not self._dom.write_value(field.selector, value):
            return FillOutcome.NOT_FOUND
        return FillOutcome.FILLED

    def fill_select(self, field: FieldModel, value: str) -> FillOutcome:
        options = self._dom.select_options(field.selector)
        if options is None:
            return FillOutcome.NOT_FOUND
        index = score_select_options(options, value)
        if index is None:
            return FillOutcome.NO_MATCH
        if not self._dom.choose_option(field.selector, index):
            return FillOutcome.NOT_FOUND
        logger.debug("Selected option %r for %s", options[index][0], field.label)
        return FillOutcome.FILLED

    def fill_custom_dropdown(self, field: FieldModel, value: str) -> FillOutcome:
        """Open the popup, filter if it has a search box, click the best option."""
        return self._fill_popup(field, value, type_into_field=False)

    def fill_typeahead(self, field: FieldModel, value: str) -> FillOutcome:
        """Type into the field itself and pick a matching suggestion."""
        return self._fill_popup(field, value, type_into_field=True)

    def _fill_popup(self, field: FieldModel, value: str, *, type_into_field: bool) -> FillOutcome:
        dom = self._dom
        if not dom.exists(field.selector):
            return FillOutcome.NOT_FOUND

        try:
            dom.open_dropdown(field.selector)
            dom.wait(self._dropdown_open_ms)

            can_type = type_into_field or dom.focus_popup_filter()
            if can_type:
                if type_into_field:
                    dom.clear_focused()
                dom.type_text(value, self._typing_delay_ms)
                dom.wait(self._dropdown_open_ms)

            clicked = self._click_matching_option(value)

            if not clicked:
                for term in generate_fallback_terms(value):
                    if can_type:
                        dom.clear_focused()
                        dom.wait(_POPUP_CLOSE_MS)
                        dom.type_text(term, self._typing_delay_ms)
                        dom.wait(self._dropdown_open_ms)
                    clicked = self._click_matching_option(term)
                    if clicked:
                        logger.debug("Dropdown %s matched fallback term %r", field.label, term)
                        break

            # Only click away from a popup whose option was chosen
            if clicked:
                dom.wait(self._settle_ms)
                dom.click_whitespace()
            else:
                dom.press("Escape")
            dom.wait(_POPUP_CLOSE_MS)
        except Exception as exc:
            if not is_fatal_browser_error(exc):
                self._dismiss_popup()
            raise

        return FillOutcome.FILLED if clicked else FillOutcome.NO_MATCH

    def _click_matching_option(self, target: str) -> bool:
        index = match_popup_option(self._dom.popup_option_texts(), target)
        if index is None:
            return False
        return self._dom.click_popup_option(index)

    def _dismiss_popup(self) -> None:
        try:
            self._dom.press("Escape")
            self._dom.wait(_POPUP_CLOSE_MS)
        except Exception as exc:
            if is_fatal_browser_error(exc):
                raise
            logger.debug("Escape after dropdown error failed: %s", exc)

    def fill_radio(self, field: FieldModel, value: str) -> FillOutcome:
        if not field.group_key:
            return FillOutcome.NOT_FOUND
        labels = self._dom.radio_labels(field.group_key)
        if not labels:
            return FillOutcome.NOT_FOUND
        index = match_choice_label(labels, value)
        if index is None:
            return FillOutcome.NO_MATCH
        if not self._dom.click_radio(field.group_key, index):
            return FillOutcome.NOT_FOUND
        return FillOutcome.FILLED

    def fill_aria_radio(self, field: FieldModel, value: str) -> FillOutcome:
        labels = self._dom.aria_radio_labels(field.selector)
        if not labels:
            return FillOutcome.NOT_FOUND
        index = match_choice_label(labels, value)
        if index is None:
            return FillOutcome.NO_MATCH
        if not self._dom.click_aria_radio(field.selector, index):
            return FillOutcome.NOT_FOUND
        return FillOutcome.FILLED

    def check_checkbox(self, field: FieldModel, value: str) -> FillOutcome:
        """Check the box once; an already-checked box is left untouched."""
        state = self._dom.checkbox_state(field.selector)
        if state is None:
            return FillOutcome.NOT_FOUND
        if state:
            return FillOutcome.ALREADY_FILLED
        if not self._dom.click(field.selector):
            return FillOutcome.NOT_FOUND
        return FillOutcome.FILLED

    def fill_date(self, field: FieldModel, value: str) -> FillOutcome:
        """Focus the field and type the date as keystrokes, then Tab to commit.

        Segmented MM/DD/YYYY widgets auto-advance between segments on typing.
        """
        if not self._dom.focus_click(field.selector):
            return FillOutcome.NOT_FOUND
        self._dom.wait(self._settle_ms)
        self._dom.type_text(value, self._typing_delay_ms)
        self._dom.wait(_POPUP_CLOSE_MS)
        self._dom.press("Tab")
        self._dom.wait(_POPUP_CLOSE_MS)
        return FillOutcome.FILLED

    # -- Tier 3 -----------------------------------------------------------

    def run_tier3(self, field: FieldModel, value: str) -> ActResult:
        """Ask the driver to fill one field.  Non-fatal driver errors become failures."""
        instruction = build_agent_instruction(field, value)
        logger.info("Tier 3 escalation: %s (%s)", field.label, field.field_type.value)
        safe_log_event(
            self._log_event,
            "tier3_escalation",
            {"label": field.label, "field_type": field.field_type.value, "has_value": bool(value)},
        )

        try:
            self._dom.scroll_into_view(field.selector)
            self._dom.wait(self._settle_ms)
            return self._driver.act(instruction)
        except Exception as exc:
            if is_fatal_browser_error(exc):
                raise
            logger.warning("Tier 3 fill threw for %s: %s", field.label, exc)
            return ActResult(success=False, message=f"{type(exc).__name__}: {exc}")


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


