"""Formhand collaborator protocols.

These protocols define the contract between the matching / execution engine
and the collaborators it is handed: the browser automation driver used for
tier-3 escalation and cookbook GUI replay, the per-platform handler that
supplies id and label maps, and the optional telemetry callback.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Any, Callable, Protocol, runtime_checkable

from formhand.engine.types import FieldType, PageModel

logger = logging.getLogger("formhand.engine.protocols")

# Errors that mean the browser, context or page is gone.  These are never
# reclassified or retried -- they unwind the whole run.
FATAL_BROWSER_ERROR = re.compile(
    r"target.*closed|browser.*closed|context.*closed|page.*closed|execution context.*destroyed",
    re.I,
)


def is_fatal_browser_error(error: BaseException) -> bool:
    """Check whether an exception indicates a dead browser/page."""
    return bool(FATAL_BROWSER_ERROR.search(str(error)))


@dataclasses.dataclass
class ActResult:
    """Result reported by the automation driver for one instruction."""

    success: bool
    message: str = ""
    cost_usd: float = 0.0


@dataclasses.dataclass
class GuiCommand:
    """A recorded coordinate-based interaction replayed by the driver."""

    variant: str  # click | type
    target: str  # Human-readable field label
    x: float | None = None
    y: float | None = None
    content: str | None = None


@runtime_checkable
class AutomationDriver(Protocol):
    """Browser automation driver used when DOM manipulation is not enough.

    VisionDriver maps instructions to Claude vision decisions + Playwright input.
    StubDriver always fails and marks tier 3 as disabled.
    """

    is_stub: bool

    def act(self, instruction: str) -> ActResult: ...

    def exec_gui(self, command: GuiCommand) -> ActResult: ...


class StubDriver:
    """No-op driver for tier-0-only runs. Every call reports failure."""

    is_stub = True

    def act(self, instruction: str) -> ActResult:
        return ActResult(success=False, message="tier 3 disabled (stub driver)")

    def exec_gui(self, command: GuiCommand) -> ActResult:
        return ActResult(success=False, message="GUI replay disabled (stub driver)")


@runtime_checkable
class PlatformHandler(Protocol):
    """Capabilities a named ATS platform contributes to matching."""

    platform_id: str

    def get_automation_id_map(self) -> dict[str, str]: ...

    def get_label_map(self) -> dict[str, str]: ...

    def detect_field_type(self, element: dict[str, Any]) -> FieldType | None: ...

    def is_review_page(self, page_model: PageModel) -> bool: ...


LogEventCallback = Callable[[str, dict[str, Any]], Any]


def safe_log_event(
    callback: LogEventCallback | None,
    event_type: str,
    metadata: dict[str, Any],
) -> None:
    """Invoke a telemetry callback; its failures never abort execution."""
    if callback is None:
        return
    try:
        callback(event_type, metadata)
    except Exception as exc:
        logger.warning("Telemetry callback failed for '%s': %s", event_type, exc)
