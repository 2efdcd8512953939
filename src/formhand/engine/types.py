"""Formhand page and plan data model.

A PageModel is the scanner's snapshot of one page observation: every
interactive field plus the navigation buttons.  The matcher turns fields into
FieldMatch records, the planner turns those into tiered ActionItems, and the
executor / verifier report ExecutionResult and VerificationResult records.

Snapshots are created fresh per observation and never mutated by the engine.
"""

from __future__ import annotations

import dataclasses
import enum
from typing import Any


class FieldType(str, enum.Enum):
    """Semantic kind of an interactive element (closed set)."""

    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    NUMBER = "number"
    DATE = "date"
    TEXTAREA = "textarea"
    SELECT = "select"
    CUSTOM_DROPDOWN = "custom_dropdown"
    RADIO = "radio"
    ARIA_RADIO = "aria_radio"
    CHECKBOX = "checkbox"
    FILE = "file"
    TYPEAHEAD = "typeahead"
    CONTENTEDITABLE = "contenteditable"
    UPLOAD_BUTTON = "upload_button"
    PASSWORD = "password"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> FieldType:
        """Coerce scanner output to a FieldType; anything unrecognised is UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class MatchMethod(str, enum.Enum):
    AUTOMATION_ID = "automation_id"
    NAME_ATTR = "name_attr"
    LABEL_EXACT = "label_exact"
    QA_MATCH = "qa_match"
    LABEL_FUZZY = "label_fuzzy"
    PLACEHOLDER = "placeholder"
    DEFAULT_VALUE = "default_value"


class ActionVerb(str, enum.Enum):
    FILL = "fill"
    SELECT = "select"
    CHECK = "check"
    UPLOAD = "upload"
    CLICK = "click"
    TYPE_AND_SELECT = "type_and_select"


class Tier(enum.IntEnum):
    """Execution cost tier: 0 is free DOM manipulation, 3 is an LLM act() call."""

    DOM = 0
    AGENT = 3


class FillOutcome(str, enum.Enum):
    """Result of a tier-0 DOM routine.

    FILLED and ALREADY_FILLED are successes.  The three failure outcomes are
    returned (never raised) so escalation policy can inspect which one occurred.
    """

    FILLED = "filled"
    NOT_FOUND = "not_found"
    ALREADY_FILLED = "already_filled"
    NO_MATCH = "no_match"
    NO_HANDLER = "no_handler"

    @property
    def succeeded(self) -> bool:
        return self in (FillOutcome.FILLED, FillOutcome.ALREADY_FILLED)

    @property
    def escalatable(self) -> bool:
        """Whether a tier-3 attempt is worth making after this outcome."""
        return self in (FillOutcome.NOT_FOUND, FillOutcome.NO_MATCH, FillOutcome.NO_HANDLER)

    @property
    def fast_escalate(self) -> bool:
        """Outcomes where retrying on tier 0 cannot help."""
        return self in (FillOutcome.NOT_FOUND, FillOutcome.NO_HANDLER)


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key -- scanners emit either snake_case or camelCase."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclasses.dataclass(frozen=True)
class BoundingBox:
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BoundingBox:
        if not data:
            return cls()
        return cls(
            x=float(data.get("x", 0) or 0),
            y=float(data.get("y", 0) or 0),
            width=float(data.get("width", 0) or 0),
            height=float(data.get("height", 0) or 0),
        )

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


@dataclasses.dataclass(frozen=True)
class FieldModel:
    """One interactive element discovered on the page."""

    id: str  # Scan-session id, e.g. "field-3"
    selector: str  # CSS selector for the element
    field_type: FieldType = FieldType.TEXT
    label: str = ""
    automation_id: str | None = None  # Platform-specific stable id
    field_id: str | None = None  # HTML id attribute
    name: str | None = None  # HTML name attribute
    is_required: bool = False
    is_visible: bool = True
    is_disabled: bool = False
    placeholder: str | None = None
    aria_label: str | None = None
    current_value: str = ""
    is_empty: bool = True
    options: tuple[str, ...] | None = None
    group_key: str | None = None  # Radio group name / ARIA group selector
    bounding_box: BoundingBox = dataclasses.field(default_factory=BoundingBox)
    absolute_y: float = 0.0  # rect.top + scrollY at scan time
    scan_index: int = dataclasses.field(default=0, compare=False)  # Position in the scanner's field list
    platform_meta: dict[str, str] | None = dataclasses.field(default=None, hash=False, compare=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any], scan_index: int = 0) -> FieldModel:
        current_value = str(_pick(data, "current_value", "currentValue", default="") or "")
        is_empty = _pick(data, "is_empty", "isEmpty")
        if is_empty is None:
            is_empty = current_value.strip() == ""
        options = _pick(data, "options")
        meta = _pick(data, "platform_meta", "platformMeta")
        bbox = BoundingBox.from_dict(_pick(data, "bounding_box", "boundingBox"))
        absolute_y = _pick(data, "absolute_y", "absoluteY")
        return cls(
            id=str(_pick(data, "id", default="")),
            selector=str(_pick(data, "selector", default="")),
            field_type=FieldType.parse(_pick(data, "field_type", "fieldType", default="unknown")),
            label=str(_pick(data, "label", default="") or ""),
            automation_id=_pick(data, "automation_id", "automationId"),
            field_id=_pick(data, "field_id", "fieldId"),
            name=_pick(data, "name"),
            is_required=bool(_pick(data, "is_required", "isRequired", "required", default=False)),
            is_visible=bool(_pick(data, "is_visible", "isVisible", default=True)),
            is_disabled=bool(_pick(data, "is_disabled", "isDisabled", default=False)),
            placeholder=_pick(data, "placeholder"),
            aria_label=_pick(data, "aria_label", "ariaLabel"),
            current_value=current_value,
            is_empty=bool(is_empty),
            options=tuple(str(o) for o in options) if options is not None else None,
            group_key=_pick(data, "group_key", "groupKey"),
            bounding_box=bbox,
            absolute_y=float(absolute_y) if absolute_y is not None else bbox.y,
            scan_index=int(_pick(data, "scan_index", "scanIndex", default=scan_index)),
            platform_meta={str(k): str(v) for k, v in meta.items()} if meta else None,
        )


@dataclasses.dataclass(frozen=True)
class ButtonModel:
    selector: str
    text: str
    automation_id: str | None = None
    role: str = "unknown"  # navigation | submit | add | action | unknown
    bounding_box: BoundingBox = dataclasses.field(default_factory=BoundingBox)
    is_disabled: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ButtonModel:
        return cls(
            selector=str(_pick(data, "selector", default="")),
            text=str(_pick(data, "text", default="") or ""),
            automation_id=_pick(data, "automation_id", "automationId"),
            role=str(_pick(data, "role", default="unknown")),
            bounding_box=BoundingBox.from_dict(_pick(data, "bounding_box", "boundingBox")),
            is_disabled=bool(_pick(data, "is_disabled", "isDisabled", default=False)),
        )


@dataclasses.dataclass(frozen=True)
class PageModel:
    """Complete snapshot of a page's interactive elements."""

    url: str
    platform: str = "generic"
    page_type: str = "unknown"
    fields: tuple[FieldModel, ...] = ()
    buttons: tuple[ButtonModel, ...] = ()
    page_label: str | None = None
    scroll_height: float = 0.0
    viewport_height: float = 0.0
    timestamp: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PageModel:
        return cls(
            url=str(_pick(data, "url", default="")),
            platform=str(_pick(data, "platform", default="generic")),
            page_type=str(_pick(data, "page_type", "pageType", default="unknown")),
            fields=tuple(
                FieldModel.from_dict(f, scan_index=i) for i, f in enumerate(_pick(data, "fields", default=[]))
            ),
            buttons=tuple(ButtonModel.from_dict(b) for b in _pick(data, "buttons", default=[])),
            page_label=_pick(data, "page_label", "pageLabel"),
            scroll_height=float(_pick(data, "scroll_height", "scrollHeight", default=0)),
            viewport_height=float(_pick(data, "viewport_height", "viewportHeight", default=0)),
            timestamp=float(_pick(data, "timestamp", default=0)),
        )


@dataclasses.dataclass(frozen=True)
class FieldMatch:
    """A field paired with the user-data value chosen for it."""

    field: FieldModel
    data_key: str
    value: str
    confidence: float
    method: MatchMethod


@dataclasses.dataclass
class ActionItem:
    """One action to execute on a single field.

    ``tier`` is fixed once the planner assigns it; the retry counter is the
    only state a caller updates.
    """

    field: FieldModel
    action: ActionVerb
    value: str
    tier: Tier
    match: FieldMatch | None = None
    retry_count: int = 0
    max_retries: int = 2

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "tier" and "tier" in self.__dict__:
            raise AttributeError("ActionItem.tier cannot change after planning")
        super().__setattr__(name, value)

    @property
    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries


@dataclasses.dataclass
class ActionPlan:
    """Actions ordered top-to-bottom by the field's absolute Y position."""

    actions: list[ActionItem]
    tier0_count: int
    tier3_count: int
    unmatched_fields: list[FieldModel]


@dataclasses.dataclass
class ExecutionResult:
    """Outcome of executing one ActionItem."""

    success: bool
    error: str | None = None
    outcome: FillOutcome | None = None  # Tier-0 outcome, when tier 0 ran
    tier_used: Tier = Tier.DOM
    cost_usd: float = 0.0
    duration_ms: float = 0.0


@dataclasses.dataclass
class VerificationResult:
    field: FieldModel
    expected: str
    actual: str
    passed: bool
    reason: str
