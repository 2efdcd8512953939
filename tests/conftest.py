"""Shared fixtures for formhand unit tests."""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any

import pytest
import yaml

from formhand.engine.protocols import ActResult, GuiCommand
from formhand.engine.types import FieldModel, FieldType, PageModel


# ---------------------------------------------------------------------------
# In-memory DOM implementing the PageDom method set
# ---------------------------------------------------------------------------


@dataclasses.dataclass
class FakeDropdown:
    """A custom dropdown / typeahead widget and its popup options."""

    options: list[str]
    filterable: bool = False
    typeahead: bool = False
    display: str = "Select One"


class FakeDom:
    """Dict-backed stand-in for PageDom.

    Each widget family lives in its own dict keyed by selector (or radio
    group name).  ``calls`` records every gesture for assertions and
    ``fail_on`` maps a selector to an exception raised when it is touched.
    """

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.selects: dict[str, list[tuple[str, str]]] = {}
        self.selected: dict[str, int] = {}
        self.radio_groups: dict[str, list[str]] = {}
        self.radio_checked: dict[str, int] = {}
        self.aria_groups: dict[str, list[str]] = {}
        self.aria_checked: dict[str, int] = {}
        self.checkboxes: dict[str, bool] = {}
        self.dropdowns: dict[str, FakeDropdown] = {}
        self.fail_on: dict[str, Exception] = {}
        self.calls: list[str] = []
        self.waited_ms = 0
        self.open_popup: str | None = None
        self.filter_text = ""
        self.focus: str | None = None  # selector, or "filter" while a popup filter has focus

    # -- helpers ------------------------------------------------------------

    def _touch(self, selector: str) -> None:
        if selector in self.fail_on:
            raise self.fail_on[selector]

    def _visible_options(self) -> list[str]:
        if self.open_popup is None:
            return []
        dropdown = self.dropdowns[self.open_popup]
        if (dropdown.filterable or dropdown.typeahead) and self.filter_text:
            return [o for o in dropdown.options if self.filter_text.lower() in o.lower()]
        return list(dropdown.options)

    # -- navigation / timing ------------------------------------------------

    def wait(self, ms: int) -> None:
        self.waited_ms += ms

    def scroll_into_view(self, selector: str) -> bool:
        self._touch(selector)
        self.calls.append(f"scroll:{selector}")
        return self.exists(selector)

    def exists(self, selector: str) -> bool:
        return any(
            selector in family
            for family in (self.values, self.selects, self.aria_groups, self.checkboxes, self.dropdowns)
        )

    # -- text-like ----------------------------------------------------------

    def read_value(self, selector: str) -> str | None:
        self._touch(selector)
        return self.values.get(selector)

    def write_value(self, selector: str, value: str) -> bool:
        self._touch(selector)
        if selector not in self.values:
            return False
        self.values[selector] = value
        self.calls.append(f"write:{selector}={value}")
        return True

    # -- select -------------------------------------------------------------

    def select_options(self, selector: str) -> list[tuple[str, str]] | None:
        self._touch(selector)
        options = self.selects.get(selector)
        return None if options is None else list(options)

    def choose_option(self, selector: str, index: int) -> bool:
        if selector not in self.selects or index >= len(self.selects[selector]):
            return False
        self.selected[selector] = index
        self.calls.append(f"choose:{selector}={index}")
        return True

    # -- radios -------------------------------------------------------------

    def radio_labels(self, group_key: str) -> list[str]:
        return list(self.radio_groups.get(group_key, []))

    def click_radio(self, group_key: str, index: int) -> bool:
        if index >= len(self.radio_groups.get(group_key, [])):
            return False
        self.radio_checked[group_key] = index
        self.calls.append(f"radio:{group_key}={index}")
        return True

    def aria_radio_labels(self, selector: str) -> list[str] | None:
        self._touch(selector)
        labels = self.aria_groups.get(selector)
        return None if labels is None else list(labels)

    def click_aria_radio(self, selector: str, index: int) -> bool:
        if index >= len(self.aria_groups.get(selector, [])):
            return False
        self.aria_checked[selector] = index
        self.calls.append(f"aria_radio:{selector}={index}")
        return True

    # -- checkboxes / clicks ------------------------------------------------

    def checkbox_state(self, selector: str) -> bool | None:
        self._touch(selector)
        return self.checkboxes.get(selector)

    def click(self, selector: str) -> bool:
        self.calls.append(f"click:{selector}")
        if selector in self.checkboxes:
            self.checkboxes[selector] = not self.checkboxes[selector]
            return True
        return self.exists(selector)

    def focus_click(self, selector: str) -> bool:
        self._touch(selector)
        if selector not in self.values:
            return False
        self.focus = selector
        self.calls.append(f"focus:{selector}")
        return True

    # -- popups -------------------------------------------------------------

    def open_dropdown(self, selector: str) -> None:
        self._touch(selector)
        self.calls.append(f"open:{selector}")
        self.open_popup = selector
        self.filter_text = ""
        if self.dropdowns[selector].typeahead:
            self.focus = "filter"

    def focus_popup_filter(self) -> bool:
        if self.open_popup is not None and self.dropdowns[self.open_popup].filterable:
            self.focus = "filter"
            return True
        return False

    def popup_option_texts(self) -> list[str]:
        return self._visible_options()

    def click_popup_option(self, index: int) -> bool:
        options = self._visible_options()
        if index >= len(options):
            return False
        self.dropdowns[self.open_popup].display = options[index]
        self.calls.append(f"option:{options[index]}")
        return True

    def click_whitespace(self) -> None:
        self.calls.append("click_whitespace")
        self.open_popup = None
        self.focus = None

    # -- keyboard -----------------------------------------------------------

    def type_text(self, text: str, delay_ms: int = 0) -> None:
        self.calls.append(f"type:{text}")
        if self.focus == "filter":
            self.filter_text += text
        elif self.focus in self.values:
            self.values[self.focus] += text

    def press(self, key: str) -> None:
        self.calls.append(f"press:{key}")
        if key == "Escape":
            self.open_popup = None
        if key in ("Escape", "Tab"):
            self.focus = None

    def clear_focused(self) -> None:
        self.calls.append("clear")
        if self.focus == "filter":
            self.filter_text = ""
        elif self.focus in self.values:
            self.values[self.focus] = ""

    # -- readback -----------------------------------------------------------

    def read_input_value(self, selector: str) -> str:
        self._touch(selector)
        return self.values.get(selector, "")

    def read_selected_option_text(self, selector: str) -> str:
        self._touch(selector)
        if selector not in self.selected:
            return ""
        return self.selects[selector][self.selected[selector]][0]

    def read_dropdown_text(self, selector: str) -> str:
        self._touch(selector)
        dropdown = self.dropdowns.get(selector)
        if dropdown is None or dropdown.display.lower() in ("select one", ""):
            return ""
        return dropdown.display

    def read_checked_radio_label(self, selector: str, group_key: str | None) -> str:
        if not group_key or group_key not in self.radio_checked:
            return ""
        return self.radio_groups[group_key][self.radio_checked[group_key]]

    def read_aria_checked_text(self, selector: str, group_key: str | None) -> str:
        if selector not in self.aria_checked:
            return ""
        return self.aria_groups[selector][self.aria_checked[selector]]

    def read_checked_state(self, selector: str) -> str:
        self._touch(selector)
        return "checked" if self.checkboxes.get(selector) else ""

    def read_text_content(self, selector: str) -> str:
        self._touch(selector)
        return self.values.get(selector, "").strip()


@pytest.fixture
def fake_dom() -> FakeDom:
    return FakeDom()


# ---------------------------------------------------------------------------
# Automation drivers
# ---------------------------------------------------------------------------


class RecordingDriver:
    """Non-stub driver returning scripted results and recording instructions."""

    is_stub = False

    def __init__(self, success: bool = True, cost_usd: float = 0.01, message: str = "") -> None:
        self.success = success
        self.cost_usd = cost_usd
        self.message = message
        self.instructions: list[str] = []
        self.gui_commands: list[GuiCommand] = []
        self.raise_on_act: Exception | None = None
        self.on_gui: Any = None  # optional callable(command) -> None applied to the fake DOM

    def act(self, instruction: str) -> ActResult:
        self.instructions.append(instruction)
        if self.raise_on_act is not None:
            raise self.raise_on_act
        return ActResult(success=self.success, message=self.message, cost_usd=self.cost_usd)

    def exec_gui(self, command: GuiCommand) -> ActResult:
        self.gui_commands.append(command)
        if self.on_gui is not None:
            self.on_gui(command)
        return ActResult(success=self.success)


@pytest.fixture
def recording_driver() -> RecordingDriver:
    return RecordingDriver()


# ---------------------------------------------------------------------------
# Field / page builders
# ---------------------------------------------------------------------------


def make_field(
    field_id: str = "field-1",
    field_type: FieldType = FieldType.TEXT,
    label: str = "",
    selector: str | None = None,
    **kwargs: Any,
) -> FieldModel:
    return FieldModel(
        id=field_id,
        selector=selector or f"#{field_id}",
        field_type=field_type,
        label=label,
        **kwargs,
    )


@pytest.fixture
def user_data() -> dict[str, str]:
    return {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "phone": "+1 (555) 123-4567",
        "city": "London",
        "country": "United Kingdom",
        "Degree": "Computer Science and Engineering",
    }


@pytest.fixture
def qa_answers() -> dict[str, str]:
    return {
        "Are you legally authorized to work in the United States?": "Yes",
        "Will you now or in the future require visa sponsorship?": "No",
        "How did you hear about us?": "LinkedIn",
    }


@pytest.fixture
def sample_page_dict() -> dict[str, Any]:
    """A scanner snapshot in the camelCase form a browser-side scanner emits."""
    return {
        "url": "https://acme.wd5.myworkdayjobs.com/en-US/careers/job/apply",
        "platform": "workday",
        "pageType": "form",
        "fields": [
            {
                "id": "field-2",
                "selector": "#email",
                "fieldType": "email",
                "label": "Email Address",
                "name": "email",
                "isRequired": True,
                "boundingBox": {"x": 10, "y": 400, "width": 300, "height": 30},
                "absoluteY": 400,
            },
            {
                "id": "field-1",
                "selector": "#first",
                "fieldType": "text",
                "label": "First Name*",
                "automationId": "legalNameSection_firstName",
                "isRequired": True,
                "absoluteY": 100,
            },
            {
                "id": "field-3",
                "selector": "#hear",
                "fieldType": "custom_dropdown",
                "label": "How did you hear about us?",
                "absoluteY": 700,
            },
            {
                "id": "field-4",
                "selector": "#mystery",
                "fieldType": "widget-x",
                "label": "Favourite colour",
                "absoluteY": 800,
            },
        ],
        "buttons": [
            {"selector": "#next", "text": "Save and Continue", "automationId": "bottom-navigation-next-button"},
        ],
    }


@pytest.fixture
def sample_page(sample_page_dict: dict[str, Any]) -> PageModel:
    return PageModel.from_dict(sample_page_dict)


@pytest.fixture
def write_yaml(tmp_path: Path):
    """Write a mapping to a YAML file under tmp_path and return its path."""

    def _write(name: str, data: Any) -> Path:
        path = tmp_path / name
        path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False), encoding="utf-8")
        return path

    return _write
