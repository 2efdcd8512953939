"""Formhand DOM primitives — the only module that talks to the live page.

PageDom wraps a Playwright ``Page`` and exposes the small set of reads, writes
and input gestures the executor, verifier and cookbook replay are built from.
Matching and scoring live in Python in those modules; the JavaScript here only
collects data and applies writes.

Writes go through the property setter the element's native prototype defines
and are followed by synthetic ``input`` / ``change`` / ``blur`` events so that
reactive frameworks (React, Vue, Workday's own widgets) pick up the value.

Lookups of a missing element return None rather than raising; exceptions from
Playwright propagate to the caller, which decides how to classify them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger("formhand.engine.dom")

# Elements treated as options of an opened dropdown / listbox popup
POPUP_OPTION_SELECTOR = (
    '[role="option"], [role="listbox"] li, '
    '[data-automation-id*="promptOption"], [data-automation-id*="selectOption"]'
)

# Display texts that mean "nothing selected yet"
DROPDOWN_PLACEHOLDERS = ("select one", "select...", "select", "choose one", "choose...", "--", "")

_JS_SCROLL_INTO_VIEW = """(sel) => {
    const el = document.querySelector(sel);
    if (el) el.scrollIntoView({ block: 'center', behavior: 'instant' });
    return !!el;
}"""

_JS_EXISTS = "(sel) => document.querySelector(sel) !== null"

_JS_READ_VALUE = """(sel) => {
    const el = document.querySelector(sel);
    if (!el) return null;
    if (el.isContentEditable) return el.textContent || '';
    return el.value ?? el.textContent ?? '';
}"""

_JS_WRITE_VALUE = """({ sel, val }) => {
    const el = document.querySelector(sel);
    if (!el) return false;

    if (el.isContentEditable) {
        el.focus();
        el.textContent = val;
        el.dispatchEvent(new Event('input', { bubbles: true }));
        el.dispatchEvent(new FocusEvent('blur', { bubbles: true }));
        return true;
    }

    const proto = el.tagName === 'TEXTAREA'
        ? HTMLTextAreaElement.prototype
        : HTMLInputElement.prototype;
    const nativeSetter = Object.getOwnPropertyDescriptor(proto, 'value')?.set;
    if (nativeSetter) {
        nativeSetter.call(el, val);
    } else {
        el.value = val;
    }

    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    el.dispatchEvent(new FocusEvent('blur', { bubbles: true }));
    return true;
}"""

_JS_SELECT_OPTIONS = """(sel) => {
    const el = document.querySelector(sel);
    if (!el) return null;
    return Array.from(el.querySelectorAll('option')).map(
        (opt) => [(opt.textContent || '').trim(), opt.value || '']
    );
}"""

_JS_CHOOSE_OPTION = """({ sel, index }) => {
    const el = document.querySelector(sel);
    if (!el) return false;
    const opt = el.querySelectorAll('option')[index];
    if (!opt) return false;

    const nativeSetter = Object.getOwnPropertyDescriptor(HTMLSelectElement.prototype, 'value')?.set;
    if (nativeSetter) {
        nativeSetter.call(el, opt.value);
    } else {
        el.value = opt.value;
    }

    el.dispatchEvent(new Event('change', { bubbles: true }));
    el.dispatchEvent(new Event('input', { bubbles: true }));
    return true;
}"""

# Visible label of a native radio: label[for], then wrapping label, then next sibling
_JS_RADIO_LABELS = """(groupKey) => {
    const radios = document.querySelectorAll(`input[type="radio"][name="${CSS.escape(groupKey)}"]`);
    return Array.from(radios).map((radio) => {
        let label = '';
        if (radio.id) {
            const lbl = document.querySelector(`label[for="${CSS.escape(radio.id)}"]`);
            if (lbl) label = (lbl.textContent || '').trim();
        }
        if (!label) {
            const parentLabel = radio.closest('label');
            if (parentLabel) label = (parentLabel.textContent || '').trim();
        }
        if (!label && radio.nextSibling) {
            label = (radio.nextSibling.textContent || '').trim();
        }
        return label;
    });
}"""

_JS_CLICK_RADIO = """({ groupKey, index }) => {
    const radios = document.querySelectorAll(`input[type="radio"][name="${CSS.escape(groupKey)}"]`);
    const radio = radios[index];
    if (!radio) return false;
    radio.click();
    radio.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}"""

_JS_ARIA_RADIO_LABELS = """(sel) => {
    const group = document.querySelector(sel);
    if (!group) return null;
    return Array.from(group.querySelectorAll('[role="radio"]')).map(
        (radio) => (radio.textContent || '').trim()
    );
}"""

_JS_CLICK_ARIA_RADIO = """({ sel, index }) => {
    const group = document.querySelector(sel);
    if (!group) return false;
    const radio = group.querySelectorAll('[role="radio"]')[index];
    if (!radio) return false;
    radio.click();
    radio.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}"""

_JS_CHECKBOX_STATE = """(sel) => {
    const el = document.querySelector(sel);
    if (!el) return null;
    if (el instanceof HTMLInputElement && el.type === 'checkbox') return el.checked;
    if (el.getAttribute('role') === 'checkbox') return el.getAttribute('aria-checked') === 'true';
    return false;
}"""

_JS_CLICK = """(sel) => {
    const el = document.querySelector(sel);
    if (!el) return false;
    el.click();
    return true;
}"""

_JS_FOCUS_CLICK = """(sel) => {
    const el = document.querySelector(sel);
    if (!el) return false;
    el.scrollIntoView({ block: 'center' });
    el.focus();
    el.click();
    return true;
}"""

_JS_FOCUS_POPUP_FILTER = """() => {
    const popup =
        document.querySelector('[role="listbox"]') ||
        document.querySelector('[data-automation-id*="promptOption"]')
            ?.closest('[role="dialog"], [class*="popup"], [class*="dropdown"]');
    if (!popup) return false;
    const input = popup.querySelector('input[type="text"], input:not([type])');
    if (input && input.getBoundingClientRect().width > 0) {
        input.focus();
        return true;
    }
    return false;
}"""

_JS_POPUP_OPTION_TEXTS = """(optionSelector) => Array.from(document.querySelectorAll(optionSelector)).map(
    (opt) => (opt.textContent || '').trim()
)"""

_JS_CLICK_POPUP_OPTION = """({ optionSelector, index }) => {
    const opt = document.querySelectorAll(optionSelector)[index];
    if (!opt) return false;
    opt.click();
    return true;
}"""

_JS_SELECTED_OPTION_TEXT = """(sel) => {
    const el = document.querySelector(sel);
    if (!el || !el.options) return '';
    const selected = el.options[el.selectedIndex];
    return selected?.text ?? '';
}"""

_JS_CHECKED_RADIO_LABEL = """({ sel, groupKey }) => {
    let groupName = groupKey;
    if (!groupName) {
        const el = document.querySelector(sel);
        if (!el) return '';
        groupName = el.name;
        if (!groupName) return el.checked ? (el.value || 'checked') : '';
    }
    const checked = document.querySelector(`input[name="${CSS.escape(groupName)}"]:checked`);
    if (!checked) return '';
    return checked.labels?.[0]?.textContent?.trim()
        ?? checked.closest('label')?.textContent?.trim()
        ?? checked.value
        ?? '';
}"""

_JS_ARIA_CHECKED_TEXT = """({ sel, groupKey }) => {
    let container = null;
    if (groupKey) {
        try { container = document.querySelector(groupKey); } catch (e) { container = null; }
    }
    if (!container) {
        const el = document.querySelector(sel);
        container = el?.closest('[role="radiogroup"]') ?? el ?? document.documentElement;
    }
    const checked = container.querySelector('[role="radio"][aria-checked="true"]');
    return checked ? (checked.textContent || '').trim() : '';
}"""

_JS_CHECKED_STATE_TEXT = """(sel) => {
    const el = document.querySelector(sel);
    if (!el) return '';
    if (el.getAttribute('role') === 'checkbox') return el.getAttribute('aria-checked') === 'true' ? 'checked' : '';
    return el.checked ? 'checked' : '';
}"""

_JS_TEXT_CONTENT = """(sel) => {
    const el = document.querySelector(sel);
    return el ? (el.textContent || '').trim() : '';
}"""


class PageDom:
    """DOM read/write primitives over one Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def page(self) -> Page:
        return self._page

    # -- Navigation / timing ---------------------------------------------

    def wait(self, ms: int) -> None:
        if ms > 0:
            self._page.wait_for_timeout(ms)

    def scroll_into_view(self, selector: str) -> bool:
        return bool(self._page.evaluate(_JS_SCROLL_INTO_VIEW, selector))

    def exists(self, selector: str) -> bool:
        return bool(self._page.evaluate(_JS_EXISTS, selector))

    # -- Text-like fields -------------------------------------------------

    def read_value(self, selector: str) -> str | None:
        """Current value (textContent for contenteditable); None if missing."""
        return self._page.evaluate(_JS_READ_VALUE, selector)

    def write_value(self, selector: str, value: str) -> bool:
        """Write through the native prototype setter and fire input/change/blur."""
        return bool(self._page.evaluate(_JS_WRITE_VALUE, {"sel": selector, "val": value}))

    # -- Native <select> ----------------------------------------------------

    def select_options(self, selector: str) -> list[tuple[str, str]] | None:
        """``(text, value)`` for every <option>; None if the select is missing."""
        options = self._page.evaluate(_JS_SELECT_OPTIONS, selector)
        if options is None:
            return None
        return [(str(text), str(value)) for text, value in options]

    def choose_option(self, selector: str, index: int) -> bool:
        return bool(self._page.evaluate(_JS_CHOOSE_OPTION, {"sel": selector, "index": index}))

    # -- Radio groups -------------------------------------------------------

    def radio_labels(self, group_key: str) -> list[str]:
        return list(self._page.evaluate(_JS_RADIO_LABELS, group_key))

    def click_radio(self, group_key: str, index: int) -> bool:
        return bool(self._page.evaluate(_JS_CLICK_RADIO, {"groupKey": group_key, "index": index}))

    def aria_radio_labels(self, selector: str) -> list[str] | None:
        """Option texts of an ARIA radiogroup; None if the group is missing."""
        labels = self._page.evaluate(_JS_ARIA_RADIO_LABELS, selector)
        return None if labels is None else list(labels)

    def click_aria_radio(self, selector: str, index: int) -> bool:
        return bool(self._page.evaluate(_JS_CLICK_ARIA_RADIO, {"sel": selector, "index": index}))

    # -- Checkboxes / clicks --------------------------------------------------

    def checkbox_state(self, selector: str) -> bool | None:
        """Checked state (native or aria-checked); None if missing."""
        return self._page.evaluate(_JS_CHECKBOX_STATE, selector)

    def click(self, selector: str) -> bool:
        return bool(self._page.evaluate(_JS_CLICK, selector))

    def focus_click(self, selector: str) -> bool:
        return bool(self._page.evaluate(_JS_FOCUS_CLICK, selector))

    # -- Custom dropdown popups ---------------------------------------------

    def open_dropdown(self, selector: str) -> None:
        """Real pointer click so widgets listening to mousedown open too."""
        self._page.locator(selector).first.click()

    def focus_popup_filter(self) -> bool:
        """Focus the filter input inside an open popup, if it has one."""
        return bool(self._page.evaluate(_JS_FOCUS_POPUP_FILTER))

    def popup_option_texts(self) -> list[str]:
        return list(self._page.evaluate(_JS_POPUP_OPTION_TEXTS, POPUP_OPTION_SELECTOR))

    def click_popup_option(self, index: int) -> bool:
        return bool(
            self._page.evaluate(
                _JS_CLICK_POPUP_OPTION,
                {"optionSelector": POPUP_OPTION_SELECTOR, "index": index},
            )
        )

    def click_whitespace(self) -> None:
        """Click the top-left page margin to blur and close a popup."""
        self._page.mouse.click(10, 10)

    # -- Keyboard -------------------------------------------------------------

    def type_text(self, text: str, delay_ms: int = 0) -> None:
        self._page.keyboard.type(text, delay=delay_ms)

    def press(self, key: str) -> None:
        self._page.keyboard.press(key)

    def clear_focused(self) -> None:
        self._page.keyboard.press("Control+a")
        self._page.keyboard.press("Backspace")

    # -- Readback -------------------------------------------------------------

    def read_input_value(self, selector: str) -> str:
        value = self.read_value(selector)
        return value or ""

    def read_selected_option_text(self, selector: str) -> str:
        return self._page.evaluate(_JS_SELECTED_OPTION_TEXT, selector) or ""

    def read_dropdown_text(self, selector: str) -> str:
        """Display text of a custom dropdown, "" while it shows a placeholder."""
        text = self._page.evaluate(_JS_TEXT_CONTENT, selector) or ""
        if text.lower() in DROPDOWN_PLACEHOLDERS:
            return ""
        return text

    def read_checked_radio_label(self, selector: str, group_key: str | None) -> str:
        return self._page.evaluate(_JS_CHECKED_RADIO_LABEL, {"sel": selector, "groupKey": group_key or ""}) or ""

    def read_aria_checked_text(self, selector: str, group_key: str | None) -> str:
        return self._page.evaluate(_JS_ARIA_CHECKED_TEXT, {"sel": selector, "groupKey": group_key or ""}) or ""

    def read_checked_state(self, selector: str) -> str:
        """``"checked"`` or ""."""
        return self._page.evaluate(_JS_CHECKED_STATE_TEXT, selector) or ""

    def read_text_content(self, selector: str) -> str:
        return self._page.evaluate(_JS_TEXT_CONTENT, selector) or ""
