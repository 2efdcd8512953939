"""Formhand Verification Engine — DOM readback after each fill.

Reads the field's value back with a routine matching how it was filled, then
compares it to the expected value with type-aware fuzzy rules (phone numbers by
their last 7 digits, dates by digits only, choice widgets by substring).

A failed verification is data, never an exception.  Readback errors other
than a dead browser are logged and read as "".
"""

from __future__ import annotations

import logging
import re

from formhand.engine.dom import PageDom
from formhand.engine.protocols import is_fatal_browser_error
from formhand.engine.types import FieldModel, FieldType, VerificationResult

logger = logging.getLogger("formhand.engine.verification")

TRUTHY_VALUES = frozenset({"true", "yes", "1", "checked", "on"})

_CHOICE_TYPES = frozenset({FieldType.SELECT, FieldType.CUSTOM_DROPDOWN, FieldType.RADIO, FieldType.ARIA_RADIO})
_DIGITS_ONLY_TYPES = frozenset({FieldType.PHONE, FieldType.DATE})
_NON_DIGIT = re.compile(r"[^0-9]")


def normalize_for_comparison(value: str, field_type: FieldType) -> str:
    """Trim, lowercase, collapse whitespace; phone and date keep digits only."""
    normalized = re.sub(r"\s+", " ", value.strip().lower())
    if field_type in _DIGITS_ONLY_TYPES:
        normalized = _NON_DIGIT.sub("", normalized)
    return normalized


def values_match(expected: str, actual: str, field_type: FieldType) -> bool:
    """Fuzzy, type-aware comparison of two already-normalized values."""
    if actual == "":
        return False
    if expected == actual:
        return True

    if field_type is FieldType.CHECKBOX:
        return expected in TRUTHY_VALUES and actual == "checked"

    if field_type is FieldType.PHONE:
        expected_digits = _NON_DIGIT.sub("", expected)
        actual_digits = _NON_DIGIT.sub("", actual)
        if len(expected_digits) >= 7 and len(actual_digits) >= 7:
            return expected_digits[-7:] == actual_digits[-7:]

    if field_type is FieldType.DATE:
        expected_digits = _NON_DIGIT.sub("", expected)
        if expected_digits and expected_digits == _NON_DIGIT.sub("", actual):
            return True

    if field_type in _CHOICE_TYPES:
        if actual.startswith(expected) or expected.startswith(actual):
            return True

    return expected in actual or actual in expected


class VerificationEngine:
    """Verifies fills by reading the DOM back."""

    def __init__(self, dom: PageDom) -> None:
        self._dom = dom

    def verify(self, field: FieldModel, expected: str) -> VerificationResult:
        actual = self.read_field_value(field)
        normalized_expected = normalize_for_comparison(expected, field.field_type)
        normalized_actual = normalize_for_comparison(actual, field.field_type)
        passed = values_match(normalized_expected, normalized_actual, field.field_type)

        if passed:
            reason = "Value matches expected"
            logger.debug("Verification passed: %s = %r", field.label, actual)
        else:
            if normalized_actual == "":
                reason = f'Field is empty — expected "{expected}"'
            else:
                reason = f'Mismatch — expected "{expected}", got "{actual}"'
            logger.warning(
                "Verification failed: %s (%s) selector=%s: %s",
                field.label,
                field.field_type.value,
                field.selector,
                reason,
            )

        return VerificationResult(
            field=field,
            expected=expected,
            actual=actual,
            passed=passed,
            reason=reason,
        )

    def read_field_value(self, field: FieldModel) -> str:
        """Current value as displayed to the user; "" if it cannot be read."""
        dom = self._dom
        field_type = field.field_type
        try:
            if field_type is FieldType.SELECT:
                return dom.read_selected_option_text(field.selector)
            if field_type is FieldType.CUSTOM_DROPDOWN:
                return dom.read_dropdown_text(field.selector)
            if field_type is FieldType.RADIO:
                return dom.read_checked_radio_label(field.selector, field.group_key or field.name)
            if field_type is FieldType.ARIA_RADIO:
                return dom.read_aria_checked_text(field.selector, field.group_key)
            if field_type is FieldType.CHECKBOX:
                return dom.read_checked_state(field.selector)
            if field_type is FieldType.CONTENTEDITABLE:
                return dom.read_text_content(field.selector)
            return dom.read_input_value(field.selector)
        except Exception as exc:
            if is_fatal_browser_error(exc):
                raise
            logger.debug("Failed to read %s (%s): %s", field.label, field.selector, exc)
            return ""
