"""Unit tests for formhand.engine.verification — readback and fuzzy comparison."""

from __future__ import annotations

import logging

import pytest

from conftest import FakeDropdown, make_field
from formhand.engine.types import FieldType
from formhand.engine.verification import VerificationEngine, normalize_for_comparison, values_match


# ---------------------------------------------------------------------------
# 1. normalize_for_comparison()
# ---------------------------------------------------------------------------

class TestNormalize:

    def test_trims_lowercases_and_collapses(self):
        assert normalize_for_comparison("  New   York ", FieldType.TEXT) == "new york"

    def test_phone_keeps_digits(self):
        assert normalize_for_comparison("+1 (555) 123-4567", FieldType.PHONE) == "15551234567"

    def test_date_keeps_digits(self):
        assert normalize_for_comparison("01/15/2024", FieldType.DATE) == "01152024"


# ---------------------------------------------------------------------------
# 2. values_match()
# ---------------------------------------------------------------------------

class TestValuesMatch:

    def test_empty_actual_never_matches(self):
        assert values_match("", "", FieldType.TEXT) is False
        assert values_match("london", "", FieldType.TEXT) is False

    def test_exact(self):
        assert values_match("london", "london", FieldType.TEXT) is True

    def test_checkbox_truthy(self):
        for expected in ("true", "yes", "1", "checked", "on"):
            assert values_match(expected, "checked", FieldType.CHECKBOX) is True
        assert values_match("false", "checked", FieldType.CHECKBOX) is False

    def test_phone_last_seven_digits(self):
        assert values_match("5551234567", "15551234567", FieldType.PHONE) is True
        assert values_match("5551234567", "5559999999", FieldType.PHONE) is False

    def test_short_phone_falls_back_to_substring(self):
        assert values_match("1234", "991234", FieldType.PHONE) is True

    def test_choice_prefix(self):
        assert values_match("yes", "yes, i am authorized", FieldType.RADIO) is True
        assert values_match("united states of america", "united states", FieldType.SELECT) is True

    def test_substring_either_direction(self):
        assert values_match("london", "london, uk", FieldType.TEXT) is True
        assert values_match("london, uk", "london", FieldType.TEXT) is True

    def test_mismatch(self):
        assert values_match("london", "paris", FieldType.TEXT) is False


# ---------------------------------------------------------------------------
# 3. VerificationEngine.verify()
# ---------------------------------------------------------------------------

class TestVerify:

    def test_phone_formatting_differences_pass(self, fake_dom):
        fake_dom.values["#phone"] = "(555) 123-4567"
        field = make_field(field_type=FieldType.PHONE, selector="#phone")
        result = VerificationEngine(fake_dom).verify(field, "+1 555 123 4567")
        assert result.passed is True
        assert result.reason == "Value matches expected"
        assert result.actual == "(555) 123-4567"

    def test_empty_field_reason(self, fake_dom):
        fake_dom.values["#city"] = ""
        field = make_field(selector="#city")
        result = VerificationEngine(fake_dom).verify(field, "London")
        assert result.passed is False
        assert result.reason == 'Field is empty — expected "London"'

    def test_mismatch_reason(self, fake_dom, caplog):
        fake_dom.values["#city"] = "Paris"
        field = make_field(selector="#city", label="City")
        with caplog.at_level(logging.WARNING, logger="formhand.engine.verification"):
            result = VerificationEngine(fake_dom).verify(field, "London")
        assert result.passed is False
        assert result.reason == 'Mismatch — expected "London", got "Paris"'
        assert "Verification failed" in caplog.text

    def test_select_reads_option_text(self, fake_dom):
        fake_dom.selects["#country"] = [("United States", "US"), ("Canada", "CA")]
        fake_dom.selected["#country"] = 0
        field = make_field(field_type=FieldType.SELECT, selector="#country")
        assert VerificationEngine(fake_dom).verify(field, "United States").passed is True

    def test_custom_dropdown_placeholder_reads_empty(self, fake_dom):
        fake_dom.dropdowns["#hear"] = FakeDropdown(["LinkedIn"])
        field = make_field(field_type=FieldType.CUSTOM_DROPDOWN, selector="#hear")
        result = VerificationEngine(fake_dom).verify(field, "LinkedIn")
        assert result.passed is False
        assert result.actual == ""

    def test_radio_reads_checked_label(self, fake_dom):
        fake_dom.radio_groups["auth"] = ["Yes, I am authorized", "No"]
        fake_dom.radio_checked["auth"] = 0
        field = make_field(field_type=FieldType.RADIO, selector="#auth-0", group_key="auth")
        assert VerificationEngine(fake_dom).verify(field, "Yes").passed is True

    def test_aria_radio(self, fake_dom):
        fake_dom.aria_groups["#sponsor"] = ["Yes", "No"]
        fake_dom.aria_checked["#sponsor"] = 1
        field = make_field(field_type=FieldType.ARIA_RADIO, selector="#sponsor")
        assert VerificationEngine(fake_dom).verify(field, "No").passed is True

    def test_checkbox(self, fake_dom):
        fake_dom.checkboxes["#terms"] = True
        field = make_field(field_type=FieldType.CHECKBOX, selector="#terms")
        assert VerificationEngine(fake_dom).verify(field, "true").passed is True
        fake_dom.checkboxes["#terms"] = False
        assert VerificationEngine(fake_dom).verify(field, "true").passed is False

    def test_date_separators_ignored(self, fake_dom):
        fake_dom.values["#start"] = "01-15-2024"
        field = make_field(field_type=FieldType.DATE, selector="#start")
        assert VerificationEngine(fake_dom).verify(field, "01/15/2024").passed is True

    def test_contenteditable_reads_text(self, fake_dom):
        fake_dom.values["#bio"] = "  Analyst  "
        field = make_field(field_type=FieldType.CONTENTEDITABLE, selector="#bio")
        assert VerificationEngine(fake_dom).verify(field, "Analyst").passed is True

    def test_read_error_reads_as_empty(self, fake_dom):
        fake_dom.fail_on["#city"] = TimeoutError("timed out")
        field = make_field(selector="#city")
        result = VerificationEngine(fake_dom).verify(field, "London")
        assert result.passed is False
        assert result.actual == ""

    def test_fatal_read_error_propagates(self, fake_dom):
        fake_dom.fail_on["#city"] = RuntimeError("Execution context was destroyed")
        with pytest.raises(RuntimeError):
            VerificationEngine(fake_dom).verify(make_field(selector="#city"), "London")
