"""Formhand Field Matcher — deterministic field-to-data matching.

Matches page fields to user data and Q&A answers with a strict priority
cascade: automation id, name attribute, exact label, fuzzy Q&A, fuzzy user
data, placeholder, and finally aria-label / platform-metadata hints.  The
first strategy that yields a non-empty value wins.

Only fields that are empty, visible and enabled are considered; the rest are
skipped silently.  Dictionary iteration order is the caller's insertion order,
so identical inputs always produce identical matches.
"""

from __future__ import annotations

import logging
import re

from formhand.engine.protocols import PlatformHandler
from formhand.engine.types import FieldMatch, FieldModel, MatchMethod, PageModel
from formhand.models import CONFIDENCE

logger = logging.getLogger("formhand.engine.field_matcher")

# Normalized HTML name attribute -> canonical data key
NAME_TO_KEY: dict[str, str] = {
    "firstname": "first_name",
    "lastname": "last_name",
    "fullname": "full_name",
    "email": "email",
    "emailaddress": "email",
    "phone": "phone",
    "phonenumber": "phone",
    "addressline1": "street",
    "street": "street",
    "city": "city",
    "state": "state",
    "province": "state",
    "postalcode": "zip",
    "zip": "zip",
    "zipcode": "zip",
    "country": "country",
}

_SUFFIX_RE = re.compile(r"(ating|ting|ing|tion|sion|ment|ness|able|ible|ed|ly|er|est|ies|es|s)$", re.I)


def normalize_label(label: str) -> str:
    """Strip ``*``, "required", "(optional)", collapse whitespace, lowercase."""
    text = label.replace("*", "")
    text = re.sub(r"\brequired\b", "", text, flags=re.I)
    text = re.sub(r"\(optional\)", "", text, flags=re.I)
    return re.sub(r"\s+", " ", text).strip().lower()


def normalize_name_attr(name: str) -> str:
    return re.sub(r"[-_\s]", "", name).lower()


def stem(word: str) -> str:
    """Strip one common English suffix ("managing" -> "manag")."""
    return _SUFFIX_RE.sub("", word)


def _significant_words(text: str) -> list[str]:
    return [w for w in text.split() if len(w) > 3]


def fuzzy_lookup(raw_label: str, haystack: dict[str, str]) -> tuple[str, str] | None:
    """5-pass fuzzy match of a label against the keys of ``haystack``.

    Returns ``(key, value)`` for the first qualifying key, or None.  A later
    pass runs only when every earlier pass found nothing.

    1. exact normalized match
    2. label contains a key whose length is >= 60% of the label's
    3. key contains the label (label > 3 chars and >= 50% of the key's length)
    4. >= 2 overlapping words (> 3 chars); every label word must be in the key
    5. >= 2 overlapping suffix-stripped stems
    """
    label = normalize_label(raw_label)
    if len(label) < 2:
        return None

    normalized = [(k, v, normalize_label(k)) for k, v in haystack.items()]

    # Pass 1: exact
    for k, v, k_norm in normalized:
        if k_norm == label:
            return k, v

    # Pass 2: label contains key
    for k, v, k_norm in normalized:
        if k_norm and len(k_norm) >= len(label) * 0.6 and k_norm in label:
            return k, v

    # Pass 3: key contains label
    if len(label) > 3:
        for k, v, k_norm in normalized:
            if len(label) >= len(k_norm) * 0.5 and label in k_norm:
                return k, v

    # Pass 4: all significant label words present in the key
    label_words = _significant_words(label)
    if len(label_words) >= 2:
        best: tuple[str, str] | None = None
        best_overlap = 0
        for k, v, k_norm in normalized:
            key_words = set(_significant_words(k_norm))
            overlap = [w for w in label_words if w in key_words]
            if len(overlap) >= 2 and len(overlap) == len(label_words) and len(overlap) > best_overlap:
                best_overlap = len(overlap)
                best = (k, v)
        if best is not None:
            return best

    # Pass 5: stem overlap
    label_stems = {stem(w) for w in label_words}
    if len(label_stems) >= 2:
        best = None
        best_overlap = 0
        for k, v, k_norm in normalized:
            key_stems = [stem(w) for w in _significant_words(k_norm)]
            overlap = sum(1 for s in key_stems if s in label_stems)
            if overlap >= 2 and overlap > best_overlap:
                best_overlap = overlap
                best = (k, v)
        if best is not None:
            return best

    return None


class FieldMatcher:
    """Assigns each eligible field a best-effort value from user data / Q&A."""

    def __init__(
        self,
        user_data: dict[str, str],
        qa_answers: dict[str, str] | None = None,
        platform_handler: PlatformHandler | None = None,
    ) -> None:
        self._user_data = {str(k): "" if v is None else str(v) for k, v in user_data.items()}
        self._qa_answers = {str(k): "" if v is None else str(v) for k, v in (qa_answers or {}).items()}
        self._platform = platform_handler

    def match(self, page_model: PageModel) -> tuple[list[FieldMatch], list[FieldModel]]:
        """Match all eligible fields.

        Returns ``(matches, unmatched)``.  Fields that already hold a value, are
        hidden or are disabled appear in neither list.
        """
        matches: list[FieldMatch] = []
        unmatched: list[FieldModel] = []

        for field in page_model.fields:
            if not field.is_empty or not field.is_visible or field.is_disabled:
                continue

            result = self.find_best_match(field)
            if result is not None:
                matches.append(result)
                logger.debug(
                    "Field matched: %s (%s) -> %s via %s @ %.2f",
                    field.id,
                    field.label,
                    result.data_key,
                    result.method.value,
                    result.confidence,
                )
            else:
                unmatched.append(field)
                if field.is_required:
                    logger.warning(
                        "Required field unmatched: %s label=%r type=%s automation_id=%s",
                        field.id,
                        field.label,
                        field.field_type.value,
                        field.automation_id,
                    )

        return matches, unmatched

    def find_best_match(self, field: FieldModel) -> FieldMatch | None:
        """Try each strategy in priority order; first non-empty value wins."""
        strategies = (
            self._match_by_automation_id,
            self._match_by_name_attr,
            self._match_by_label_exact,
            self._match_by_qa,
            self._match_by_label_fuzzy,
            self._match_by_placeholder,
            self._match_by_default,
        )
        for strategy in strategies:
            result = strategy(field)
            if result is not None:
                return result
        return None

    # -- Strategies -------------------------------------------------------

    def _make(self, field: FieldModel, key: str, value: str, method: MatchMethod) -> FieldMatch:
        return FieldMatch(
            field=field,
            data_key=key,
            value=value,
            confidence=CONFIDENCE[method.value],
            method=method,
        )

    def _lookup_key(self, key: str) -> str:
        """Value for a canonical key: user data first, then Q&A."""
        return self._user_data.get(key) or self._qa_answers.get(key) or ""

    def _match_by_automation_id(self, field: FieldModel) -> FieldMatch | None:
        if not field.automation_id or self._platform is None:
            return None
        data_key = self._platform.get_automation_id_map().get(field.automation_id)
        if not data_key:
            return None
        value = self._lookup_key(data_key)
        if not value:
            return None
        return self._make(field, data_key, value, MatchMethod.AUTOMATION_ID)

    def _match_by_name_attr(self, field: FieldModel) -> FieldMatch | None:
        if not field.name:
            return None
        data_key = NAME_TO_KEY.get(normalize_name_attr(field.name))
        if not data_key:
            return None
        value = self._lookup_key(data_key)
        if not value:
            return None
        return self._make(field, data_key, value, MatchMethod.NAME_ATTR)

    def _match_by_label_exact(self, field: FieldModel) -> FieldMatch | None:
        if not field.label:
            return None
        label_norm = normalize_label(field.label)
        if not label_norm:
            return None

        for source in (self._user_data, self._qa_answers):
            for k, v in source.items():
                if v and normalize_label(k) == label_norm:
                    return self._make(field, k, v, MatchMethod.LABEL_EXACT)

        # Platform label map: displayed label -> canonical key
        if self._platform is not None:
            for label_text, data_key in self._platform.get_label_map().items():
                if normalize_label(label_text) == label_norm:
                    value = self._lookup_key(data_key)
                    if value:
                        return self._make(field, data_key, value, MatchMethod.LABEL_EXACT)
        return None

    def _match_by_qa(self, field: FieldModel) -> FieldMatch | None:
        label = field.label or field.aria_label
        if not label:
            return None
        result = fuzzy_lookup(label, self._qa_answers)
        if result is None or not result[1]:
            return None
        return self._make(field, result[0], result[1], MatchMethod.QA_MATCH)

    def _match_by_label_fuzzy(self, field: FieldModel) -> FieldMatch | None:
        label = field.label or field.aria_label
        if not label:
            return None
        result = fuzzy_lookup(label, self._user_data)
        if result is None or not result[1]:
            return None
        return self._make(field, result[0], result[1], MatchMethod.LABEL_FUZZY)

    def _match_by_placeholder(self, field: FieldModel) -> FieldMatch | None:
        if not field.placeholder:
            return None
        placeholder_norm = normalize_label(field.placeholder)
        for k, v in self._user_data.items():
            if v and normalize_label(k) == placeholder_norm:
                return self._make(field, k, v, MatchMethod.PLACEHOLDER)
        result = fuzzy_lookup(field.placeholder, self._user_data)
        if result is None or not result[1]:
            return None
        return self._make(field, result[0], result[1], MatchMethod.PLACEHOLDER)

    def _match_by_default(self, field: FieldModel) -> FieldMatch | None:
        """Aria-label (when it differs from the label) or platform hints vs Q&A."""
        hints: list[str] = []
        if field.aria_label and field.aria_label != field.label:
            hints.append(field.aria_label)
        if field.platform_meta:
            hints.extend(v for v in field.platform_meta.values() if v)

        for hint in hints:
            result = fuzzy_lookup(hint, self._qa_answers)
            if result is not None and result[1]:
                return self._make(field, result[0], result[1], MatchMethod.DEFAULT_VALUE)
        return None
