"""Formhand Action Planner — converts field matches into a tiered action plan.

Tier 0 is free DOM manipulation; tier 3 is an LLM act() call.  The tier is a
pure function of (field type, confidence), and the plan is ordered top to
bottom by the field's absolute Y position so execution proceeds the way a
person fills a form.
"""

from __future__ import annotations

import logging

from formhand.engine.types import (
    ActionItem,
    ActionPlan,
    ActionVerb,
    FieldMatch,
    FieldModel,
    FieldType,
    Tier,
)
from formhand.models import (
    DEFAULT_MAX_RETRIES,
    HIGH_CONFIDENCE,
    HIGH_CONFIDENCE_TIER0_TYPES,
    MEDIUM_CONFIDENCE,
    MEDIUM_CONFIDENCE_TIER0_TYPES,
)

logger = logging.getLogger("formhand.engine.action_planner")

ACTION_VERBS: dict[FieldType, ActionVerb] = {
    FieldType.TEXT: ActionVerb.FILL,
    FieldType.EMAIL: ActionVerb.FILL,
    FieldType.PHONE: ActionVerb.FILL,
    FieldType.NUMBER: ActionVerb.FILL,
    FieldType.TEXTAREA: ActionVerb.FILL,
    FieldType.PASSWORD: ActionVerb.FILL,
    FieldType.CONTENTEDITABLE: ActionVerb.FILL,
    FieldType.DATE: ActionVerb.FILL,
    FieldType.SELECT: ActionVerb.SELECT,
    FieldType.CUSTOM_DROPDOWN: ActionVerb.SELECT,
    FieldType.RADIO: ActionVerb.SELECT,
    FieldType.ARIA_RADIO: ActionVerb.SELECT,
    FieldType.CHECKBOX: ActionVerb.CHECK,
    FieldType.FILE: ActionVerb.UPLOAD,
    FieldType.UPLOAD_BUTTON: ActionVerb.UPLOAD,
    FieldType.TYPEAHEAD: ActionVerb.TYPE_AND_SELECT,
    FieldType.UNKNOWN: ActionVerb.CLICK,
}


def assign_tier(field_type: FieldType, confidence: float) -> Tier:
    """Tier for a field; rules are evaluated in order and the first hit wins."""
    if field_type in (FieldType.PASSWORD, FieldType.UNKNOWN):
        return Tier.AGENT
    if field_type is FieldType.TYPEAHEAD:
        return Tier.DOM
    if confidence >= HIGH_CONFIDENCE and field_type.value in HIGH_CONFIDENCE_TIER0_TYPES:
        return Tier.DOM
    if confidence >= MEDIUM_CONFIDENCE and field_type.value in MEDIUM_CONFIDENCE_TIER0_TYPES:
        return Tier.DOM
    return Tier.AGENT


def action_verb(field_type: FieldType) -> ActionVerb:
    return ACTION_VERBS.get(field_type, ActionVerb.FILL)


class ActionPlanner:
    """Builds an ActionPlan from matcher output."""

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        self._max_retries = max_retries

    def plan(self, matches: list[FieldMatch], unmatched: list[FieldModel]) -> ActionPlan:
        actions: list[ActionItem] = []

        for match in matches:
            tier = assign_tier(match.field.field_type, match.confidence)
            actions.append(
                ActionItem(
                    field=match.field,
                    action=action_verb(match.field.field_type),
                    value=match.value,
                    tier=tier,
                    match=match,
                    max_retries=self._max_retries,
                )
            )

        # Unmatched fields go to tier 3; the agent decides the value
        for field in unmatched:
            actions.append(
                ActionItem(
                    field=field,
                    action=action_verb(field.field_type),
                    value="",
                    tier=Tier.AGENT,
                    max_retries=self._max_retries,
                )
            )

        # Ties on Y break by scan order
        actions = sorted(actions, key=lambda a: (a.field.absolute_y, a.field.scan_index))

        tier0 = sum(1 for a in actions if a.tier is Tier.DOM)
        tier3 = len(actions) - tier0
        logger.info(
            "Planned %d actions: %d tier-0, %d tier-3 (%d unmatched)",
            len(actions),
            tier0,
            tier3,
            len(unmatched),
        )
        return ActionPlan(
            actions=actions,
            tier0_count=tier0,
            tier3_count=tier3,
            unmatched_fields=list(unmatched),
        )
