"""Formhand Plan Runner — executes an ActionPlan top to bottom.

Each action is executed, then verified by DOM readback.  An action whose
execution or verification fails is retried on the same tier until its retry
budget runs out; fast-escalate outcomes (element missing, no tier-0 routine)
are not retried because another identical attempt cannot help.

Actions run strictly in plan order.  Fatal browser errors propagate.
"""

from __future__ import annotations

import dataclasses
import logging

from formhand.engine.action_executor import ActionExecutor
from formhand.engine.protocols import LogEventCallback, safe_log_event
from formhand.engine.types import (
    ActionItem,
    ActionPlan,
    ActionVerb,
    ExecutionResult,
    FieldType,
    Tier,
    VerificationResult,
)
from formhand.engine.verification import VerificationEngine

logger = logging.getLogger("formhand.engine.plan_runner")

# Field types whose DOM value cannot be compared to the requested value
_UNVERIFIABLE_TYPES = frozenset({FieldType.FILE, FieldType.UPLOAD_BUTTON})


@dataclasses.dataclass
class ActionReport:
    """Final state of one planned action."""

    action: ActionItem
    execution: ExecutionResult
    verification: VerificationResult | None
    attempts: int

    @property
    def success(self) -> bool:
        if not self.execution.success:
            return False
        return self.verification is None or self.verification.passed


@dataclasses.dataclass
class PageFillResult:
    """Aggregate result of running one page's plan."""

    reports: list[ActionReport] = dataclasses.field(default_factory=list)
    cost_usd: float = 0.0
    duration_ms: float = 0.0

    @property
    def filled(self) -> int:
        return sum(1 for r in self.reports if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.reports if not r.success)

    @property
    def tier3_used(self) -> int:
        return sum(1 for r in self.reports if r.execution.tier_used is Tier.AGENT)

    @property
    def success(self) -> bool:
        return self.failed == 0


def expected_value(action: ActionItem) -> str:
    """Value the DOM should show after the action."""
    if action.action is ActionVerb.CHECK:
        return "checked"
    return action.value


class PlanRunner:
    """Runs a plan through an ActionExecutor and VerificationEngine."""

    def __init__(
        self,
        executor: ActionExecutor,
        verifier: VerificationEngine,
        log_event: LogEventCallback | None = None,
    ) -> None:
        self._executor = executor
        self._verifier = verifier
        self._log_event = log_event

    def run(self, plan: ActionPlan) -> PageFillResult:
        result = PageFillResult()
        for action in plan.actions:
            report = self.run_action(action)
            result.reports.append(report)
            result.cost_usd += report.execution.cost_usd
            result.duration_ms += report.execution.duration_ms

        logger.info(
            "Plan finished: %d/%d actions filled, %d tier-3, $%.4f",
            result.filled,
            len(result.reports),
            result.tier3_used,
            result.cost_usd,
        )
        return result

    def run_action(self, action: ActionItem) -> ActionReport:
        """Execute and verify one action, retrying within its budget."""
        attempts = 0
        cost = 0.0
        while True:
            attempts += 1
            execution = self._executor.execute(action)
            cost += execution.cost_usd
            verification: VerificationResult | None = None

            if execution.success and action.field.field_type not in _UNVERIFIABLE_TYPES:
                verification = self._verifier.verify(action.field, expected_value(action))
                event = "action_verified" if verification.passed else "action_verification_failed"
                safe_log_event(
                    self._log_event,
                    event,
                    {
                        "label": action.field.label,
                        "expected": verification.expected,
                        "actual": verification.actual,
                        "reason": verification.reason,
                        "tier": int(execution.tier_used),
                    },
                )

            report = ActionReport(action, execution, verification, attempts)
            if report.success or not self._should_retry(action, execution):
                execution.cost_usd = cost
                if not report.success:
                    logger.warning(
                        "Action failed after %d attempt(s): %s: %s",
                        attempts,
                        action.field.label,
                        execution.error or (verification.reason if verification else "unknown"),
                    )
                return report

            action.retry_count += 1
            logger.debug("Retrying %s (%d/%d)", action.field.label, action.retry_count, action.max_retries)

    @staticmethod
    def _should_retry(action: ActionItem, execution: ExecutionResult) -> bool:
        if not action.can_retry:
            return False
        if not execution.success and execution.outcome is not None and execution.outcome.fast_escalate:
            return False
        return True