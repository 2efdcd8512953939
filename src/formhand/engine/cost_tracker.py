"""Formhand Cost Tracker — token cost accounting for tier-3 LLM calls.

Records per-call costs (model, tokens in/out, USD), warns once a configurable
share of the per-run budget is spent, and hard-stops with BudgetExceededError
when the budget is exceeded.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging

from formhand.models import DEFAULT_BUDGET_USD, PRICING

logger = logging.getLogger("formhand.engine.cost_tracker")

MODEL_PRICING: dict[str, tuple[float, float]] = {
    model_id: (prices["input"], prices["output"]) for model_id, prices in PRICING.items()
}

# Pricing assumed for model ids missing from the table
_FALLBACK_PRICING = (3.00, 15.00)


class BudgetExceededError(Exception):
    """Raised when a run exceeds its per-run cost budget."""

    pass


@dataclasses.dataclass
class APICall:
    """Record of a single API call."""

    timestamp: str
    model: str
    input_tokens: int
    output_tokens: int
    cost_usd: float
    purpose: str  # e.g. "tier3_act"


class CostTracker:
    """Tracks LLM token costs for a single run and enforces the budget."""

    def __init__(self, per_run_usd: float = DEFAULT_BUDGET_USD, warn_at_pct: int = 80) -> None:
        self._per_run_usd = per_run_usd
        self._warn_at_pct = warn_at_pct
        self._calls: list[APICall] = []
        self._total_cost: float = 0.0
        self._warning_issued: bool = False
        self._budget_exceeded: bool = False

    def record_call(self, model: str, input_tokens: int, output_tokens: int, purpose: str = "") -> APICall:
        """Record an API call and return the call record.

        Raises BudgetExceededError if the per-run cap is exceeded.
        """
        cost = self.calculate_cost(model, input_tokens, output_tokens)
        call = APICall(
            timestamp=dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds"),
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=round(cost, 6),
            purpose=purpose,
        )
        self._calls.append(call)
        self._total_cost += cost

        if not self._warning_issued and self._per_run_usd > 0:
            pct_used = (self._total_cost / self._per_run_usd) * 100
            if pct_used >= self._warn_at_pct:
                self._warning_issued = True
                logger.warning(
                    "Run cost at %.0f%% of budget ($%.4f of $%.2f)",
                    pct_used,
                    self._total_cost,
                    self._per_run_usd,
                )

        if self._per_run_usd > 0 and self._total_cost > self._per_run_usd:
            self._budget_exceeded = True
            raise BudgetExceededError(f"Run budget exceeded: ${self._total_cost:.4f} > ${self._per_run_usd:.2f} limit")

        return call

    @property
    def per_run_usd(self) -> float:
        return self._per_run_usd

    @property
    def warning_issued(self) -> bool:
        return self._warning_issued

    @property
    def budget_exceeded(self) -> bool:
        return self._budget_exceeded

    @property
    def total_cost(self) -> float:
        return round(self._total_cost, 6)

    @property
    def calls(self) -> list[APICall]:
        return list(self._calls)

    @staticmethod
    def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
        """USD cost for a single API call."""
        input_price, output_price = MODEL_PRICING.get(model, _FALLBACK_PRICING)
        return (input_tokens / 1_000_000) * input_price + (output_tokens / 1_000_000) * output_price
