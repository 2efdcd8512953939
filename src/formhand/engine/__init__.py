"""Formhand engine — field matching and tiered form-fill execution.

Provides the complete fill pipeline for one scanned page:
- FieldMatcher: matches page fields to user data / Q&A answers
- ActionPlanner: turns matches into a tiered, top-to-bottom ActionPlan
- ActionExecutor: tier-0 DOM routines with tier-3 LLM fallback
- VerificationEngine: DOM readback verification of each fill
- PlanRunner: executes and verifies a plan with per-action retries
- CookbookExecutor: replays previously learned page fills
- PageDom: Playwright-backed DOM primitives
- VisionDriver: Claude-vision automation driver for tier 3
- CostTracker: LLM token cost tracking and budget enforcement
"""

from formhand.engine.action_executor import ActionExecutor, generate_fallback_terms
from formhand.engine.action_planner import ActionPlanner, assign_tier
from formhand.engine.cookbook import (
    CookbookAction,
    CookbookExecutor,
    CookbookPageEntry,
    CookbookResult,
    page_fingerprint,
    resolve_value_template,
)
from formhand.engine.cost_tracker import BudgetExceededError, CostTracker
from formhand.engine.dom import PageDom
from formhand.engine.field_matcher import FieldMatcher, fuzzy_lookup, normalize_label
from formhand.engine.plan_runner import PageFillResult, PlanRunner
from formhand.engine.protocols import ActResult, AutomationDriver, GuiCommand, PlatformHandler, StubDriver
from formhand.engine.verification import VerificationEngine

# VisionDriver is NOT eagerly imported here; it pulls in the Anthropic SDK
# on first use.  Import it from its module:
#   from formhand.engine.vision_driver import VisionDriver

__all__ = [
    "ActResult",
    "ActionExecutor",
    "ActionPlanner",
    "AutomationDriver",
    "BudgetExceededError",
    "CookbookAction",
    "CookbookExecutor",
    "CookbookPageEntry",
    "CookbookResult",
    "CostTracker",
    "FieldMatcher",
    "GuiCommand",
    "PageDom",
    "PageFillResult",
    "PlanRunner",
    "PlatformHandler",
    "StubDriver",
    "VerificationEngine",
    "assign_tier",
    "fuzzy_lookup",
    "generate_fallback_terms",
    "normalize_label",
    "page_fingerprint",
    "resolve_value_template",
]
