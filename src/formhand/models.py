"""Centralized engine constants, model configuration and pricing."""

# Confidence assigned by each matching strategy
CONFIDENCE = {
    "automation_id": 0.95,
    "name_attr": 0.95,
    "label_exact": 0.90,
    "qa_match": 0.85,
    "label_fuzzy": 0.75,
    "placeholder": 0.70,
    "default_value": 0.60,
}

# Confidence bands for tier-0 assignment
HIGH_CONFIDENCE = 0.80
MEDIUM_CONFIDENCE = 0.60

# Field types allowed on tier 0 in each confidence band
HIGH_CONFIDENCE_TIER0_TYPES = frozenset(
    {
        "text",
        "email",
        "phone",
        "number",
        "textarea",
        "select",
        "checkbox",
        "date",
        "file",
        "custom_dropdown",
        "radio",
        "aria_radio",
    }
)
MEDIUM_CONFIDENCE_TIER0_TYPES = frozenset(
    {
        "text",
        "email",
        "phone",
        "number",
        "textarea",
        "select",
        "custom_dropdown",
        "radio",
        "aria_radio",
    }
)

# Retry / health limits
DEFAULT_MAX_RETRIES = 2
DEFAULT_MIN_ACTION_HEALTH = 0.3
DEFAULT_MAX_CONSECUTIVE_FAILURES = 3
COOKBOOK_MIN_ATTEMPTED_RATIO = 0.75
COOKBOOK_MAX_FAILURE_RATIO = 0.3

# Browser timing (milliseconds)
DEFAULT_SETTLE_MS = 300
DEFAULT_DROPDOWN_OPEN_MS = 500
DEFAULT_TYPING_DELAY_MS = 50

# Model IDs for the vision driver
MODELS = {
    "act": "claude-sonnet-4-20250514",
    "act_simple": "claude-haiku-4-5-20251001",
}

# Pricing per million tokens (USD)
PRICING = {
    "claude-haiku-4-5-20251001": {"input": 0.80, "output": 4.00},
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
}

# Flat cost estimates per action (USD)
GUI_REPLAY_COST_USD = 0.001

# Default budget per run
DEFAULT_BUDGET_USD = 1.00
