"""Formhand configuration management."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from formhand.models import (
    COOKBOOK_MAX_FAILURE_RATIO,
    COOKBOOK_MIN_ATTEMPTED_RATIO,
    DEFAULT_BUDGET_USD,
    DEFAULT_DROPDOWN_OPEN_MS,
    DEFAULT_MAX_CONSECUTIVE_FAILURES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MIN_ACTION_HEALTH,
    DEFAULT_SETTLE_MS,
    DEFAULT_TYPING_DELAY_MS,
    MODELS,
)


class FormhandConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


# YAML key -> (attribute, coercion)
_FIELD_TYPES: dict[str, type] = {
    "platform": str,
    "max_retries": int,
    "min_action_health": float,
    "max_consecutive_failures": int,
    "attempted_ratio_threshold": float,
    "failure_ratio_threshold": float,
    "settle_ms": int,
    "dropdown_open_ms": int,
    "typing_delay_ms": int,
    "model": str,
    "budget": float,
}


@dataclass
class FormhandConfig:
    """Configuration for a form-filling run."""

    platform: str = "generic"

    # Retry / replay policy
    max_retries: int = DEFAULT_MAX_RETRIES
    min_action_health: float = DEFAULT_MIN_ACTION_HEALTH
    max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES
    attempted_ratio_threshold: float = COOKBOOK_MIN_ATTEMPTED_RATIO
    failure_ratio_threshold: float = COOKBOOK_MAX_FAILURE_RATIO

    # Browser timing
    settle_ms: int = DEFAULT_SETTLE_MS
    dropdown_open_ms: int = DEFAULT_DROPDOWN_OPEN_MS
    typing_delay_ms: int = DEFAULT_TYPING_DELAY_MS

    # Tier-3 driver
    model: str = MODELS["act"]
    budget: float = DEFAULT_BUDGET_USD
    anthropic_api_key: str = field(default="", repr=False)

    @classmethod
    def from_file(cls, config_path: Path) -> FormhandConfig:
        """Load config from a YAML file."""
        if not config_path.exists():
            raise FormhandConfigError(
                f"Config file not found: {config_path}\n\nTo fix: create it or omit --config"
            )
        with open(config_path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise FormhandConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise FormhandConfigError(f"Config file must be a YAML mapping: {config_path}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FormhandConfig:
        """Create config from a dictionary. Unknown keys are ignored."""
        config = cls()
        for key, coerce in _FIELD_TYPES.items():
            if key not in data or data[key] is None:
                continue
            raw = data[key]
            if coerce is not str and isinstance(raw, bool):
                raise FormhandConfigError(f"Config key '{key}' must be a number, got: {raw!r}")
            try:
                setattr(config, key, coerce(raw))
            except (TypeError, ValueError) as exc:
                raise FormhandConfigError(
                    f"Config key '{key}' has an invalid value: {raw!r}\n\n"
                    f"To fix: use a {coerce.__name__} value"
                ) from exc
        if "anthropic_api_key" in data and data["anthropic_api_key"]:
            config.anthropic_api_key = str(data["anthropic_api_key"])
        config.validate()
        return config

    def validate(self) -> None:
        """Raise FormhandConfigError when a value is out of range."""
        if self.max_retries < 0:
            raise FormhandConfigError(f"max_retries must be >= 0, got: {self.max_retries}")
        if not 0.0 <= self.min_action_health <= 1.0:
            raise FormhandConfigError(
                f"min_action_health must be between 0 and 1, got: {self.min_action_health}"
            )
        if self.max_consecutive_failures < 1:
            raise FormhandConfigError(
                f"max_consecutive_failures must be >= 1, got: {self.max_consecutive_failures}"
            )
        for name in ("attempted_ratio_threshold", "failure_ratio_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise FormhandConfigError(f"{name} must be between 0 and 1, got: {value}")
        for name in ("settle_ms", "dropdown_open_ms", "typing_delay_ms"):
            if getattr(self, name) < 0:
                raise FormhandConfigError(f"{name} must be >= 0, got: {getattr(self, name)}")
        if self.budget < 0:
            raise FormhandConfigError(f"budget must be >= 0, got: {self.budget}")
