"""Formhand — tiered, cost-aware form filling for multi-page application flows."""

__version__ = "0.3.0"
