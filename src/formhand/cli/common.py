"""Shared loaders and error output for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
import yaml
from rich.console import Console
from rich.panel import Panel

from formhand.config import FormhandConfig, FormhandConfigError

console = Console(stderr=True)


def print_error(message: str, title: str = "Error") -> None:
    console.print(Panel(f"[red]{message}[/red]", title=f"[red]{title}[/red]", border_style="red"))


def load_mapping(path: Path, what: str) -> dict[str, Any]:
    """Load a YAML or JSON mapping; exit 2 with a readable error otherwise."""
    if not path.is_file():
        print_error(f"{what} file not found: {path}")
        raise typer.Exit(code=2)
    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        print_error(f"Could not parse {what} file {path}: {exc}")
        raise typer.Exit(code=2) from exc
    if not isinstance(data, dict):
        print_error(f"{what} file must contain a mapping: {path}")
        raise typer.Exit(code=2)
    return data


def load_string_map(path: Path | None, what: str) -> dict[str, str]:
    """A flat key -> string mapping (user data, Q&A answers)."""
    if path is None:
        return {}
    data = load_mapping(path, what)
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


def load_config(path: Path | None) -> FormhandConfig:
    if path is None:
        return FormhandConfig()
    try:
        return FormhandConfig.from_file(path)
    except FormhandConfigError as exc:
        print_error(str(exc), title="Config Error")
        raise typer.Exit(code=2) from exc
