"""formhand cookbook — Preview a cookbook replay without a browser.

Resolves every recorded action's value template against the given user data
and applies the health threshold, showing which actions a replay would
attempt and which it would skip.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from formhand.cli.common import load_config, load_mapping, load_string_map
from formhand.engine.cookbook import CookbookExecutor, CookbookPageEntry

output_console = Console()


def cookbook(
    entry_file: Path = typer.Argument(..., help="Cookbook page entry (YAML or JSON)."),
    data: Path = typer.Option(..., "--data", "-d", help="User data mapping (YAML or JSON)."),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="formhand config YAML."),
    min_health: float | None = typer.Option(None, "--min-health", help="Override the minimum action health."),
) -> None:
    """Show which cookbook actions would be replayed or skipped."""
    config = load_config(config_path)
    entry = CookbookPageEntry.from_dict(load_mapping(entry_file, "Cookbook entry"))
    user_data = load_string_map(data, "User data")

    executor = CookbookExecutor(
        min_action_health=config.min_action_health if min_health is None else min_health,
        max_consecutive_failures=config.max_consecutive_failures,
        attempted_ratio_threshold=config.attempted_ratio_threshold,
        failure_ratio_threshold=config.failure_ratio_threshold,
        settle_ms=config.settle_ms,
        dropdown_open_ms=config.dropdown_open_ms,
        typing_delay_ms=config.typing_delay_ms,
    )
    steps = executor.preview(entry, user_data)

    table = Table(title=f"Cookbook {entry.url_pattern or entry.page_fingerprint}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Field")
    table.add_column("Health", justify="right")
    table.add_column("Value")
    table.add_column("Status")
    for step in steps:
        status = "[green]replay[/green]" if step.skip_reason is None else f"[yellow]skip: {step.skip_reason}[/yellow]"
        table.add_row(
            str(step.index),
            step.label,
            f"{step.health:.2f}",
            step.value if step.value is not None else "",
            status,
        )
    output_console.print(table)

    attempted = sum(1 for s in steps if s.skip_reason is None)
    total = len(steps)
    ratio = attempted / total if total else 0.0
    verdict = "[green]eligible[/green]" if ratio > config.attempted_ratio_threshold else "[red]too many skips[/red]"
    output_console.print(f"\n{attempted}/{total} actions would be attempted ({ratio:.0%}) -- {verdict}")
