"""formhand plan — Match a saved page snapshot and print the tiered plan.

Reads a PageModel snapshot (YAML or JSON, as produced by a page scanner) plus
user data and optional Q&A answers, runs the field matcher and action
planner, and shows which fields would be filled on tier 0 (free DOM) and
which would escalate to tier 3 (LLM).  No browser, no API calls.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from formhand.cli.common import load_config, load_mapping, load_string_map
from formhand.engine.action_planner import ActionPlanner
from formhand.engine.field_matcher import FieldMatcher
from formhand.engine.platforms import get_platform_handler
from formhand.engine.types import ActionPlan, PageModel, Tier

output_console = Console()  # stdout for machine-readable output


def _plan_to_dict(plan: ActionPlan) -> dict:
    return {
        "tier0_count": plan.tier0_count,
        "tier3_count": plan.tier3_count,
        "unmatched": [f.id for f in plan.unmatched_fields],
        "actions": [
            {
                "field_id": a.field.id,
                "label": a.field.label,
                "field_type": a.field.field_type.value,
                "action": a.action.value,
                "tier": int(a.tier),
                "value": a.value,
                "data_key": a.match.data_key if a.match else None,
                "method": a.match.method.value if a.match else None,
                "confidence": a.match.confidence if a.match else None,
            }
            for a in plan.actions
        ],
    }


def _render_table(plan: ActionPlan, page: PageModel) -> Table:
    table = Table(title=f"Plan for {page.url or 'page'}", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Field")
    table.add_column("Type", style="cyan")
    table.add_column("Key")
    table.add_column("Method", style="dim")
    table.add_column("Conf", justify="right")
    table.add_column("Tier", justify="center")
    table.add_column("Value")

    for i, a in enumerate(plan.actions, start=1):
        tier_style = "green" if a.tier is Tier.DOM else "yellow"
        table.add_row(
            str(i),
            a.field.label or a.field.id,
            a.field.field_type.value,
            a.match.data_key if a.match else "[red]unmatched[/red]",
            a.match.method.value if a.match else "",
            f"{a.match.confidence:.2f}" if a.match else "",
            f"[{tier_style}]{int(a.tier)}[/{tier_style}]",
            a.value,
        )
    return table


def plan(
    page_file: Path = typer.Argument(..., help="Page snapshot (YAML or JSON)."),
    data: Path = typer.Option(..., "--data", "-d", help="User data mapping (YAML or JSON)."),
    qa: Path | None = typer.Option(None, "--qa", help="Q&A answers mapping (YAML or JSON)."),
    platform: str | None = typer.Option(None, "--platform", "-p", help="Platform id (e.g. workday)."),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="formhand config YAML."),
    as_json: bool = typer.Option(False, "--json", help="Print the plan as JSON on stdout."),
) -> None:
    """Match fields and print the tiered action plan."""
    config = load_config(config_path)
    page = PageModel.from_dict(load_mapping(page_file, "Page snapshot"))
    user_data = load_string_map(data, "User data")
    qa_answers = load_string_map(qa, "Q&A")

    platform_id = platform or (config.platform if config.platform != "generic" else page.platform)
    handler = get_platform_handler(platform_id)

    matches, unmatched = FieldMatcher(user_data, qa_answers, handler).match(page)
    action_plan = ActionPlanner(max_retries=config.max_retries).plan(matches, unmatched)

    if as_json:
        output_console.print_json(json.dumps(_plan_to_dict(action_plan)))
        return

    output_console.print(_render_table(action_plan, page))
    output_console.print(
        f"\n[bold]{len(action_plan.actions)}[/bold] actions: "
        f"[green]{action_plan.tier0_count} tier-0[/green], "
        f"[yellow]{action_plan.tier3_count} tier-3[/yellow] "
        f"({len(action_plan.unmatched_fields)} unmatched, platform: {handler.platform_id if handler else 'generic'})"
    )
