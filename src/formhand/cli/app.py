"""Formhand CLI — Main Typer entry point.

Registers all subcommands and provides --version / --verbose global options.
"""

from __future__ import annotations

import typer
from rich.console import Console

from formhand import __version__

TAGLINE = "Deterministic form filling with tiered LLM fallback."

console = Console()

# ── Version callback ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print("formhand", style="bold cyan")
        console.print(f"  {TAGLINE}", style="dim")
        console.print(f"  v{__version__}\n", style="bold")
        raise typer.Exit()


# ── Main app ──────────────────────────────────────────────────────────────

app = typer.Typer(
    name="formhand",
    help=TAGLINE,
    rich_markup_mode="rich",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show formhand version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output.",
    ),
) -> None:
    """formhand -- match, plan and replay job-application form fills.

    Works offline on saved page snapshots and cookbook entries. Zero cost.
    """
    if verbose:
        import logging

        logging.basicConfig(level=logging.DEBUG, format="%(name)s  %(message)s")


# ── Register subcommands ──────────────────────────────────────────────────

from formhand.cli.cookbook import cookbook  # noqa: E402
from formhand.cli.plan import plan  # noqa: E402

app.command(name="plan", help="Match a saved page snapshot to user data and print the tiered plan.")(plan)
app.command(name="cookbook", help="Preview which cookbook actions would replay or be skipped.")(cookbook)
