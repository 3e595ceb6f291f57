"""Main Typer application — imports and registers all CLI commands.

Entry point: ``infragate`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from infragate.cli.commands.advance import advance_cmd
from infragate.cli.commands.approve import approve_cmd
from infragate.cli.commands.prune import prune_cmd
from infragate.cli.commands.resolve import resolve_cmd
from infragate.cli.commands.status import status_cmd
from infragate.cli.commands.trigger import trigger_cmd
from infragate.cli.common import load_settings

app = typer.Typer(
    name="infragate",
    help="Infragate: gated, ledger-recorded Terraform and Ansible pipelines.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="trigger", help="Start a run for a commit and trigger event.")(trigger_cmd)
app.command(name="advance", help="Continue a run from where the ledger left it.")(advance_cmd)
app.command(name="approve", help="Approve a stage waiting for manual approval.")(approve_cmd)
app.command(name="status", help="Show a run's stages, approvals and artifacts.")(status_cmd)
app.command(name="resolve", help="Show the latest tag, image version and gate decisions.")(resolve_cmd)
app.command(name="prune", help="Delete stage artifacts past their retention window.")(prune_cmd)


def configure_logging(level: str) -> None:
    """Route stdlib logging through Rich on stderr."""
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())
    handler = RichHandler(
        console=Console(stderr=True),
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    configure_logging("DEBUG" if verbose else load_settings().log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
