"""``infragate advance RUN_ID`` — continue a run from the ledger."""

from __future__ import annotations

import typer

from infragate.cli import common


def advance_cmd(
    run_id: str = typer.Argument(..., help="The run to continue."),
    step: bool = typer.Option(
        False,
        "--step",
        help="Run a single stage instead of continuing to the next wait point.",
    ),
) -> None:
    """Continue a run until it waits for approval, finishes or fails."""
    orchestrator = common.build_orchestrator()
    common.resume_run(orchestrator, run_id)
    common.drive(orchestrator, single_step=step)
