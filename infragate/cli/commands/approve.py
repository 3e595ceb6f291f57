"""``infragate approve RUN_ID STAGE`` — fire the resume event for a wait point.

Approval is recorded as a content-addressed ``ApprovalSignal`` plus an
``awaiting_approval -> approved`` ledger transition.  Nothing else starts
a gated stage.
"""

from __future__ import annotations

import typer

from infragate.cli import common
from infragate.cli.common import console
from infragate.core.approval_manager import ApprovalNotExpected


def approve_cmd(
    run_id: str = typer.Argument(..., help="The run holding the wait point."),
    stage_id: str = typer.Argument(..., help="The stage to approve, e.g. provision."),
    approver: str = typer.Option(
        ...,
        "--approver",
        "-a",
        envvar="GITLAB_USER_LOGIN",
        help="Who is approving.",
    ),
    note: str = typer.Option("", "--note", "-n", help="Optional note kept with the approval."),
    advance: bool = typer.Option(
        True,
        "--advance/--no-advance",
        help="Continue the run right after approving.",
    ),
) -> None:
    """Approve a stage that is waiting for manual approval."""
    orchestrator = common.build_orchestrator()
    common.resume_run(orchestrator, run_id)

    try:
        orchestrator.approve(stage_id, approver, note=note)
    except (ApprovalNotExpected, ValueError) as exc:
        console.print(f"[bold red]Cannot approve:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(f"[green]{stage_id} approved by {approver}.[/green]")
    if advance:
        common.drive(orchestrator)
