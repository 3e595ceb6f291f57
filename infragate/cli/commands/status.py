"""``infragate status RUN_ID`` — show a run as the ledger records it.

A pure read-only projection: stage states, approvals, artifacts and hash
chain status.  Supports continuous live mode and chain verification.
"""

from __future__ import annotations

import typer
from rich.markup import escape
from rich.table import Table

from infragate.cli import common
from infragate.cli.common import console
from infragate.core.orchestrator import Orchestrator
from infragate.core.run_ledger import LedgerIntegrityError
from infragate.monitor.projection import MonitorProjection
from infragate.monitor.renderer import MonitorRenderer


def status_cmd(
    run_id: str = typer.Argument(..., help="The run to show."),
    live: bool = typer.Option(
        False,
        "--live",
        "-L",
        help="Keep re-rendering until Ctrl+C.",
    ),
    verify_chain: bool = typer.Option(
        False,
        "--verify-chain",
        "-V",
        help="Verify the hash chain before displaying.",
    ),
    refresh_hz: float = typer.Option(1.0, "--refresh", "-r", help="Refresh rate in Hz for live mode."),
) -> None:
    """Show the current state of a run."""
    orchestrator = common.build_orchestrator()
    common.resume_run(orchestrator, run_id)

    projection = MonitorProjection(orchestrator.ledger, orchestrator.definitions)
    renderer = MonitorRenderer(console=console)

    if verify_chain:
        try:
            valid = orchestrator.verify_chain()
        except LedgerIntegrityError as exc:
            console.print(f"[bold red]Chain verification failed:[/bold red] {exc}")
            valid = False
        renderer.print_chain_verification(run_id, valid)
        if not valid:
            raise typer.Exit(code=1)

    if live:
        renderer.render_live(run_id, projection, refresh_hz=refresh_hz)
        return

    renderer.print_snapshot(projection.snapshot(run_id))
    _print_approvals(orchestrator, run_id)
    pending = orchestrator.pending_approval()
    if pending is not None:
        common.report_pending(pending)


def _print_approvals(orchestrator: Orchestrator, run_id: str) -> None:
    """List the recorded approvals of the run, with their notes."""
    signals = [
        signal
        for definition in orchestrator.definitions
        for signal in orchestrator.approvals.get_approvals(run_id, definition.stage_id)
    ]
    if not signals:
        return
    table = Table(title="Approvals", show_lines=False)
    table.add_column("Stage", style="bold")
    table.add_column("Approver", style="cyan")
    table.add_column("At", style="dim")
    table.add_column("Note")
    for signal in signals:
        table.add_row(
            signal.stage_id,
            escape(signal.approver),
            signal.approved_at.strftime("%Y-%m-%d %H:%M:%S"),
            escape(signal.note) if signal.note else "[dim]-[/dim]",
        )
    console.print(table)
