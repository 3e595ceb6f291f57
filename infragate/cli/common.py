"""Helpers shared by the CLI commands: wiring, run lookup, error reporting."""

from __future__ import annotations

import typer
from pydantic import ValidationError
from rich.console import Console

from infragate.config import Settings
from infragate.core.artifact_store import ArtifactIntegrityError, MissingArtifact
from infragate.core.gate import PendingApproval
from infragate.core.orchestrator import Orchestrator, RunNotFoundError
from infragate.invokers.exec import ExternalToolFailure
from infragate.invokers.terraform import PlanNotProduced
from infragate.models.run import RunContext
from infragate.monitor.projection import MonitorProjection
from infragate.monitor.renderer import MonitorRenderer

console = Console()


def load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        console.print(f"[bold red]Invalid configuration:[/bold red]\n{exc}")
        raise typer.Exit(code=2)


def build_orchestrator(settings: Settings | None = None) -> Orchestrator:
    """Wire an orchestrator from the environment's settings."""
    return Orchestrator(settings or load_settings())


def resume_run(orchestrator: Orchestrator, run_id: str) -> RunContext:
    """Resume *run_id*, or list the runs the ledger does know and exit 1."""
    try:
        return orchestrator.resume(run_id)
    except RunNotFoundError:
        console.print(f"[bold red]Run not found:[/bold red] {run_id}")
        all_runs = orchestrator.ledger.get_all_run_ids()
        if all_runs:
            console.print("\n[bold]Available runs:[/bold]")
            for rid in all_runs[:10]:
                console.print(f"  [cyan]{rid}[/cyan]")
            if len(all_runs) > 10:
                console.print(f"  [dim]... and {len(all_runs) - 10} more[/dim]")
        raise typer.Exit(code=1)


def show_run(orchestrator: Orchestrator, run_id: str) -> None:
    projection = MonitorProjection(orchestrator.ledger, orchestrator.definitions)
    MonitorRenderer(console=console).print_snapshot(projection.snapshot(run_id))


def report_pending(pending: PendingApproval) -> None:
    """Explain a wait point.  Waiting is not a failure: the caller exits 0."""
    console.print(
        f"[bold cyan]{pending.stage_id} is waiting for manual approval.[/bold cyan]"
    )
    console.print(
        f"[dim]Resume with: infragate approve {pending.run_id} "
        f"{pending.stage_id} --approver <name>[/dim]"
    )


def drive(orchestrator: Orchestrator, *, single_step: bool = False) -> None:
    """Advance the active run and report how it stopped.

    Exits 1 as soon as a stage fails for any reason the orchestrator
    records in the ledger.  Returns normally on a wait point or once the run is done.
    """
    run_id = orchestrator.run.run_id
    try:
        if single_step:
            result = orchestrator.advance()
            pending = result if isinstance(result, PendingApproval) else None
        else:
            pending = orchestrator.run_to_completion()
    except MissingArtifact as exc:
        show_run(orchestrator, run_id)
        console.print(f"[bold red]Missing artifact:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except ExternalToolFailure as exc:
        show_run(orchestrator, run_id)
        console.print(f"[bold red]External tool failed (exit {exc.exit_code}):[/bold red]")
        console.print(str(exc), markup=False, highlight=False)
        raise typer.Exit(code=1)
    except (PlanNotProduced, ArtifactIntegrityError) as exc:
        show_run(orchestrator, run_id)
        console.print("[bold red]Stage failed:[/bold red]")
        console.print(str(exc), markup=False, highlight=False)
        raise typer.Exit(code=1)

    show_run(orchestrator, run_id)
    if pending is not None:
        report_pending(pending)
    else:
        console.print(f"[bold]Run {run_id}:[/bold] {orchestrator.phase().value}")
