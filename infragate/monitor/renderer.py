"""Rich terminal renderer for the run monitor.

Turns a ``RunSnapshot`` into Rich renderables with color-coded stage
states, and offers a continuous ``rich.live`` mode for watching a run
from another terminal while it waits on approvals.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from infragate.models.stages import StageState

if TYPE_CHECKING:
    from infragate.monitor.projection import MonitorProjection, RunSnapshot


# ---------------------------------------------------------------------------
# State -> Rich style mapping
# ---------------------------------------------------------------------------

_STATE_STYLES: dict[StageState, str] = {
    StageState.PASSED: "bold green",
    StageState.FAILED: "bold red",
    StageState.RUNNING: "bold yellow",
    StageState.AWAITING_APPROVAL: "bold cyan",
    StageState.APPROVED: "cyan",
    StageState.NOT_STARTED: "dim",
    StageState.SKIPPED: "dim",
    StageState.BLOCKED: "bold red",
}

_STATE_LABELS: dict[StageState, str] = {
    StageState.PASSED: "[green]PASSED[/green]",
    StageState.FAILED: "[bold red]FAILED[/bold red]",
    StageState.RUNNING: "[yellow]RUNNING[/yellow]",
    StageState.AWAITING_APPROVAL: "[bold cyan]AWAITING APPROVAL[/bold cyan]",
    StageState.APPROVED: "[cyan]APPROVED[/cyan]",
    StageState.NOT_STARTED: "[dim]NOT STARTED[/dim]",
    StageState.SKIPPED: "[dim]SKIPPED[/dim]",
    StageState.BLOCKED: "[bold red]BLOCKED[/bold red]",
}


class MonitorRenderer:
    """Renders ``RunSnapshot`` as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Single snapshot render
    # ------------------------------------------------------------------

    def render_snapshot(self, snapshot: RunSnapshot) -> Panel:
        """Render a snapshot as a Panel holding the stage table and a summary."""
        table = self._build_stage_table(snapshot)

        summary_parts: list[str] = [
            f"[bold]Run:[/bold] {snapshot.run_id}",
            f"[bold]Phase:[/bold] {snapshot.phase.value}",
            f"[bold]Progress:[/bold] {snapshot.completed_count}/{snapshot.total_stages}",
            f"[bold]Artifacts:[/bold] {snapshot.artifact_count}",
        ]
        run = snapshot.run
        if run is not None:
            summary_parts[1:1] = [
                f"[bold]Commit:[/bold] {run.commit.short}",
                f"[bold]Trigger:[/bold] {run.trigger.value}",
                f"[bold]Env:[/bold] {run.environment.value}",
                f"[bold]Image:[/bold] {run.image_version}",
            ]
        if snapshot.awaiting_approval:
            names = ", ".join(s.stage_id for s in snapshot.awaiting_approval)
            summary_parts.append(f"[cyan][bold]Awaiting approval:[/bold] {names}[/cyan]")

        chain_status = (
            "[green]valid[/green]" if snapshot.chain_valid else "[bold red]BROKEN[/bold red]"
        )
        summary_parts.append(f"[bold]Chain:[/bold] {chain_status}")

        summary = "  |  ".join(summary_parts)
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title="[bold]Infragate Run Monitor[/bold]",
            subtitle=f"Last updated: {snapshot.last_updated.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            border_style="blue",
            padding=(1, 2),
        )

    def _build_stage_table(self, snapshot: RunSnapshot) -> Table:
        table = Table(
            show_header=True,
            header_style="bold cyan",
            expand=True,
            show_lines=False,
            pad_edge=True,
        )

        table.add_column("#", style="dim", width=3, justify="right")
        table.add_column("Stage", min_width=20)
        table.add_column("State", min_width=18, justify="center")
        table.add_column("Details", min_width=20)
        table.add_column("Artifacts", justify="right", width=10)

        for i, stage in enumerate(snapshot.stages):
            name_style = _STATE_STYLES.get(stage.state, "")
            state_display = _STATE_LABELS.get(stage.state, stage.state.value)

            details_parts: list[str] = []
            if stage.reason:
                details_parts.append(f"[red]{escape(stage.reason)}[/red]")
            if stage.exit_code is not None:
                details_parts.append(f"[red]exit {stage.exit_code}[/red]")
            if stage.approver:
                details_parts.append(f"[cyan]approved by {stage.approver}[/cyan]")
            elif stage.requires_approval and stage.state == StageState.NOT_STARTED:
                details_parts.append("[dim]manual approval[/dim]")
            if stage.entered_at:
                details_parts.append(f"[dim]{stage.entered_at.strftime('%H:%M:%S')}[/dim]")
            details = " | ".join(details_parts) if details_parts else "[dim]-[/dim]"

            artifact_count = (
                str(len(stage.artifact_refs)) if stage.artifact_refs else "[dim]0[/dim]"
            )

            table.add_row(
                str(i),
                f"[{name_style}]{stage.display_name}[/{name_style}]",
                state_display,
                details,
                artifact_count,
            )

        return table

    # ------------------------------------------------------------------
    # Continuous live rendering
    # ------------------------------------------------------------------

    def render_live(
        self,
        run_id: str,
        projection: MonitorProjection,
        *,
        refresh_hz: float = 1.0,
    ) -> None:
        """Re-render the run until interrupted with Ctrl+C.

        The ledger is re-read on every refresh.
        """
        interval = 1.0 / max(refresh_hz, 0.1)

        with Live(console=self.console, refresh_per_second=refresh_hz) as live:
            try:
                while True:
                    live.update(self.render_snapshot(projection.snapshot(run_id)))
                    time.sleep(interval)
            except KeyboardInterrupt:
                live.update(self.render_snapshot(projection.snapshot(run_id)))

    # ------------------------------------------------------------------
    # Standalone print
    # ------------------------------------------------------------------

    def print_snapshot(self, snapshot: RunSnapshot) -> None:
        self.console.print(self.render_snapshot(snapshot))

    def print_chain_verification(self, run_id: str, valid: bool) -> None:
        if valid:
            self.console.print(f"[green]Hash chain for run {run_id} is valid.[/green]")
        else:
            self.console.print(f"[bold red]Hash chain for run {run_id} is BROKEN![/bold red]")
