"""``infragate prune`` — delete stage artifacts past their retention window."""

from __future__ import annotations

from rich.table import Table

from infragate.cli import common
from infragate.cli.common import console


def prune_cmd() -> None:
    """Remove every expired stage artifact from the artifact store."""
    orchestrator = common.build_orchestrator()
    pruned = orchestrator.artifacts.prune_expired()

    if not pruned:
        console.print("[dim]No expired artifacts.[/dim]")
        return

    table = Table(title=f"Pruned {len(pruned)} artifact(s)")
    table.add_column("Run", style="cyan")
    table.add_column("Stage")
    table.add_column("Artifact")
    table.add_column("Expired", style="dim")
    for record in pruned:
        table.add_row(
            record.run_id,
            record.stage_id,
            record.name,
            record.expires_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
        )
    console.print(table)
