"""``infragate resolve`` — show what the tag resolver and gate see for a commit.

Read-only: nothing is recorded in the ledger.
"""

from __future__ import annotations

import typer
from rich.table import Table

from infragate.cli import common
from infragate.cli.common import console
from infragate.core.gate import decide
from infragate.core.resolver import GitTagSource, TagResolver
from infragate.invokers.exec import ExternalToolFailure
from infragate.models.refs import CommitRef
from infragate.models.triggers import TriggerEvent


def resolve_cmd(
    commit: str = typer.Option(
        None,
        "--commit",
        "-c",
        envvar="CI_COMMIT_SHA",
        help="Commit hash to resolve. Defaults to the checkout's HEAD.",
    ),
) -> None:
    """Print the latest tag, the derived image version and the gate decisions."""
    orchestrator = common.build_orchestrator()
    source = orchestrator.tag_source

    if commit:
        try:
            ref = CommitRef(sha=commit)
        except ValueError as exc:
            console.print(f"[bold red]Invalid commit:[/bold red] {exc}")
            raise typer.Exit(code=2)
    elif isinstance(source, GitTagSource):
        ref = source.head_commit()
    else:
        console.print("[bold red]No commit given; pass --commit.[/bold red]")
        raise typer.Exit(code=2)

    try:
        resolution = TagResolver(source).resolve(ref)
    except ExternalToolFailure as exc:
        console.print("[bold red]Tag resolution failed:[/bold red]")
        console.print(str(exc), markup=False)
        raise typer.Exit(code=1)
    latest = resolution.latest_tag

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Commit", ref.sha)
    table.add_row("Latest tag", f"{latest.name} ({latest.commit.short})" if latest else "[dim]none[/dim]")
    table.add_row(
        "Tags on commit",
        ", ".join(resolution.tags_on_commit) if resolution.tags_on_commit else "[dim]none[/dim]",
    )
    table.add_row("Image version", resolution.version)
    for trigger in TriggerEvent:
        decision = decide(
            ref,
            trigger,
            latest,
            redundant_policy=orchestrator.settings.redundant_policy,
        )
        table.add_row(f"Decision ({trigger.value})", decision.value)
    console.print(table)
