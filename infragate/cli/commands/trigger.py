"""``infragate trigger`` — start a run for a commit and drive it.

The trigger event defaults to what GitLab reports in
``CI_PIPELINE_SOURCE``/``CI_COMMIT_TAG``, and the commit to
``CI_COMMIT_SHA`` or the checkout's HEAD.
"""

from __future__ import annotations

import os

import typer

from infragate.cli import common
from infragate.cli.common import console
from infragate.core.gate import RedundantCommit
from infragate.core.preflight import ConfigurationError
from infragate.core.resolver import GitTagSource
from infragate.invokers.exec import ExternalToolFailure
from infragate.models.triggers import Environment, RunDecision, TriggerEvent


def _event_from_environment() -> TriggerEvent:
    source = os.environ.get("CI_PIPELINE_SOURCE", "")
    if not source:
        return TriggerEvent.WEB
    return TriggerEvent.from_ci_source(
        source, commit_tag=os.environ.get("CI_COMMIT_TAG", "")
    )


def trigger_cmd(
    commit: str = typer.Option(
        None,
        "--commit",
        "-c",
        envvar="CI_COMMIT_SHA",
        help="Commit hash to run for. Defaults to the checkout's HEAD.",
    ),
    event: str = typer.Option(
        None,
        "--event",
        "-t",
        help="web, schedule, branch-push or tag-push. Defaults to the CI pipeline source.",
    ),
    environment: Environment = typer.Option(
        None,
        "--environment",
        "-e",
        case_sensitive=False,
        help="Target environment. Defaults to INFRAGATE_ENVIRONMENT (dev).",
    ),
    run_id: str = typer.Option(
        None,
        "--run-id",
        help="Explicit run ID instead of a generated one.",
    ),
    advance: bool = typer.Option(
        True,
        "--advance/--no-advance",
        help="Run stages until the first approval wait point.",
    ),
) -> None:
    """Trigger a run: resolve tags, apply the gate, then run stages."""
    orchestrator = common.build_orchestrator()

    try:
        trigger = TriggerEvent.parse(event) if event else _event_from_environment()
    except ValueError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=2)

    if not commit:
        if not isinstance(orchestrator.tag_source, GitTagSource):
            console.print("[bold red]No commit given; pass --commit.[/bold red]")
            raise typer.Exit(code=2)
        commit = orchestrator.tag_source.head_commit().sha

    try:
        run = orchestrator.trigger(commit, trigger, environment)
    except RedundantCommit as exc:
        console.print(f"[bold red]Redundant commit:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except ConfigurationError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)
    except ExternalToolFailure as exc:
        console.print("[bold red]Tag resolution failed:[/bold red]")
        console.print(str(exc), markup=False)
        raise typer.Exit(code=1)
    except ValueError as exc:
        console.print(f"[bold red]Invalid commit:[/bold red] {exc}")
        raise typer.Exit(code=2)

    console.print(
        f"[bold]Run {run.run_id}[/bold]: {run.trigger.value} of {run.commit.short} "
        f"-> {run.environment.value}, image version {run.image_version}"
    )
    if run.decision == RunDecision.SKIP_REDUNDANT:
        console.print(
            f"[yellow]Commit {run.commit.short} is already released as "
            f"{run.latest_tag.name}; every stage skipped.[/yellow]"
        )
        return

    if advance:
        common.drive(orchestrator)
    else:
        common.show_run(orchestrator, run.run_id)
