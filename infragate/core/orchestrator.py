"""Pipeline orchestrator — the central coordinator for infragate runs.

The Orchestrator wires together the RunLedger, StageMachine,
PrerequisiteGraph, StageArtifactStore, ApprovalManager and PipelineGate,
and drives the stages strictly one after another:

    trigger -> gate decision -> lint_and_plan -> (approval) -> provision
            -> (approval) -> configure

A run never blocks.  ``advance()`` either runs the next stage or reports
the approval it is waiting for; ``approve()`` records the resume event;
``advance()`` again continues.  Every step is recorded in the ledger, so a
run can be resumed from another process with ``resume()``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from infragate.config import Settings
from infragate.core.approval_manager import ApprovalManager, ApprovalNotExpected
from infragate.core.artifact_store import (
    ArtifactIntegrityError,
    ContentAddressedStore,
    MissingArtifact,
    StageArtifactStore,
)
from infragate.core.gate import (
    PendingApproval,
    PipelineGate,
    RedundantCommit,
    check_preconditions,
    eligible_stages,
)
from infragate.core.hasher import compute_output_hash
from infragate.core.preflight import enforce_stage_requirements
from infragate.core.prerequisite_graph import PrerequisiteGraph
from infragate.core.resolver import GitTagSource, TagResolver, TagSource
from infragate.core.run_ledger import RunLedger
from infragate.core.stage_machine import StageMachine
from infragate.invokers.exec import CommandRunner, run_command
from infragate.models.ledger import LedgerEntry
from infragate.models.refs import CommitRef
from infragate.models.run import RUN_STAGE_ID, RunContext, RunPhase
from infragate.models.stages import (
    DEFAULT_STAGE_DEFINITIONS,
    TERMINAL_STATES,
    StageDefinition,
    StageState,
)
from infragate.models.triggers import Environment, RunDecision, TriggerEvent
from infragate.stages import BaseStage, StageContext, StageOutcome, build_stages

logger = logging.getLogger(__name__)


class RunNotFoundError(LookupError):
    """Raised when resuming a run the ledger has no record of."""


def derive_phase(run: RunContext | None, states: dict[str, StageState]) -> RunPhase:
    """Derive where a run is from its context and stage states."""
    if run is None:
        return RunPhase.TRIGGERED
    if run.decision == RunDecision.SKIP_REDUNDANT:
        return RunPhase.SKIPPED
    if run.decision == RunDecision.FAIL_REDUNDANT:
        return RunPhase.FAILED
    if any(state in (StageState.FAILED, StageState.BLOCKED) for state in states.values()):
        return RunPhase.FAILED
    if states.get("configure") == StageState.PASSED:
        return RunPhase.CONFIGURED
    if all(state in TERMINAL_STATES for state in states.values()):
        if any(state == StageState.PASSED for state in states.values()):
            return RunPhase.COMPLETED
    if states.get("provision") == StageState.PASSED:
        return RunPhase.PROVISIONED
    if states.get("lint_and_plan") == StageState.PASSED:
        return RunPhase.LINT_PLANNED
    return RunPhase.PROCEEDING


class Orchestrator:
    """Central pipeline orchestrator.

    Parameters
    ----------
    settings:
        Runtime settings. Read from the environment if not provided.
    tag_source:
        Where tag history comes from. Defaults to the git checkout at
        ``settings.repo_root``.
    stages:
        Stage implementations keyed by stage id. Defaults to the real
        tool-backed stages.
    runner:
        Command runner handed to the default tag source and stages.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        tag_source: TagSource | None = None,
        stages: dict[str, BaseStage] | None = None,
        runner: CommandRunner = run_command,
        definitions: list[StageDefinition] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.definitions = definitions or list(DEFAULT_STAGE_DEFINITIONS)

        self.ledger = RunLedger(self.settings.ledger_path)
        self.store = ContentAddressedStore(self.settings.artifact_store_path)
        self.artifacts = StageArtifactStore(
            self.store,
            retention=timedelta(days=self.settings.artifact_retention_days),
        )
        self.graph = PrerequisiteGraph(self.definitions)
        self.stage_machine = StageMachine(self.ledger, self.graph)
        self.approvals = ApprovalManager(self.store, self.ledger, self.stage_machine)

        self.tag_source = tag_source or GitTagSource(
            self.settings.repo_root,
            fetch=self.settings.fetch_tags,
            remote=self.settings.tag_remote,
            runner=runner,
        )
        self.gate = PipelineGate(
            TagResolver(self.tag_source),
            redundant_policy=self.settings.redundant_policy,
        )
        self._stages = stages if stages is not None else build_stages(
            self.settings, runner=runner
        )

        self.run: RunContext | None = None

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def trigger(
        self,
        commit: CommitRef | str,
        trigger: TriggerEvent,
        environment: Environment | None = None,
        *,
        run_id: str | None = None,
    ) -> RunContext:
        """Start a run: resolve tags once, decide, record the context.

        Stages the trigger is not eligible for are skipped immediately.  A
        redundant commit skips every stage; with the fail policy it then
        raises ``RedundantCommit``.
        """
        if isinstance(commit, str):
            commit = CommitRef(sha=commit)
        environment = environment or self.settings.environment

        verdict = self.gate.evaluate(commit, trigger)
        eligible = eligible_stages(trigger, self.definitions)
        if verdict.decision == RunDecision.PROCEED:
            enforce_stage_requirements(self.settings, eligible)

        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        run = RunContext(
            run_id=run_id or f"ig-{ts}-{uuid.uuid4().hex[:6]}",
            commit=commit,
            trigger=trigger,
            environment=environment,
            latest_tag=verdict.resolution.latest_tag,
            decision=verdict.decision,
            image_version=verdict.resolution.version,
        )
        self.run = run
        self.stage_machine.initialize_run(run.run_id)
        self._record_run_phase(RunPhase.TRIGGERED, RunPhase.RESOLVED, run.to_details())

        if verdict.decision != RunDecision.PROCEED:
            for stage_id in self.graph.stage_ids:
                self.stage_machine.transition(
                    run.run_id,
                    stage_id,
                    StageState.SKIPPED,
                    details={"reason": verdict.decision.value},
                )
            if verdict.decision == RunDecision.FAIL_REDUNDANT:
                self._record_run_phase(
                    RunPhase.RESOLVED, RunPhase.FAILED, {"reason": verdict.decision.value}
                )
                raise RedundantCommit(commit, verdict.resolution.latest_tag)
            self._record_run_phase(
                RunPhase.RESOLVED, RunPhase.SKIPPED, {"reason": verdict.decision.value}
            )
            return run

        self._record_run_phase(RunPhase.RESOLVED, RunPhase.PROCEEDING, {})
        for stage_id in self.graph.stage_ids:
            if stage_id not in eligible:
                self.stage_machine.transition(
                    run.run_id,
                    stage_id,
                    StageState.SKIPPED,
                    details={"reason": f"not run for {trigger.value}"},
                )
        logger.info(
            "Run %s: %s of %s (%s) will run %s.",
            run.run_id,
            trigger.value,
            commit.short,
            environment.value,
            ", ".join(eligible),
        )
        return run

    def resume(self, run_id: str) -> RunContext:
        """Rebuild the run context from the ledger."""
        for entry in self.ledger.get_stage_history(run_id, RUN_STAGE_ID):
            if entry.state_transition == f"{RunPhase.TRIGGERED.value}->{RunPhase.RESOLVED.value}":
                self.run = RunContext.from_details(entry.details)
                return self.run
        raise RunNotFoundError(f"No run {run_id} in {self.settings.ledger_path}")

    def _record_run_phase(
        self, from_phase: RunPhase, to_phase: RunPhase, details: dict[str, str]
    ) -> LedgerEntry:
        run = self._require_run()
        return self.ledger.append(
            LedgerEntry(
                run_id=run.run_id,
                stage_id=RUN_STAGE_ID,
                state_transition=f"{from_phase.value}->{to_phase.value}",
                details=details,
            )
        )

    def _require_run(self) -> RunContext:
        if self.run is None:
            raise RuntimeError("No active run; call trigger() or resume() first")
        return self.run

    # ------------------------------------------------------------------
    # Stage execution
    # ------------------------------------------------------------------

    def advance(self) -> StageOutcome | PendingApproval | None:
        """Run the next stage, or report the approval the run waits for.

        Returns the stage outcome, a ``PendingApproval`` marker, or None
        once every stage is terminal or any stage has failed.  Stages never
        run out of order: a stage awaiting approval holds back everything
        after it.
        """
        run = self._require_run()
        states = self.stage_machine.get_all_states(run.run_id)
        if derive_phase(run, states) == RunPhase.FAILED:
            logger.info("Run %s has failed; no further stages run.", run.run_id)
            return None
        for stage_id in self.graph.stage_ids:
            state = states[stage_id]
            if state in TERMINAL_STATES:
                continue
            if state == StageState.AWAITING_APPROVAL:
                return PendingApproval(run_id=run.run_id, stage_id=stage_id)
            return self._run_stage(stage_id)
        return None

    def run_to_completion(self) -> PendingApproval | None:
        """Advance until the run waits for approval or has nothing left."""
        while True:
            result = self.advance()
            if result is None or isinstance(result, PendingApproval):
                return result

    def approve(self, stage_id: str, approver: str, *, note: str = "") -> LedgerEntry:
        """Fire the external resume event for a stage awaiting approval."""
        run = self._require_run()
        if self.phase() == RunPhase.FAILED:
            raise ApprovalNotExpected(
                f"Run {run.run_id} has failed; {stage_id} can no longer be approved."
            )
        return self.approvals.approve(run.run_id, stage_id, approver, note=note)

    def _run_stage(self, stage_id: str) -> StageOutcome | PendingApproval:
        run = self._require_run()
        definition = self.graph.get_stage_definition(stage_id)
        state = self.stage_machine.get_current_state(run.run_id, stage_id)

        try:
            handoff = self.collect_inputs(stage_id)
            pending = check_preconditions(
                definition,
                run,
                approved=state == StageState.APPROVED,
                artifacts=handoff,
            )
            inputs = (
                {name: self.artifacts.get(handoff[name]) for name in definition.consumes}
                if pending is None
                else {}
            )
        except (MissingArtifact, ArtifactIntegrityError) as exc:
            error = (
                "missing_artifact" if isinstance(exc, MissingArtifact) else "artifact_integrity"
            )
            self.stage_machine.transition(
                run.run_id,
                stage_id,
                StageState.FAILED,
                details={"error": error, "message": str(exc)},
            )
            raise

        if pending is not None:
            self.stage_machine.transition(run.run_id, stage_id, StageState.AWAITING_APPROVAL)
            logger.info("Run %s: %s is waiting for approval.", run.run_id, stage_id)
            return pending

        stage = self._stages[stage_id]
        self.stage_machine.transition(run.run_id, stage_id, StageState.RUNNING)
        context = StageContext(run, self.settings, inputs)
        try:
            outcome = stage.run_stage(context)
        except Exception as exc:
            refs = self._store_outputs(stage_id, context.outputs)
            details = {"error": type(exc).__name__, "message": str(exc)[:2000]}
            exit_code = getattr(exc, "exit_code", None)
            if exit_code is not None:
                details["exit_code"] = str(exit_code)
            self.stage_machine.transition(
                run.run_id,
                stage_id,
                StageState.FAILED,
                output_hash=compute_output_hash(stage_id, details),
                artifact_references=refs,
                details=details,
            )
            raise

        refs = self._store_outputs(stage_id, context.outputs)
        missing = [name for name in definition.produces if name not in context.outputs]
        if missing:
            message = f"{stage_id} finished without producing {', '.join(missing)}"
            self.stage_machine.transition(
                run.run_id,
                stage_id,
                StageState.FAILED,
                artifact_references=refs,
                details={"error": "missing_artifact", "message": message},
            )
            raise MissingArtifact(message)

        self.stage_machine.transition(
            run.run_id,
            stage_id,
            StageState.PASSED,
            input_hash=outcome.input_hash,
            output_hash=outcome.output_hash,
            artifact_references=refs,
            details=outcome.details,
        )
        return outcome

    def _store_outputs(self, stage_id: str, outputs: dict[str, bytes]) -> list[str]:
        run = self._require_run()
        return [
            self.artifacts.put(run.run_id, stage_id, name, data)[0]
            for name, data in outputs.items()
        ]

    def collect_inputs(self, stage_id: str) -> dict[str, str]:
        """Artifact record addresses a stage may consume, keyed by name.

        Only artifacts produced by the stage's direct prerequisites in this
        same run, on their successful completion, are handed over.
        """
        run = self._require_run()
        handoff: dict[str, str] = {}
        for prereq in self.graph.get_prerequisites(stage_id):
            for entry in self.ledger.get_stage_history(run.run_id, prereq):
                if entry.to_state != StageState.PASSED.value:
                    continue
                for ref in entry.artifact_references:
                    handoff[self.artifacts.describe(ref).name] = ref
        return handoff

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    def get_states(self) -> dict[str, StageState]:
        return self.stage_machine.get_all_states(self._require_run().run_id)

    def phase(self) -> RunPhase:
        if self.run is None:
            return RunPhase.TRIGGERED
        return derive_phase(self.run, self.get_states())

    def pending_approval(self) -> PendingApproval | None:
        run = self._require_run()
        for stage_id, state in self.get_states().items():
            if state == StageState.AWAITING_APPROVAL:
                return PendingApproval(run_id=run.run_id, stage_id=stage_id)
        return None

    def get_run_entries(self) -> list[LedgerEntry]:
        return self.ledger.get_run_entries(self._require_run().run_id)

    def verify_chain(self) -> bool:
        return self.ledger.verify_chain(self._require_run().run_id)
