"""MonitorProjection — pure read-only view over the RunLedger.

Every call re-reads the ledger.  The projection never caches state and
never writes: stage states, the run context, approvals and the derived
run phase all come from replaying ledger entries.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from infragate.core.orchestrator import derive_phase
from infragate.core.run_ledger import LedgerIntegrityError, RunLedger
from infragate.models.ledger import LedgerEntry
from infragate.models.run import RUN_STAGE_ID, RunContext, RunPhase
from infragate.models.stages import (
    DEFAULT_STAGE_DEFINITIONS,
    StageDefinition,
    StageState,
)


class StageStatus(BaseModel):
    """Point-in-time status of a single stage, derived from the ledger."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    display_name: str
    requires_approval: bool = False
    state: StageState = StageState.NOT_STARTED
    entered_at: datetime | None = None
    reason: str | None = None
    approver: str | None = None
    exit_code: int | None = None
    artifact_refs: list[str] = []


class RunSnapshot(BaseModel):
    """A frozen, point-in-time snapshot of one run.

    Computed fresh on every ``snapshot()`` call and never persisted.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    run: RunContext | None = None
    phase: RunPhase = RunPhase.TRIGGERED
    stages: list[StageStatus] = []
    artifact_count: int = 0
    chain_valid: bool = True
    last_updated: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.stages if s.state == StageState.PASSED)

    @property
    def total_stages(self) -> int:
        return len(self.stages)

    @property
    def awaiting_approval(self) -> list[StageStatus]:
        """Stages parked at a manual approval wait point."""
        return [s for s in self.stages if s.state == StageState.AWAITING_APPROVAL]

    @property
    def failed_stages(self) -> list[StageStatus]:
        return [s for s in self.stages if s.state == StageState.FAILED]

    @property
    def blocked_stages(self) -> list[StageStatus]:
        return [s for s in self.stages if s.state == StageState.BLOCKED]


class MonitorProjection:
    """Pure read-only projection over the RunLedger.

    Parameters
    ----------
    ledger:
        The RunLedger to project from.
    stage_definitions:
        Stage definitions for display names and ordering.  Defaults to
        ``DEFAULT_STAGE_DEFINITIONS``.
    """

    def __init__(
        self,
        ledger: RunLedger,
        stage_definitions: list[StageDefinition] | None = None,
    ) -> None:
        self._ledger = ledger
        definitions = sorted(
            stage_definitions or DEFAULT_STAGE_DEFINITIONS,
            key=lambda sd: sd.ordinal,
        )
        self._stage_defs = {sd.stage_id: sd for sd in definitions}

    def snapshot(self, run_id: str) -> RunSnapshot:
        """Produce a point-in-time snapshot of *run_id*.

        Parameters
        ----------
        run_id:
            The run to snapshot.

        Returns
        -------
        RunSnapshot
            A frozen view of the run as the ledger records it.
        """
        entries = self._ledger.get_run_entries(run_id)
        run = self._find_run_context(entries)

        stages = [
            self._stage_status(sd, [e for e in entries if e.stage_id == stage_id])
            for stage_id, sd in self._stage_defs.items()
        ]
        states = {s.stage_id: s.state for s in stages}
        refs = {ref for e in entries for ref in e.artifact_references}

        return RunSnapshot(
            run_id=run_id,
            run=run,
            phase=derive_phase(run, states),
            stages=stages,
            artifact_count=len(refs),
            chain_valid=self._check_chain_valid(run_id),
            last_updated=(
                entries[-1].timestamp_utc if entries else datetime.now(timezone.utc)
            ),
        )

    @staticmethod
    def _find_run_context(entries: list[LedgerEntry]) -> RunContext | None:
        for entry in entries:
            if entry.stage_id == RUN_STAGE_ID and entry.to_state == RunPhase.RESOLVED.value:
                return RunContext.from_details(entry.details)
        return None

    @staticmethod
    def _stage_status(
        definition: StageDefinition, entries: list[LedgerEntry]
    ) -> StageStatus:
        """Replay one stage's entries into its current status."""
        state = StageState.NOT_STARTED
        entered_at = None
        reason = None
        approver = None
        exit_code = None
        artifact_refs: list[str] = []

        for entry in entries:
            state = StageState(entry.to_state)
            entered_at = entry.timestamp_utc
            artifact_refs.extend(entry.artifact_references)
            if "approver" in entry.details:
                approver = entry.details["approver"]
            if "exit_code" in entry.details:
                exit_code = int(entry.details["exit_code"])
            if state == StageState.BLOCKED:
                reason = f"blocked by {entry.details.get('upstream', 'upstream failure')}"
            elif state in (StageState.FAILED, StageState.SKIPPED):
                reason = entry.details.get("message") or entry.details.get("reason")

        return StageStatus(
            stage_id=definition.stage_id,
            display_name=definition.display_name,
            requires_approval=definition.requires_approval,
            state=state,
            entered_at=entered_at,
            reason=reason,
            approver=approver,
            exit_code=exit_code,
            artifact_refs=artifact_refs,
        )

    def _check_chain_valid(self, run_id: str) -> bool:
        """Check hash chain integrity without raising."""
        try:
            return self._ledger.verify_chain(run_id)
        except LedgerIntegrityError:
            return False
