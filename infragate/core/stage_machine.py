"""Deterministic stage state machine.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Prerequisites checked before RUNNING or AWAITING_APPROVAL
- Cascade blocking on failure
- Every transition recorded in the Run Ledger
"""

from __future__ import annotations

import logging

from infragate.core.prerequisite_graph import PrerequisiteGraph, PrerequisiteNotMetError
from infragate.core.run_ledger import RunLedger
from infragate.models.ledger import LedgerEntry
from infragate.models.stages import VALID_TRANSITIONS, StageState

logger = logging.getLogger(__name__)

_GATED_TARGETS = (StageState.RUNNING, StageState.AWAITING_APPROVAL)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class StageMachine:
    """Enforces the stage state machine with prerequisite checking.

    Parameters
    ----------
    ledger:
        The Run Ledger to record transitions into.
    graph:
        The prerequisite graph for dependency checking.
    """

    def __init__(self, ledger: RunLedger, graph: PrerequisiteGraph) -> None:
        self._ledger = ledger
        self._graph = graph
        # In-memory state cache: run_id -> {stage_id -> StageState}
        self._states: dict[str, dict[str, StageState]] = {}

    @property
    def graph(self) -> PrerequisiteGraph:
        return self._graph

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def initialize_run(self, run_id: str) -> dict[str, StageState]:
        """Initialize all stages to NOT_STARTED for a new run."""
        states = {sid: StageState.NOT_STARTED for sid in self._graph.stage_ids}
        self._states[run_id] = states
        return dict(states)

    def get_current_state(self, run_id: str, stage_id: str) -> StageState:
        return self._run_states(run_id).get(stage_id, StageState.NOT_STARTED)

    def get_all_states(self, run_id: str) -> dict[str, StageState]:
        """Return a snapshot of all stage states for a run."""
        return dict(self._run_states(run_id))

    def _run_states(self, run_id: str) -> dict[str, StageState]:
        if run_id not in self._states:
            self._rebuild_state(run_id)
        return self._states[run_id]

    def _rebuild_state(self, run_id: str) -> None:
        """Rebuild in-memory state from the ledger (for resume)."""
        states = {sid: StageState.NOT_STARTED for sid in self._graph.stage_ids}
        for entry in self._ledger.get_run_entries(run_id):
            if entry.stage_id in states:
                states[entry.stage_id] = StageState(entry.to_state)
        self._states[run_id] = states

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(
        self,
        run_id: str,
        stage_id: str,
        target_state: StageState,
        *,
        input_hash: str = "",
        output_hash: str = "",
        artifact_references: list[str] | None = None,
        approval_references: list[str] | None = None,
        details: dict[str, str] | None = None,
    ) -> LedgerEntry:
        """Transition a stage to a new state, recording it in the ledger.

        Validates:
        1. The transition is allowed by VALID_TRANSITIONS.
        2. If target is RUNNING or AWAITING_APPROVAL, prerequisites are met.
        3. If the transition is to FAILED, cascade-block dependents.

        Returns the sealed LedgerEntry.
        """
        states = self._run_states(run_id)
        current = states.get(stage_id, StageState.NOT_STARTED)

        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {stage_id} from {current.value} to {target_state.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        if target_state in _GATED_TARGETS and not self._graph.are_prerequisites_met(
            stage_id, states
        ):
            reasons = self._graph.get_blocking_reasons(stage_id, states)
            raise PrerequisiteNotMetError(
                f"Cannot start {stage_id}: prerequisites not met. "
                f"Blocked by: {'; '.join(reasons)}"
            )

        sealed = self._record(
            run_id,
            stage_id,
            current,
            target_state,
            input_hash=input_hash,
            output_hash=output_hash,
            artifact_references=artifact_references or [],
            approval_references=approval_references or [],
            details=details or {},
        )

        if target_state == StageState.FAILED:
            for blocked_id in self._graph.cascade_block(stage_id, states):
                self._record(
                    run_id,
                    blocked_id,
                    states[blocked_id],
                    StageState.BLOCKED,
                    details={"upstream": stage_id},
                )

        return sealed

    def _record(
        self,
        run_id: str,
        stage_id: str,
        current: StageState,
        target: StageState,
        **fields,
    ) -> LedgerEntry:
        entry = LedgerEntry(
            run_id=run_id,
            stage_id=stage_id,
            state_transition=f"{current.value}->{target.value}",
            **fields,
        )
        sealed = self._ledger.append(entry)
        self._states[run_id][stage_id] = target
        logger.debug("%s %s: %s", run_id, stage_id, entry.state_transition)
        return sealed
