"""Manual approval management — explicit, persisted resume events.

A stage that requires approval parks in AWAITING_APPROVAL with no timeout.
``approve()`` is the externally fired resume event: it stores an
``ApprovalSignal`` as a content-addressed artifact and records the
``awaiting_approval -> approved`` transition that references it.  Nothing
blocks while waiting, so "what happens while paused" is just ledger state.
"""

from __future__ import annotations

import logging

from infragate.core.artifact_store import ContentAddressedStore
from infragate.core.hasher import canonical_json_bytes
from infragate.core.run_ledger import RunLedger
from infragate.core.stage_machine import StageMachine
from infragate.models.approvals import ApprovalSignal
from infragate.models.ledger import LedgerEntry
from infragate.models.stages import StageState

logger = logging.getLogger(__name__)


class ApprovalNotExpected(RuntimeError):
    """Raised when approving a stage that is not awaiting approval."""


class ApprovalManager:
    """Validates, stores, and looks up approvals.

    Parameters
    ----------
    artifact_store:
        The content-addressed store for persisting approval signals.
    ledger:
        The Run Ledger, read to find past approvals.
    stage_machine:
        Used to fire the approval transition.
    """

    def __init__(
        self,
        artifact_store: ContentAddressedStore,
        ledger: RunLedger,
        stage_machine: StageMachine,
    ) -> None:
        self._store = artifact_store
        self._ledger = ledger
        self._stage_machine = stage_machine

    def approve(
        self,
        run_id: str,
        stage_id: str,
        approver: str,
        *,
        note: str = "",
    ) -> LedgerEntry:
        """Record *approver*'s approval of *stage_id* in *run_id*.

        Raises
        ------
        ApprovalNotExpected
            If the stage is not currently awaiting approval.
        ValueError
            If no approver identity is given.
        """
        if not approver.strip():
            raise ValueError("An approval must name its approver")

        state = self._stage_machine.get_current_state(run_id, stage_id)
        if state != StageState.AWAITING_APPROVAL:
            raise ApprovalNotExpected(
                f"{stage_id} in run {run_id} is {state.value}, not awaiting approval"
            )

        signal = ApprovalSignal(
            run_id=run_id, stage_id=stage_id, approver=approver.strip(), note=note
        )
        stored = self._store.store(
            canonical_json_bytes(signal.model_dump(mode="json")),
            name=f"approval-{signal.approval_id}",
            artifact_type="approval",
            metadata={"run_id": run_id, "stage_id": stage_id},
        )
        entry = self._stage_machine.transition(
            run_id,
            stage_id,
            StageState.APPROVED,
            approval_references=[stored.content_address],
            details={"approver": signal.approver},
        )
        logger.info("%s approved %s in run %s.", signal.approver, stage_id, run_id)
        return entry

    def get_approvals(self, run_id: str, stage_id: str) -> list[ApprovalSignal]:
        """Return every approval recorded for a stage of a run."""
        approvals = []
        for entry in self._ledger.get_stage_history(run_id, stage_id):
            for ref in entry.approval_references:
                approvals.append(
                    ApprovalSignal.model_validate_json(self._store.retrieve(ref))
                )
        return approvals
