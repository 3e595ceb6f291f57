"""Manual approval records — structured, never informal flags."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class ApprovalSignal(BaseModel):
    """The external resume event that releases a stage awaiting approval.

    Stored as a content-addressed artifact and referenced from the
    ledger entry of the ``awaiting_approval -> approved`` transition.
    """

    model_config = ConfigDict(frozen=True)

    approval_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    stage_id: str
    approver: str
    note: str = ""
    approved_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
