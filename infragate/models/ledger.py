"""Run Ledger entry model (append-only, hash-chained).

The Run Ledger is the source of truth for every run:
- Append-only (no UPDATE, no DELETE)
- Hash-chained (each entry links to the previous via SHA-256)
- One entry per state transition, scoped to run_id + stage_id
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from infragate import __version__


class LedgerEntry(BaseModel):
    """A single entry in the append-only Run Ledger."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    stage_id: str
    state_transition: str  # "from_state->to_state", e.g. "not_started->running"
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    input_hash: str = ""
    output_hash: str = ""
    artifact_references: list[str] = []  # stage artifact record addresses
    approval_references: list[str] = []  # approval signal addresses
    details: dict[str, str] = {}
    pipeline_version: str = __version__
    previous_entry_hash: str = ""
    entry_hash: str = ""  # computed after construction, seals this entry

    @property
    def from_state(self) -> str:
        return self.state_transition.split("->", 1)[0]

    @property
    def to_state(self) -> str:
        return self.state_transition.split("->", 1)[-1]
