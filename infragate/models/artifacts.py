"""Content-addressed artifact models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ContentAddressedArtifact(BaseModel):
    """Metadata for a stored blob — the bytes themselves live in the store.

    The content_address is both the identity and the integrity check.
    """

    model_config = ConfigDict(frozen=True)

    content_address: str  # "sha256:<hex>"
    artifact_type: str
    name: str
    size_bytes: int
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    metadata: dict[str, Any] = {}


class StageArtifact(BaseModel):
    """A file handed from one stage to the next within a single run.

    Created at stage end (pass or fail), consumed by the immediately
    following stage, and expired after a fixed retention window.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    run_id: str
    stage_id: str
    content_address: str  # address of the artifact bytes
    size_bytes: int
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at
