"""Per-run context and the derived run phase."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from infragate.models.refs import CommitRef, Tag
from infragate.models.triggers import Environment, RunDecision, TriggerEvent

# Pseudo stage id under which run-level transitions are recorded.
RUN_STAGE_ID = "_run"


class RunPhase(str, Enum):
    """Where a run is in ``Triggered -> Resolved -> ... -> Configured``.

    Derived from stage states on demand, never stored as truth.
    """

    TRIGGERED = "triggered"
    RESOLVED = "resolved"
    SKIPPED = "skipped"
    PROCEEDING = "proceeding"
    LINT_PLANNED = "lint_planned"
    PROVISIONED = "provisioned"
    CONFIGURED = "configured"
    COMPLETED = "completed"
    FAILED = "failed"


class RunContext(BaseModel):
    """Inputs fixed when a run is triggered.

    The latest tag is captured once here; the gate never re-reads history.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    commit: CommitRef
    trigger: TriggerEvent
    environment: Environment = Environment.DEV
    latest_tag: Tag | None = None
    decision: RunDecision
    image_version: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_details(self) -> dict[str, str]:
        """Flatten into the string mapping stored on a ledger entry."""
        details = {
            "run_id": self.run_id,
            "commit": self.commit.sha,
            "trigger": self.trigger.value,
            "environment": self.environment.value,
            "decision": self.decision.value,
            "image_version": self.image_version,
            "created_at": self.created_at.isoformat(),
        }
        if self.latest_tag is not None:
            details["latest_tag"] = self.latest_tag.name
            details["latest_tag_commit"] = self.latest_tag.commit.sha
        return details

    @classmethod
    def from_details(cls, details: dict[str, str]) -> RunContext:
        latest_tag = None
        if details.get("latest_tag"):
            latest_tag = Tag(
                name=details["latest_tag"],
                commit=CommitRef(sha=details["latest_tag_commit"]),
            )
        return cls(
            run_id=details["run_id"],
            commit=CommitRef(sha=details["commit"]),
            trigger=TriggerEvent(details["trigger"]),
            environment=Environment(details["environment"]),
            latest_tag=latest_tag,
            decision=RunDecision(details["decision"]),
            image_version=details["image_version"],
            created_at=datetime.fromisoformat(details["created_at"]),
        )
