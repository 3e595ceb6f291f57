"""Infragate data models — all Pydantic v2, all frozen (immutable)."""

from infragate.models.approvals import ApprovalSignal
from infragate.models.artifacts import ContentAddressedArtifact, StageArtifact
from infragate.models.ledger import LedgerEntry
from infragate.models.refs import CommitRef, NoTagsFound, Tag, TagSet
from infragate.models.run import RUN_STAGE_ID, RunContext, RunPhase
from infragate.models.stages import (
    DEFAULT_STAGE_DEFINITIONS,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    StageDefinition,
    StageState,
)
from infragate.models.triggers import (
    Environment,
    RedundantPolicy,
    RunDecision,
    TriggerEvent,
)

__all__ = [
    # refs
    "CommitRef",
    "Tag",
    "TagSet",
    "NoTagsFound",
    # triggers
    "TriggerEvent",
    "Environment",
    "RunDecision",
    "RedundantPolicy",
    # stages
    "StageState",
    "StageDefinition",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "DEFAULT_STAGE_DEFINITIONS",
    # artifacts
    "ContentAddressedArtifact",
    "StageArtifact",
    # approvals
    "ApprovalSignal",
    # ledger
    "LedgerEntry",
    # run
    "RunContext",
    "RunPhase",
    "RUN_STAGE_ID",
]
