"""Error taxonomy for infragate.

Each exception lives beside the code that raises it; this module gathers
them for callers that only want to catch.  Nothing here is retried: every
error propagates to the run's terminal status.

``PendingApproval`` is deliberately absent.  A stage waiting for its
manual approval is a value returned by the orchestrator, not a failure.
"""

from infragate.core.approval_manager import ApprovalNotExpected
from infragate.core.artifact_store import ArtifactIntegrityError, MissingArtifact
from infragate.core.gate import RedundantCommit
from infragate.core.orchestrator import RunNotFoundError
from infragate.core.preflight import ConfigurationError
from infragate.core.prerequisite_graph import (
    CyclicDependencyError,
    PrerequisiteNotMetError,
)
from infragate.core.run_ledger import LedgerIntegrityError
from infragate.core.stage_machine import InvalidTransitionError
from infragate.invokers.exec import ExternalToolFailure
from infragate.invokers.terraform import PlanNotProduced
from infragate.models.refs import NoTagsFound

__all__ = [
    "ApprovalNotExpected",
    "ArtifactIntegrityError",
    "ConfigurationError",
    "CyclicDependencyError",
    "ExternalToolFailure",
    "InvalidTransitionError",
    "LedgerIntegrityError",
    "MissingArtifact",
    "NoTagsFound",
    "PlanNotProduced",
    "PrerequisiteNotMetError",
    "RedundantCommit",
    "RunNotFoundError",
]
