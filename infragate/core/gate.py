"""Pipeline Gate — decides whether a run proceeds and whether a stage may start.

The redundancy decision is a pure function of its inputs: the latest tag
is passed in explicitly rather than read from history, so the decision can
be exercised without a repository.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict

from infragate.core.artifact_store import MissingArtifact
from infragate.core.resolver import Resolution, TagResolver
from infragate.models.refs import CommitRef, Tag
from infragate.models.run import RunContext
from infragate.models.stages import StageDefinition
from infragate.models.triggers import RedundantPolicy, RunDecision, TriggerEvent

logger = logging.getLogger(__name__)


class RedundantCommit(RuntimeError):
    """The commit is already released under the latest tag.

    Deliberately fatal: surfaced, run marked failed, never retried.
    """

    def __init__(self, commit: CommitRef, tag: Tag | None):
        label = tag.name if tag is not None else "the latest tag"
        super().__init__(
            f"Commit {commit.short} is already released as {label}; "
            f"refusing to provision it again."
        )
        self.commit = commit
        self.tag = tag


class PendingApproval(BaseModel):
    """A stage waiting for its manual approval.  A wait state, not an error."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    stage_id: str


def decide(
    commit: CommitRef,
    trigger: TriggerEvent,
    latest_tag: Tag | None,
    *,
    redundant_policy: RedundantPolicy = RedundantPolicy.FAIL,
) -> RunDecision:
    """Decide whether a run proceeds.

    Only a branch push of the latest tag's commit is redundant; every other
    trigger has its own reason to re-run a commit and is never compared.
    """
    if trigger != TriggerEvent.BRANCH_PUSH:
        return RunDecision.PROCEED
    if latest_tag is None or not latest_tag.commit.matches(commit):
        return RunDecision.PROCEED
    if redundant_policy == RedundantPolicy.SKIP:
        return RunDecision.SKIP_REDUNDANT
    return RunDecision.FAIL_REDUNDANT


def eligible_stages(
    trigger: TriggerEvent, definitions: list[StageDefinition]
) -> list[str]:
    """Stage ids that *trigger* is allowed to run, in definition order."""
    return [sd.stage_id for sd in definitions if trigger in sd.triggers]


def check_preconditions(
    definition: StageDefinition,
    run: RunContext,
    *,
    approved: bool,
    artifacts: Mapping[str, str],
) -> PendingApproval | None:
    """Check whether *definition* may start now.

    Returns None when it may, or a ``PendingApproval`` marker when only the
    manual approval is missing.  Raises ``RedundantCommit`` when the run did
    not get ``proceed`` and ``MissingArtifact`` when a consumed artifact
    from the preceding stage is absent.
    """
    if run.decision != RunDecision.PROCEED:
        raise RedundantCommit(run.commit, run.latest_tag)
    missing = [name for name in definition.consumes if name not in artifacts]
    if missing:
        raise MissingArtifact(
            f"{definition.stage_id} requires {', '.join(missing)} from its "
            f"preceding stage in run {run.run_id}, but none was produced."
        )
    if definition.requires_approval and not approved:
        return PendingApproval(run_id=run.run_id, stage_id=definition.stage_id)
    return None


class GateVerdict(BaseModel):
    """The gate's decision together with what the resolver saw."""

    model_config = ConfigDict(frozen=True)

    decision: RunDecision
    resolution: Resolution


class PipelineGate:
    """Consults the resolver once per run and applies ``decide``."""

    def __init__(
        self,
        resolver: TagResolver,
        *,
        redundant_policy: RedundantPolicy = RedundantPolicy.FAIL,
    ) -> None:
        self._resolver = resolver
        self._redundant_policy = redundant_policy

    def evaluate(self, commit: CommitRef, trigger: TriggerEvent) -> GateVerdict:
        resolution = self._resolver.resolve(commit)
        decision = decide(
            commit,
            trigger,
            resolution.latest_tag,
            redundant_policy=self._redundant_policy,
        )
        logger.info(
            "Gate: %s on %s (latest tag %s) -> %s",
            trigger.value,
            commit.short,
            resolution.latest_tag.name if resolution.latest_tag else "none",
            decision.value,
        )
        return GateVerdict(decision=decision, resolution=resolution)
