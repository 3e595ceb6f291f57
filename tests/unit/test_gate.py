"""Tests for the Pipeline Gate — the redundancy decision and stage preconditions."""

from __future__ import annotations

import pytest

from infragate.core.artifact_store import MissingArtifact
from infragate.core.gate import (
    PendingApproval,
    PipelineGate,
    RedundantCommit,
    check_preconditions,
    decide,
    eligible_stages,
)
from infragate.core.resolver import StaticTagSource, TagResolver
from infragate.models.refs import CommitRef, Tag
from infragate.models.stages import DEFAULT_STAGE_DEFINITIONS
from infragate.models.triggers import RedundantPolicy, RunDecision, TriggerEvent

RELEASED = CommitRef(sha="abc123")
V1 = Tag(name="v1.0.0", commit=RELEASED)
DEFS = {sd.stage_id: sd for sd in DEFAULT_STAGE_DEFINITIONS}


class TestDecide:
    def test_branch_push_of_latest_tag_commit_fails_redundant(self):
        assert decide(RELEASED, TriggerEvent.BRANCH_PUSH, V1) == RunDecision.FAIL_REDUNDANT

    def test_branch_push_of_full_hash_matches_abbreviated_tag_commit(self):
        full = CommitRef(sha="abc123" + "0" * 34)
        assert decide(full, TriggerEvent.BRANCH_PUSH, V1) == RunDecision.FAIL_REDUNDANT

    @pytest.mark.parametrize("sha", ["def456", "abc124", "0000aaaa"])
    def test_branch_push_of_other_commit_proceeds(self, sha: str):
        assert decide(CommitRef(sha=sha), TriggerEvent.BRANCH_PUSH, V1) == RunDecision.PROCEED

    def test_no_tags_is_not_redundancy(self):
        assert decide(CommitRef(sha="def456"), TriggerEvent.BRANCH_PUSH, None) == RunDecision.PROCEED

    @pytest.mark.parametrize(
        "trigger", [TriggerEvent.WEB, TriggerEvent.SCHEDULE, TriggerEvent.TAG_PUSH]
    )
    def test_other_triggers_never_compare(self, trigger: TriggerEvent):
        assert decide(RELEASED, trigger, V1) == RunDecision.PROCEED

    def test_skip_policy(self):
        decision = decide(
            RELEASED,
            TriggerEvent.BRANCH_PUSH,
            V1,
            redundant_policy=RedundantPolicy.SKIP,
        )
        assert decision == RunDecision.SKIP_REDUNDANT


class TestEligibleStages:
    def test_branch_push_runs_everything(self):
        assert eligible_stages(TriggerEvent.BRANCH_PUSH, DEFAULT_STAGE_DEFINITIONS) == [
            "build_runner_image",
            "lint_and_plan",
            "provision",
            "configure",
        ]

    def test_tag_push_only_builds_the_image(self):
        assert eligible_stages(TriggerEvent.TAG_PUSH, DEFAULT_STAGE_DEFINITIONS) == [
            "build_runner_image"
        ]

    @pytest.mark.parametrize("trigger", [TriggerEvent.WEB, TriggerEvent.SCHEDULE])
    def test_web_and_schedule_run_infrastructure_stages(self, trigger: TriggerEvent):
        assert eligible_stages(trigger, DEFAULT_STAGE_DEFINITIONS) == [
            "lint_and_plan",
            "provision",
            "configure",
        ]


class TestCheckPreconditions:
    def test_ungated_stage_may_start(self, make_run):
        assert check_preconditions(
            DEFS["lint_and_plan"], make_run(), approved=False, artifacts={}
        ) is None

    def test_redundant_run_raises(self, make_run):
        run = make_run(decision=RunDecision.FAIL_REDUNDANT, latest_tag=V1)
        with pytest.raises(RedundantCommit, match="v1.0.0"):
            check_preconditions(DEFS["lint_and_plan"], run, approved=False, artifacts={})

    def test_missing_artifact_is_fatal_even_when_approved(self, make_run):
        with pytest.raises(MissingArtifact, match="tfplan"):
            check_preconditions(DEFS["provision"], make_run(), approved=True, artifacts={})

    def test_missing_approval_is_a_wait(self, make_run):
        pending = check_preconditions(
            DEFS["provision"], make_run(), approved=False, artifacts={"tfplan": "sha256:x"}
        )
        assert pending == PendingApproval(run_id="ig-test-run-001", stage_id="provision")

    def test_all_conditions_met(self, make_run):
        assert check_preconditions(
            DEFS["provision"], make_run(), approved=True, artifacts={"tfplan": "sha256:x"}
        ) is None


class TestPipelineGate:
    def test_evaluate_reports_resolution(self):
        gate = PipelineGate(TagResolver(StaticTagSource([V1])))
        verdict = gate.evaluate(CommitRef(sha="def456"), TriggerEvent.BRANCH_PUSH)
        assert verdict.decision == RunDecision.PROCEED
        assert verdict.resolution.latest_tag == V1
        assert verdict.resolution.version == "1.0.0-def456"

    def test_evaluate_redundant(self):
        gate = PipelineGate(TagResolver(StaticTagSource([V1])))
        verdict = gate.evaluate(RELEASED, TriggerEvent.BRANCH_PUSH)
        assert verdict.decision == RunDecision.FAIL_REDUNDANT

    def test_evaluate_without_tags(self):
        gate = PipelineGate(TagResolver(StaticTagSource([])))
        verdict = gate.evaluate(CommitRef(sha="def456"), TriggerEvent.BRANCH_PUSH)
        assert verdict.decision == RunDecision.PROCEED
        assert verdict.resolution.latest_tag is None

    def test_redundant_commit_carries_commit_and_tag(self):
        exc = RedundantCommit(RELEASED, V1)
        assert exc.commit == RELEASED
        assert exc.tag == V1
        assert "abc123" in str(exc)
