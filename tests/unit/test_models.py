"""Tests for the data models — refs, tags, triggers, stage transitions, run context."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from infragate.models.refs import CommitRef, NoTagsFound, Tag, TagSet, semver_key
from infragate.models.run import RunContext
from infragate.models.stages import (
    DEFAULT_STAGE_DEFINITIONS,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    StageState,
)
from infragate.models.triggers import Environment, RunDecision, TriggerEvent


def _tag(name: str, sha: str = "a" * 40) -> Tag:
    return Tag(name=name, commit=CommitRef(sha=sha))


class TestCommitRef:
    def test_normalizes_case_and_whitespace(self):
        ref = CommitRef(sha="  ABC123  ")
        assert ref.sha == "abc123"
        assert str(ref) == "abc123"

    def test_rejects_non_hex(self):
        with pytest.raises(ValidationError):
            CommitRef(sha="not-a-sha")

    def test_rejects_too_short(self):
        with pytest.raises(ValidationError):
            CommitRef(sha="abc")

    def test_short_is_eight_chars(self):
        assert CommitRef(sha="0123456789abcdef" * 2 + "01234567").short == "01234567"

    def test_frozen(self):
        ref = CommitRef(sha="abc123")
        with pytest.raises(ValidationError):
            ref.sha = "def456"

    def test_abbreviated_hash_matches_full(self):
        full = CommitRef(sha="abc123" + "0" * 34)
        assert CommitRef(sha="abc123").matches(full)
        assert full.matches(CommitRef(sha="abc123"))

    def test_different_commits_do_not_match(self):
        assert not CommitRef(sha="abc123").matches(CommitRef(sha="abc124"))


class TestSemver:
    def test_release_above_prerelease(self):
        assert semver_key("1.0.0") > semver_key("1.0.0-rc.1")

    def test_numeric_not_lexicographic(self):
        assert semver_key("v1.10.0") > semver_key("v1.9.0")

    def test_numeric_prerelease_below_alphanumeric(self):
        assert semver_key("1.0.0-1") < semver_key("1.0.0-alpha")

    def test_build_metadata_ignored(self):
        assert semver_key("1.2.3+build.7") == semver_key("1.2.3")

    def test_non_semver_is_none(self):
        assert semver_key("release-2024") is None
        assert semver_key("1.2") is None


class TestTagSet:
    def test_latest_semver(self):
        tags = TagSet(tags=(_tag("v1.9.0"), _tag("v1.10.0"), _tag("v1.10.0-rc.2")))
        assert tags.latest().name == "v1.10.0"

    def test_latest_falls_back_to_lexicographic(self):
        tags = TagSet(tags=(_tag("release-a"), _tag("release-c"), _tag("release-b")))
        assert tags.latest().name == "release-c"

    def test_semver_preferred_over_other_names(self):
        tags = TagSet(tags=(_tag("zzz-nightly"), _tag("v0.1.0")))
        assert tags.latest().name == "v0.1.0"

    def test_empty_raises_no_tags_found(self):
        tags = TagSet()
        assert tags.is_empty
        with pytest.raises(NoTagsFound):
            tags.latest()

    def test_for_commit(self):
        tags = TagSet(tags=(_tag("v1.0.0", "b" * 40), _tag("v1.0.1", "c" * 40)))
        assert [t.name for t in tags.for_commit(CommitRef(sha="c" * 40))] == ["v1.0.1"]

    def test_tag_version_strips_v(self):
        assert _tag("v2.3.4").version == "2.3.4"
        assert _tag("nightly").version == "nightly"


class TestTriggerEvent:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("web", TriggerEvent.WEB),
            ("schedule", TriggerEvent.SCHEDULE),
            ("branch-push", TriggerEvent.BRANCH_PUSH),
            ("tag_push", TriggerEvent.TAG_PUSH),
            (" Branch-Push ", TriggerEvent.BRANCH_PUSH),
        ],
    )
    def test_parse(self, raw: str, expected: TriggerEvent):
        assert TriggerEvent.parse(raw) == expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown trigger event"):
            TriggerEvent.parse("merge_request")

    def test_ci_source_push_is_branch_push(self):
        assert TriggerEvent.from_ci_source("push") == TriggerEvent.BRANCH_PUSH

    def test_ci_source_push_with_tag_is_tag_push(self):
        assert TriggerEvent.from_ci_source("push", commit_tag="v1.0.0") == TriggerEvent.TAG_PUSH

    def test_ci_source_web_and_schedule(self):
        assert TriggerEvent.from_ci_source("web") == TriggerEvent.WEB
        assert TriggerEvent.from_ci_source("schedule") == TriggerEvent.SCHEDULE

    def test_ci_source_unsupported(self):
        with pytest.raises(ValueError):
            TriggerEvent.from_ci_source("merge_request_event")

    def test_environment_has_exactly_two_values(self):
        assert {e.value for e in Environment} == {"dev", "prod"}
        with pytest.raises(ValueError):
            Environment("staging")


class TestStageTransitions:
    def test_terminal_states(self):
        assert TERMINAL_STATES == {
            StageState.PASSED,
            StageState.FAILED,
            StageState.SKIPPED,
            StageState.BLOCKED,
        }

    def test_no_state_is_revisited(self):
        # Strictly forward: no path from a state back to NOT_STARTED.
        for targets in VALID_TRANSITIONS.values():
            assert StageState.NOT_STARTED not in targets

    def test_approval_path(self):
        assert StageState.AWAITING_APPROVAL in VALID_TRANSITIONS[StageState.NOT_STARTED]
        assert VALID_TRANSITIONS[StageState.AWAITING_APPROVAL] >= {StageState.APPROVED}
        assert StageState.RUNNING in VALID_TRANSITIONS[StageState.APPROVED]
        assert StageState.RUNNING not in VALID_TRANSITIONS[StageState.AWAITING_APPROVAL]

    def test_default_pipeline_shape(self):
        by_id = {sd.stage_id: sd for sd in DEFAULT_STAGE_DEFINITIONS}
        assert set(by_id) == {"build_runner_image", "lint_and_plan", "provision", "configure"}
        assert by_id["provision"].prerequisites == ["lint_and_plan"]
        assert by_id["provision"].consumes == ["tfplan"]
        assert by_id["configure"].prerequisites == ["provision"]
        assert by_id["provision"].requires_approval
        assert by_id["configure"].requires_approval
        assert not by_id["lint_and_plan"].requires_approval
        assert set(by_id["lint_and_plan"].produces) == {"lint-report.txt", "tfplan"}


class TestRunContext:
    def test_details_round_trip(self, make_run):
        run = make_run(latest_tag=_tag("v1.0.0", "b" * 40), decision=RunDecision.PROCEED)
        restored = RunContext.from_details(run.to_details())
        assert restored == run

    def test_details_without_tag(self, make_run):
        run = make_run()
        details = run.to_details()
        assert "latest_tag" not in details
        assert RunContext.from_details(details).latest_tag is None
