"""Tests for MonitorProjection — read-only snapshots replayed from the ledger."""

from __future__ import annotations

import sqlite3

import pytest

from infragate.invokers.exec import ExternalToolFailure
from infragate.models.refs import CommitRef, Tag
from infragate.models.run import RunPhase
from infragate.models.stages import StageState
from infragate.models.triggers import Environment, TriggerEvent
from infragate.monitor.projection import MonitorProjection

NEW_SHA = "def4560000000000000000000000000000000000"
V1 = Tag(name="v1.0.0", commit=CommitRef(sha="abc1230000000000000000000000000000000000"))


def _snapshot(orch):
    return MonitorProjection(orch.ledger).snapshot(orch.run.run_id)


class TestMonitorProjection:
    def test_unknown_run(self, ledger):
        snapshot = MonitorProjection(ledger).snapshot("ig-nothing")
        assert snapshot.run is None
        assert snapshot.phase == RunPhase.TRIGGERED
        assert all(s.state == StageState.NOT_STARTED for s in snapshot.stages)
        assert snapshot.chain_valid

    def test_stages_in_pipeline_order(self, ledger):
        snapshot = MonitorProjection(ledger).snapshot("ig-nothing")
        assert [s.stage_id for s in snapshot.stages] == [
            "build_runner_image",
            "lint_and_plan",
            "provision",
            "configure",
        ]
        assert snapshot.total_stages == 4

    def test_waiting_run(self, make_orchestrator):
        orch = make_orchestrator([V1])
        orch.trigger(NEW_SHA, TriggerEvent.WEB, Environment.PROD)
        orch.run_to_completion()

        snapshot = _snapshot(orch)
        assert snapshot.run == orch.run
        assert snapshot.phase == RunPhase.LINT_PLANNED
        assert [s.stage_id for s in snapshot.awaiting_approval] == ["provision"]
        assert snapshot.completed_count == 1
        assert snapshot.artifact_count == 2

        image = snapshot.stages[0]
        assert image.state == StageState.SKIPPED
        assert image.reason == "not run for web"

    def test_approver_recorded(self, make_orchestrator):
        orch = make_orchestrator([V1])
        orch.trigger(NEW_SHA, TriggerEvent.WEB)
        orch.run_to_completion()
        orch.approve("provision", "alice")

        provision = {s.stage_id: s for s in _snapshot(orch).stages}["provision"]
        assert provision.state == StageState.APPROVED
        assert provision.approver == "alice"

    def test_failure_and_cascade(self, make_orchestrator, fake_runner):
        fake_runner.fail["ansible-lint"] = 2
        orch = make_orchestrator([V1])
        orch.trigger(NEW_SHA, TriggerEvent.WEB)
        with pytest.raises(ExternalToolFailure):
            orch.run_to_completion()

        snapshot = _snapshot(orch)
        assert snapshot.phase == RunPhase.FAILED
        [failed] = snapshot.failed_stages
        assert failed.stage_id == "lint_and_plan"
        assert failed.exit_code == 2
        assert [s.stage_id for s in snapshot.blocked_stages] == ["provision", "configure"]
        assert snapshot.blocked_stages[0].reason == "blocked by lint_and_plan"

    def test_tampered_chain_reported(self, make_orchestrator, settings):
        orch = make_orchestrator([V1])
        orch.trigger(NEW_SHA, TriggerEvent.WEB)

        with sqlite3.connect(settings.ledger_path) as conn:
            conn.execute(
                "UPDATE run_ledger SET details_json = '{}' WHERE stage_id = 'build_runner_image'"
            )

        assert not _snapshot(orch).chain_valid

    def test_projection_never_writes(self, make_orchestrator):
        orch = make_orchestrator([V1])
        orch.trigger(NEW_SHA, TriggerEvent.WEB)
        before = orch.get_run_entries()
        _snapshot(orch)
        _snapshot(orch)
        assert orch.get_run_entries() == before
