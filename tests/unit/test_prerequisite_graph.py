"""Tests for the PrerequisiteGraph — ordering, cycles, cascade blocking."""

from __future__ import annotations

import pytest

from infragate.core.prerequisite_graph import CyclicDependencyError, PrerequisiteGraph
from infragate.models.stages import StageDefinition, StageState


class TestPrerequisiteGraph:
    def test_topological_order(self, graph: PrerequisiteGraph):
        assert graph.stage_ids == [
            "build_runner_image",
            "lint_and_plan",
            "provision",
            "configure",
        ]

    def test_prerequisites_and_dependents(self, graph: PrerequisiteGraph):
        assert graph.get_prerequisites("configure") == ["provision"]
        assert graph.get_dependents("lint_and_plan") == ["provision", "configure"]
        assert graph.get_dependents("build_runner_image") == []

    def test_are_prerequisites_met_requires_passed(self, graph: PrerequisiteGraph):
        assert not graph.are_prerequisites_met(
            "provision", {"lint_and_plan": StageState.SKIPPED}
        )
        assert graph.are_prerequisites_met("provision", {"lint_and_plan": StageState.PASSED})

    def test_cascade_block_only_pending(self, graph: PrerequisiteGraph):
        states = {
            "lint_and_plan": StageState.PASSED,
            "provision": StageState.FAILED,
            "configure": StageState.APPROVED,
        }
        assert graph.cascade_block("provision", states) == ["configure"]
        states["configure"] = StageState.SKIPPED
        assert graph.cascade_block("provision", states) == []

    def test_cycle_detected(self):
        defs = [
            StageDefinition(stage_id="a", display_name="A", ordinal=0, prerequisites=["b"]),
            StageDefinition(stage_id="b", display_name="B", ordinal=1, prerequisites=["a"]),
        ]
        with pytest.raises(CyclicDependencyError):
            PrerequisiteGraph(defs)

    def test_unknown_prerequisite(self):
        defs = [StageDefinition(stage_id="a", display_name="A", ordinal=0, prerequisites=["x"])]
        with pytest.raises(ValueError, match="unknown stage x"):
            PrerequisiteGraph(defs)
