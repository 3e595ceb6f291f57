"""Trigger, environment and gate decision enums."""

from __future__ import annotations

from enum import Enum


class TriggerEvent(str, Enum):
    """The event that started a pipeline run."""

    WEB = "web"
    SCHEDULE = "schedule"
    BRANCH_PUSH = "branch_push"
    TAG_PUSH = "tag_push"

    @classmethod
    def parse(cls, value: str) -> TriggerEvent:
        """Accept ``branch-push`` as well as ``branch_push``."""
        normalized = value.strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(
                f"Unknown trigger event {value!r}. Expected one of: {allowed}"
            ) from None

    @classmethod
    def from_ci_source(cls, source: str, *, commit_tag: str = "") -> TriggerEvent:
        """Map a GitLab ``CI_PIPELINE_SOURCE`` onto a trigger event.

        A ``push`` pipeline is a tag push when ``CI_COMMIT_TAG`` is set.
        """
        source = source.strip().lower()
        if source == "push":
            return cls.TAG_PUSH if commit_tag else cls.BRANCH_PUSH
        if source in (cls.WEB.value, cls.SCHEDULE.value):
            return cls(source)
        raise ValueError(f"Unsupported pipeline source: {source!r}")


class Environment(str, Enum):
    """Target environment selector. Exactly two values are valid."""

    DEV = "dev"
    PROD = "prod"


class RunDecision(str, Enum):
    """Outcome of the pipeline gate, computed once per run."""

    PROCEED = "proceed"
    SKIP_REDUNDANT = "skip_redundant"
    FAIL_REDUNDANT = "fail_redundant"


class RedundantPolicy(str, Enum):
    """What a redundant branch push turns into."""

    FAIL = "fail"
    SKIP = "skip"
