"""Stage state machine models — strictly forward transitions."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from infragate.models.triggers import TriggerEvent


class StageState(str, Enum):
    """Strict state model for each pipeline stage."""

    NOT_STARTED = "not_started"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    BLOCKED = "blocked"


# Valid state transitions, enforced by StageMachine.
# Nothing is retried, so no state is ever revisited.
VALID_TRANSITIONS: dict[StageState, set[StageState]] = {
    StageState.NOT_STARTED: {
        StageState.RUNNING,
        StageState.AWAITING_APPROVAL,
        StageState.SKIPPED,
        StageState.BLOCKED,
        StageState.FAILED,
    },
    StageState.AWAITING_APPROVAL: {
        StageState.APPROVED,
        StageState.BLOCKED,
        StageState.FAILED,
    },
    StageState.APPROVED: {
        StageState.RUNNING,
        StageState.BLOCKED,
        StageState.FAILED,
    },
    StageState.RUNNING: {StageState.PASSED, StageState.FAILED},
    StageState.PASSED: set(),
    StageState.FAILED: set(),
    StageState.SKIPPED: set(),
    StageState.BLOCKED: set(),
}

TERMINAL_STATES: frozenset[StageState] = frozenset(
    state for state, targets in VALID_TRANSITIONS.items() if not targets
)


class StageDefinition(BaseModel):
    """Defines a pipeline stage, its prerequisites and its artifacts.

    ``consumes`` names artifacts that the immediately preceding stage must
    have produced in the same run; ``triggers`` lists the events that make
    the stage eligible at all.
    """

    model_config = ConfigDict(frozen=True)

    stage_id: str
    display_name: str
    ordinal: float
    prerequisites: list[str] = []
    requires_approval: bool = False
    consumes: list[str] = []
    produces: list[str] = []
    triggers: list[TriggerEvent] = list(TriggerEvent)


LINT_REPORT = "lint-report.txt"
PLAN_FILE = "tfplan"
TERRAFORM_OUTPUTS = "terraform-outputs.json"
PLAYBOOK_LOG = "playbook.log"
IMAGE_REFS = "image-refs.txt"

_INFRA_TRIGGERS = [
    TriggerEvent.WEB,
    TriggerEvent.SCHEDULE,
    TriggerEvent.BRANCH_PUSH,
]

DEFAULT_STAGE_DEFINITIONS: list[StageDefinition] = [
    StageDefinition(
        stage_id="build_runner_image",
        display_name="Build Runner Image",
        ordinal=0.0,
        produces=[IMAGE_REFS],
        triggers=[TriggerEvent.BRANCH_PUSH, TriggerEvent.TAG_PUSH],
    ),
    StageDefinition(
        stage_id="lint_and_plan",
        display_name="Lint & Plan",
        ordinal=1.0,
        produces=[LINT_REPORT, PLAN_FILE],
        triggers=_INFRA_TRIGGERS,
    ),
    StageDefinition(
        stage_id="provision",
        display_name="Provision",
        ordinal=2.0,
        prerequisites=["lint_and_plan"],
        requires_approval=True,
        consumes=[PLAN_FILE],
        produces=[TERRAFORM_OUTPUTS],
        triggers=_INFRA_TRIGGERS,
    ),
    StageDefinition(
        stage_id="configure",
        display_name="Configure",
        ordinal=3.0,
        prerequisites=["provision"],
        requires_approval=True,
        consumes=[TERRAFORM_OUTPUTS],
        produces=[PLAYBOOK_LOG],
        triggers=_INFRA_TRIGGERS,
    ),
]
