"""Lint & Plan — ansible-lint report, then terraform plan."""

from __future__ import annotations

from infragate.core.hasher import sha256_hex
from infragate.invokers.ansible import AnsibleInvoker
from infragate.invokers.exec import ExternalToolFailure
from infragate.invokers.terraform import TerraformInvoker
from infragate.models.stages import LINT_REPORT, PLAN_FILE
from infragate.stages.base import BaseStage, StageContext


class LintAndPlanStage(BaseStage):
    """Produces the lint report and the saved plan file.

    The report is emitted before the lint verdict is checked so that it
    is retained when lint fails.
    """

    stage_id = "lint_and_plan"
    display_name = "Lint & Plan"

    def __init__(self, ansible: AnsibleInvoker, terraform: TerraformInvoker) -> None:
        self._ansible = ansible
        self._terraform = terraform

    def execute(self, context: StageContext) -> dict[str, str]:
        lint = self._ansible.lint()
        context.emit(LINT_REPORT, lint.output)
        if not lint.ok:
            raise ExternalToolFailure(lint)

        self._terraform.init()
        plan = self._terraform.plan(context.run.environment)
        context.emit(PLAN_FILE, plan)
        return {
            "environment": context.run.environment.value,
            "plan_sha256": sha256_hex(plan),
        }
