"""Provision — apply the approved plan, byte-for-byte."""

from __future__ import annotations

from infragate.core.hasher import sha256_hex
from infragate.invokers.exec import ExternalToolFailure
from infragate.invokers.terraform import TerraformInvoker
from infragate.models.stages import PLAN_FILE, TERRAFORM_OUTPUTS
from infragate.stages.base import BaseStage, StageContext


class ProvisionStage(BaseStage):
    stage_id = "provision"
    display_name = "Provision"

    def __init__(self, terraform: TerraformInvoker) -> None:
        self._terraform = terraform

    def execute(self, context: StageContext) -> dict[str, str]:
        plan = context.input(PLAN_FILE)
        # Providers are reinstalled from the lock file; no new plan is made.
        self._terraform.init()
        result = self._terraform.apply(plan)
        if not result.ok:
            raise ExternalToolFailure(result)
        context.emit(TERRAFORM_OUTPUTS, self._terraform.output_json())
        return {"applied_plan_sha256": sha256_hex(plan)}
