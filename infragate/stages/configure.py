"""Configure — run the playbook against the freshly provisioned hosts."""

from __future__ import annotations

from infragate.invokers.ansible import AnsibleInvoker
from infragate.invokers.exec import ExternalToolFailure
from infragate.models.stages import PLAYBOOK_LOG, TERRAFORM_OUTPUTS
from infragate.stages.base import BaseStage, StageContext


class ConfigureStage(BaseStage):
    """Runs ``ansible-playbook`` for the run's environment.

    Terraform outputs from the provision stage are passed as extra vars;
    the playbook log is retained whether or not the play succeeds.
    """

    stage_id = "configure"
    display_name = "Configure"

    def __init__(self, ansible: AnsibleInvoker) -> None:
        self._ansible = ansible

    def execute(self, context: StageContext) -> dict[str, str]:
        outputs = context.input(TERRAFORM_OUTPUTS)
        key = context.settings.ssh_private_key
        result = self._ansible.playbook(
            context.run.environment,
            private_key=key.get_secret_value() if key is not None else None,
            extra_vars=outputs,
        )
        context.emit(PLAYBOOK_LOG, result.output)
        if not result.ok:
            raise ExternalToolFailure(result)
        return {
            "inventory": str(self._ansible.inventory_for(context.run.environment)),
            "playbook": self._ansible.playbook_name,
        }
