"""Pipeline stage implementations.

    build_runner_image   Build Runner Image (branch and tag pushes)
    lint_and_plan        Lint & Plan
    provision            Provision (manual approval)
    configure            Configure (manual approval)
"""

from __future__ import annotations

from infragate.config import Settings
from infragate.invokers.ansible import AnsibleInvoker
from infragate.invokers.container import ContainerInvoker
from infragate.invokers.exec import CommandRunner, run_command
from infragate.invokers.terraform import TerraformInvoker
from infragate.stages.base import BaseStage, StageContext, StageOutcome
from infragate.stages.build_image import BuildRunnerImageStage
from infragate.stages.configure import ConfigureStage
from infragate.stages.lint_and_plan import LintAndPlanStage
from infragate.stages.provision import ProvisionStage


def build_stages(
    settings: Settings, *, runner: CommandRunner = run_command
) -> dict[str, BaseStage]:
    """Wire every stage to invokers configured from *settings*."""
    terraform = TerraformInvoker(
        settings.terraform_dir,
        var_file_template=settings.terraform_var_file_template,
        plugin_cache_dir=settings.terraform_plugin_cache_dir,
        runner=runner,
    )
    ansible = AnsibleInvoker(
        settings.ansible_dir,
        playbook=settings.ansible_playbook,
        inventory_template=settings.ansible_inventory_template,
        runner=runner,
    )
    container = ContainerInvoker(
        settings.docker_context,
        image=settings.runner_image,
        dockerfile=settings.dockerfile,
        runner=runner,
    )
    stages: list[BaseStage] = [
        BuildRunnerImageStage(container),
        LintAndPlanStage(ansible, terraform),
        ProvisionStage(terraform),
        ConfigureStage(ansible),
    ]
    return {stage.stage_id: stage for stage in stages}


__all__ = [
    "BaseStage",
    "BuildRunnerImageStage",
    "ConfigureStage",
    "LintAndPlanStage",
    "ProvisionStage",
    "StageContext",
    "StageOutcome",
    "build_stages",
]
