"""Invokers for the external tools: terraform, ansible, docker."""

from infragate.invokers.ansible import AnsibleInvoker
from infragate.invokers.container import ContainerInvoker
from infragate.invokers.exec import (
    CommandResult,
    CommandRunner,
    ExternalToolFailure,
    run_command,
)
from infragate.invokers.terraform import PlanNotProduced, TerraformInvoker

__all__ = [
    "AnsibleInvoker",
    "CommandResult",
    "CommandRunner",
    "ContainerInvoker",
    "ExternalToolFailure",
    "PlanNotProduced",
    "TerraformInvoker",
    "run_command",
]
