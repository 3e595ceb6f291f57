"""Infragate: a gated, ledger-recorded orchestrator for infrastructure pipelines.

Drives Terraform, ansible-lint, ansible-playbook and docker through a
strictly forward stage machine:

  - Tag/version resolution once per run, feeding a pure redundancy gate
  - lint_and_plan -> provision -> configure, each gated by the previous
    stage's artifact and, for the last two, a persisted manual approval
  - build_runner_image tagged with the derived version
  - Hash-chained SQLite run ledger and content-addressed artifact store
    with a fixed retention window
"""

__version__ = "0.1.0"
__description__ = "Gated, auditable orchestration of Terraform and Ansible pipelines"

from infragate.core.orchestrator import Orchestrator
from infragate.monitor.projection import MonitorProjection as RunMonitor
from infragate.cli.app import app as cli

__all__ = ["Orchestrator", "RunMonitor", "cli", "__version__"]
