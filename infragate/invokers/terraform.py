"""Terraform plan/apply invoker.

``apply`` only ever consumes a saved plan: the exact bytes produced by
``plan`` in the lint-and-plan stage are written back and applied, so the
provisioned infrastructure is what the operator approved.
"""

from __future__ import annotations

import logging
from pathlib import Path

from infragate.invokers.exec import CommandResult, CommandRunner, run_command
from infragate.models.stages import PLAN_FILE
from infragate.models.triggers import Environment

logger = logging.getLogger(__name__)


class PlanNotProduced(RuntimeError):
    """Raised when ``terraform plan`` exits 0 without writing its plan file."""


class TerraformInvoker:
    """Runs ``terraform`` inside a root configuration directory.

    Parameters
    ----------
    working_dir:
        The Terraform root module.
    var_file_template:
        Path, relative to *working_dir*, of the per-environment variable
        file.  ``{environment}`` is substituted.  Skipped when absent.
    plugin_cache_dir:
        Exported as ``TF_PLUGIN_CACHE_DIR``.  A cache miss only costs time.
    """

    def __init__(
        self,
        working_dir: Path,
        *,
        var_file_template: str = "environments/{environment}.tfvars",
        plugin_cache_dir: Path | None = None,
        runner: CommandRunner = run_command,
        binary: str = "terraform",
    ) -> None:
        self.working_dir = Path(working_dir)
        self._var_file_template = var_file_template
        self._plugin_cache_dir = plugin_cache_dir
        self._runner = runner
        self._binary = binary

    @property
    def plan_path(self) -> Path:
        return self.working_dir / PLAN_FILE

    def _env(self) -> dict[str, str]:
        env = {"TF_IN_AUTOMATION": "1", "TF_INPUT": "0"}
        if self._plugin_cache_dir is not None:
            self._plugin_cache_dir.mkdir(parents=True, exist_ok=True)
            env["TF_PLUGIN_CACHE_DIR"] = str(self._plugin_cache_dir.resolve())
        return env

    def _run(self, *args: str, check: bool = True) -> CommandResult:
        return self._runner(
            [self._binary, *args],
            cwd=self.working_dir,
            env=self._env(),
            check=check,
        )

    def var_file_for(self, environment: Environment) -> Path | None:
        if not self._var_file_template:
            return None
        relative = self._var_file_template.format(environment=environment.value)
        path = Path(relative)
        return path if (self.working_dir / path).exists() else None

    def init(self) -> CommandResult:
        return self._run("init", "-input=false", "-no-color")

    def plan(self, environment: Environment) -> bytes:
        """Run ``terraform plan -out=tfplan`` and return the plan bytes."""
        args = ["plan", "-input=false", "-no-color", f"-out={PLAN_FILE}"]
        var_file = self.var_file_for(environment)
        if var_file is not None:
            args.append(f"-var-file={var_file}")
        # A plan left behind by an earlier apply must never pass as this one.
        self.plan_path.unlink(missing_ok=True)
        self._run(*args)
        if not self.plan_path.exists():
            raise PlanNotProduced(f"terraform plan did not write {self.plan_path}")
        plan = self.plan_path.read_bytes()
        logger.info("Plan for %s written (%d bytes).", environment.value, len(plan))
        return plan

    def apply(self, plan: bytes) -> CommandResult:
        """Apply exactly *plan*.  Never re-plans."""
        self.plan_path.write_bytes(plan)
        return self._run("apply", "-input=false", "-no-color", PLAN_FILE, check=False)

    def output_json(self) -> bytes:
        """Return ``terraform output -json`` as raw bytes."""
        return self._run("output", "-json", "-no-color").stdout.encode("utf-8")
