"""ansible-lint and ansible-playbook invoker."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from infragate.invokers.exec import CommandResult, CommandRunner, run_command
from infragate.models.triggers import Environment

logger = logging.getLogger(__name__)


@contextmanager
def _secret_file(content: str | bytes, *, suffix: str = "") -> Iterator[Path]:
    """Write *content* to a 0600 temp file removed on exit."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    fd, name = tempfile.mkstemp(prefix="infragate-", suffix=suffix)
    path = Path(name)
    try:
        os.chmod(path, 0o600)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        yield path
    finally:
        path.unlink(missing_ok=True)


class AnsibleInvoker:
    """Runs ansible tooling inside the playbook directory.

    Parameters
    ----------
    working_dir:
        Directory holding the playbook and inventories.
    playbook:
        The fixed playbook entry point, relative to *working_dir*.
    inventory_template:
        Inventory path keyed by environment name; ``{environment}`` is
        substituted.
    """

    def __init__(
        self,
        working_dir: Path,
        *,
        playbook: str = "site.yml",
        inventory_template: str = "inventory/{environment}.ini",
        runner: CommandRunner = run_command,
        lint_binary: str = "ansible-lint",
        playbook_binary: str = "ansible-playbook",
    ) -> None:
        self.working_dir = Path(working_dir)
        self.playbook_name = playbook
        self._inventory_template = inventory_template
        self._runner = runner
        self._lint_binary = lint_binary
        self._playbook_binary = playbook_binary

    def inventory_for(self, environment: Environment) -> Path:
        return Path(self._inventory_template.format(environment=environment.value))

    def lint(self) -> CommandResult:
        """Run ansible-lint.  The caller decides what a non-zero exit means.

        The report is returned even on failure so it can be retained.
        """
        return self._runner(
            [self._lint_binary, "--nocolor", self.playbook_name],
            cwd=self.working_dir,
            check=False,
        )

    def playbook(
        self,
        environment: Environment,
        *,
        private_key: str | None = None,
        extra_vars: bytes | None = None,
    ) -> CommandResult:
        """Run the playbook against the inventory for *environment*.

        Strict host-key checking is off: the target hosts were created
        earlier in the same run and their keys are not known in advance.
        """
        argv = [
            self._playbook_binary,
            "-i",
            str(self.inventory_for(environment)),
            self.playbook_name,
        ]
        env = {"ANSIBLE_HOST_KEY_CHECKING": "False", "ANSIBLE_NOCOLOR": "1"}

        with _optional_secret(private_key, normalize_key=True) as key_path, \
                _optional_secret(extra_vars, suffix=".json") as vars_path:
            if key_path is not None:
                argv += ["--private-key", str(key_path)]
            if vars_path is not None:
                argv += ["--extra-vars", f"@{vars_path}"]
            logger.info(
                "Running %s for %s.", self.playbook_name, environment.value
            )
            return self._runner(argv, cwd=self.working_dir, env=env, check=False)


@contextmanager
def _optional_secret(
    content: str | bytes | None,
    *,
    suffix: str = "",
    normalize_key: bool = False,
) -> Iterator[Path | None]:
    if content is None:
        yield None
        return
    if normalize_key and isinstance(content, str) and not content.endswith("\n"):
        # CI variables commonly lose the trailing newline ssh requires.
        content += "\n"
    with _secret_file(content, suffix=suffix) as path:
        yield path
