"""Command runner for the external tools the pipeline drives.

Every tool is a leaf: run it, capture its output, surface its exit code.
Nothing here retries.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

# Conventional shell exit code for "command not found".
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    """Result envelope for subprocess execution."""

    argv: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout followed by stderr, as a tool report would show them."""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


class ExternalToolFailure(RuntimeError):
    """Raised when an external tool exits non-zero.

    Carries the tool's own exit code and output verbatim.
    """

    def __init__(self, result: CommandResult):
        rendered = shlex.join(result.argv)
        detail = (result.stderr or result.stdout).strip()
        super().__init__(f"command failed ({result.returncode}): {rendered}\n{detail}")
        self.result = result

    @property
    def exit_code(self) -> int:
        return self.result.returncode


class CommandRunner(Protocol):
    def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
        stdin: str | None = None,
        check: bool = True,
    ) -> CommandResult: ...


def run_command(
    argv: Sequence[str],
    *,
    cwd: Path,
    env: Mapping[str, str] | None = None,
    stdin: str | None = None,
    check: bool = True,
) -> CommandResult:
    """Run a command and return a structured result.

    *env* is layered over the current process environment.  With
    ``check=True`` a non-zero exit raises ``ExternalToolFailure``.
    """
    merged_env = {**os.environ, **env} if env else None
    logger.info("$ %s  (cwd=%s)", shlex.join(argv), cwd)
    try:
        completed = subprocess.run(
            list(argv),
            cwd=cwd,
            env=merged_env,
            input=stdin,
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as exc:
        result = CommandResult(
            argv=tuple(argv),
            cwd=Path(cwd),
            returncode=EXIT_NOT_FOUND,
            stdout="",
            stderr=str(exc),
        )
    else:
        result = CommandResult(
            argv=tuple(argv),
            cwd=Path(cwd),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

    if not result.ok:
        logger.warning("%s exited with %d", argv[0], result.returncode)
    if check and not result.ok:
        raise ExternalToolFailure(result)
    return result
