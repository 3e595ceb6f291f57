"""docker login/build/push invoker for the CI runner image."""

from __future__ import annotations

from pathlib import Path

from infragate.invokers.exec import CommandResult, CommandRunner, run_command


class ContainerInvoker:
    """Builds and pushes ``image:version`` and ``image:latest``."""

    def __init__(
        self,
        context_dir: Path,
        *,
        image: str,
        dockerfile: str = "Dockerfile",
        runner: CommandRunner = run_command,
        binary: str = "docker",
    ) -> None:
        self.context_dir = Path(context_dir)
        self.image = image
        self._dockerfile = dockerfile
        self._runner = runner
        self._binary = binary

    def tags_for(self, version: str) -> list[str]:
        return [f"{self.image}:{version}", f"{self.image}:latest"]

    def login(self, registry: str, user: str, password: str) -> CommandResult:
        """Log in with the password on stdin, never on the command line."""
        return self._runner(
            [self._binary, "login", registry, "--username", user, "--password-stdin"],
            cwd=self.context_dir,
            stdin=password,
        )

    def build(self, version: str) -> list[str]:
        argv = [self._binary, "build", "--file", self._dockerfile]
        tags = self.tags_for(version)
        for tag in tags:
            argv += ["--tag", tag]
        argv.append(".")
        self._runner(argv, cwd=self.context_dir)
        return tags

    def push(self, version: str) -> list[str]:
        tags = self.tags_for(version)
        for tag in tags:
            self._runner([self._binary, "push", tag], cwd=self.context_dir)
        return tags
