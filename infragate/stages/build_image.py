"""Build Runner Image — the CI image carrying terraform/ansible tooling."""

from __future__ import annotations

from infragate.invokers.container import ContainerInvoker
from infragate.models.stages import IMAGE_REFS
from infragate.stages.base import BaseStage, StageContext


class BuildRunnerImageStage(BaseStage):
    """Builds and pushes the runner image tagged with the derived version."""

    stage_id = "build_runner_image"
    display_name = "Build Runner Image"

    def __init__(self, container: ContainerInvoker) -> None:
        self._container = container

    def execute(self, context: StageContext) -> dict[str, str]:
        settings = context.settings
        version = context.run.image_version
        if settings.has_registry_credentials:
            self._container.login(
                settings.registry,
                settings.registry_user,
                settings.registry_password.get_secret_value(),
            )
        self._container.build(version)
        tags = self._container.push(version)
        context.emit(IMAGE_REFS, "\n".join(tags) + "\n")
        return {"image": self._container.image, "version": version}
