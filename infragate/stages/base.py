"""Abstract base stage with an enforced lifecycle.

Every concrete stage inherits from BaseStage and implements only
``execute()``.  The ``run_stage()`` wrapper is **not overridable**:

    compute_input_hash -> execute -> compute_output_hash

Artifacts are emitted into the ``StageContext`` as the stage goes, so the
orchestrator can retain whatever was produced even when execution fails.
"""

from __future__ import annotations

import abc
import logging
from typing import ClassVar, final

from pydantic import BaseModel, ConfigDict

from infragate.config import Settings
from infragate.core.artifact_store import MissingArtifact
from infragate.core.hasher import compute_input_hash, compute_output_hash, sha256_hex
from infragate.models.run import RunContext

logger = logging.getLogger(__name__)


class StageContext:
    """What a stage sees while it runs.

    Parameters
    ----------
    run:
        The run's fixed inputs (commit, trigger, environment, ...).
    settings:
        Active settings; the only route to injected secrets.
    inputs:
        Artifact bytes from the preceding stage, keyed by artifact name.
    """

    def __init__(
        self,
        run: RunContext,
        settings: Settings,
        inputs: dict[str, bytes] | None = None,
    ) -> None:
        self.run = run
        self.settings = settings
        self.inputs = dict(inputs or {})
        self.outputs: dict[str, bytes] = {}

    def input(self, name: str) -> bytes:
        try:
            return self.inputs[name]
        except KeyError:
            raise MissingArtifact(
                f"Artifact {name} was not handed to this stage"
            ) from None

    def emit(self, name: str, data: bytes | str) -> None:
        """Record an output artifact.  Later emits of the same name win."""
        self.outputs[name] = data.encode("utf-8") if isinstance(data, str) else data


class StageOutcome(BaseModel):
    """Result of a successful stage run."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    input_hash: str
    output_hash: str
    details: dict[str, str] = {}


class BaseStage(abc.ABC):
    """Abstract base for all pipeline stages.

    Subclasses **must** set ``stage_id`` and ``display_name`` and implement
    ``execute(context)``.  Subclasses **must not** override ``run_stage()``.
    """

    stage_id: ClassVar[str]
    display_name: ClassVar[str]

    @abc.abstractmethod
    def execute(self, context: StageContext) -> dict[str, str]:
        """Run the stage's external tools.

        Returns a flat mapping of details recorded on the ledger entry.
        Raises on any tool failure; nothing is retried.
        """
        ...

    @final
    def run_stage(self, context: StageContext) -> StageOutcome:
        """Execute the full stage lifecycle.  **Do not override.**"""
        input_hash = compute_input_hash(
            self.stage_id,
            {
                "run_id": context.run.run_id,
                "commit": context.run.commit.sha,
                "environment": context.run.environment.value,
                "inputs": {
                    name: sha256_hex(data) for name, data in context.inputs.items()
                },
            },
        )
        logger.info("%s [%s] input_hash=%s", self.display_name, self.stage_id, input_hash[:12])

        try:
            details = self.execute(context)
        except Exception as exc:
            logger.error("%s [%s] failed: %s", self.display_name, self.stage_id, exc)
            raise

        output_hash = compute_output_hash(
            self.stage_id,
            {
                "details": details,
                "outputs": {
                    name: sha256_hex(data) for name, data in context.outputs.items()
                },
            },
        )
        logger.info("%s [%s] output_hash=%s", self.display_name, self.stage_id, output_hash[:12])
        return StageOutcome(
            stage_id=self.stage_id,
            input_hash=input_hash,
            output_hash=output_hash,
            details=details,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} stage_id={self.stage_id!r}>"
