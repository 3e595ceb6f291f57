"""Content-addressed artifact store and the stage artifact layer on top.

Storage layout: {base_path}/{sha256[0:2]}/{sha256[2:4]}/{sha256}.dat

Blobs are immutable once stored.  The only removal path is retention
pruning: stage artifacts expire after a fixed window regardless of the
outcome of the stage that produced them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from infragate.core.hasher import canonical_json_bytes, sha256_hex
from infragate.models.artifacts import ContentAddressedArtifact, StageArtifact

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=3)


def digest_of(content_address: str) -> str:
    """Strip the ``sha256:`` prefix from a content address, if present."""
    return content_address.removeprefix("sha256:")


class ArtifactIntegrityError(RuntimeError):
    """Raised when a stored artifact's hash does not match its address."""


class MissingArtifact(RuntimeError):
    """Raised when a stage's required input artifact is absent or expired.

    This is a broken stage dependency: fatal, surfaced, never retried.
    """


class ContentAddressedStore:
    """SHA-256 keyed artifact store.

    Storing the same content twice is a no-op (idempotent).

    Parameters
    ----------
    base_path:
        Root directory for artifact storage.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    def _artifact_path(self, sha256_digest: str) -> Path:
        return self._base / sha256_digest[:2] / sha256_digest[2:4] / f"{sha256_digest}.dat"

    # ------------------------------------------------------------------
    # Store / retrieve
    # ------------------------------------------------------------------

    def store(
        self,
        data: bytes,
        *,
        name: str = "",
        artifact_type: str = "generic",
        metadata: dict[str, Any] | None = None,
    ) -> ContentAddressedArtifact:
        """Store data and return its content-addressed artifact metadata.

        If the content already exists (same hash), verifies integrity
        and returns the existing artifact without overwriting.
        """
        digest = sha256_hex(data)
        path = self._artifact_path(digest)

        if path.exists():
            if not self.verify(digest):
                raise ArtifactIntegrityError(
                    f"Existing artifact at {digest} failed integrity check"
                )
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        return ContentAddressedArtifact(
            content_address=f"sha256:{digest}",
            artifact_type=artifact_type,
            name=name or digest[:16],
            size_bytes=len(data),
            metadata=metadata or {},
        )

    def retrieve(self, content_address: str) -> bytes:
        """Retrieve artifact bytes by content address.

        Parameters
        ----------
        content_address:
            Either "sha256:<hex>" or just the hex digest.
        """
        digest = digest_of(content_address)
        path = self._artifact_path(digest)
        if not path.exists():
            raise FileNotFoundError(f"Artifact not found: {content_address}")
        return path.read_bytes()

    def exists(self, content_address: str) -> bool:
        return self._artifact_path(digest_of(content_address)).exists()

    def verify(self, content_address: str) -> bool:
        """Re-hash stored data and compare against the content address."""
        digest = digest_of(content_address)
        path = self._artifact_path(digest)
        if not path.exists():
            return False
        return sha256_hex(path.read_bytes()) == digest

    def purge(self, content_address: str) -> bool:
        """Remove a blob.  Used only by retention pruning."""
        path = self._artifact_path(digest_of(content_address))
        if not path.exists():
            return False
        path.unlink()
        return True


class StageArtifactStore:
    """Stage-scoped artifacts with a retention window.

    Each artifact is two blobs in the content-addressed store: the bytes,
    and a ``StageArtifact`` record describing them.  The record's address
    is what the ledger references.  An index directory lists live records
    so that expired ones can be pruned.

    Parameters
    ----------
    store:
        The underlying content-addressed store.
    retention:
        How long an artifact stays retrievable after it was produced.
    """

    def __init__(
        self,
        store: ContentAddressedStore,
        *,
        retention: timedelta = DEFAULT_RETENTION,
    ) -> None:
        self._store = store
        self._retention = retention
        self._index = store.base_path / "index"
        self._index.mkdir(parents=True, exist_ok=True)

    @property
    def retention(self) -> timedelta:
        return self._retention

    def put(
        self,
        run_id: str,
        stage_id: str,
        name: str,
        data: bytes,
        *,
        now: datetime | None = None,
    ) -> tuple[str, StageArtifact]:
        """Store *data* as an artifact of ``run_id/stage_id``.

        Returns the record address and the record itself.
        """
        blob = self._store.store(data, name=name, artifact_type="stage-output")
        created = now or datetime.now(timezone.utc)
        record = StageArtifact(
            name=name,
            run_id=run_id,
            stage_id=stage_id,
            content_address=blob.content_address,
            size_bytes=blob.size_bytes,
            created_at=created,
            expires_at=created + self._retention,
        )
        stored = self._store.store(
            canonical_json_bytes(record.model_dump(mode="json")),
            name=f"{run_id}/{stage_id}/{name}",
            artifact_type="stage-artifact",
        )
        (self._index / digest_of(stored.content_address)).touch()
        logger.debug(
            "Stored %s for %s/%s (%d bytes, expires %s).",
            name, run_id, stage_id, record.size_bytes, record.expires_at.isoformat(),
        )
        return stored.content_address, record

    def describe(self, record_address: str) -> StageArtifact:
        """Load the record stored at *record_address*."""
        try:
            raw = self._store.retrieve(record_address)
        except FileNotFoundError:
            raise MissingArtifact(
                f"Artifact record {record_address} is not in the store"
            ) from None
        try:
            return StageArtifact.model_validate_json(raw)
        except ValidationError as exc:
            raise ArtifactIntegrityError(
                f"{record_address} is not a stage artifact record"
            ) from exc

    def get(self, record_address: str, *, now: datetime | None = None) -> bytes:
        """Return the exact bytes of an artifact.

        Raises ``MissingArtifact`` when the record or its blob is gone or
        the retention window has passed, and ``ArtifactIntegrityError``
        when the stored bytes no longer match their digest.
        """
        record = self.describe(record_address)
        if record.is_expired(now):
            raise MissingArtifact(
                f"Artifact {record.name} from {record.run_id}/{record.stage_id} "
                f"expired at {record.expires_at.isoformat()}"
            )
        try:
            data = self._store.retrieve(record.content_address)
        except FileNotFoundError:
            raise MissingArtifact(
                f"Artifact {record.name} from {record.run_id}/{record.stage_id} "
                f"has no stored content"
            ) from None
        if sha256_hex(data) != digest_of(record.content_address):
            raise ArtifactIntegrityError(
                f"Artifact {record.name} failed integrity check"
            )
        return data

    def prune_expired(self, *, now: datetime | None = None) -> list[StageArtifact]:
        """Remove every artifact whose retention window has passed.

        A blob shared with a still-live record is kept.
        """
        now = now or datetime.now(timezone.utc)
        expired: list[tuple[str, StageArtifact]] = []
        live_blobs: set[str] = set()
        for marker in sorted(self._index.iterdir()):
            record = self.describe(marker.name)
            if record.is_expired(now):
                expired.append((marker.name, record))
            else:
                live_blobs.add(record.content_address)

        for digest, record in expired:
            if record.content_address not in live_blobs:
                self._store.purge(record.content_address)
            self._store.purge(digest)
            (self._index / digest).unlink()
            logger.info(
                "Pruned expired artifact %s from %s/%s.",
                record.name, record.run_id, record.stage_id,
            )
        return [record for _, record in expired]
