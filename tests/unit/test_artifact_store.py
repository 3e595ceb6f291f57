"""Tests for the content-addressed store and stage artifacts with retention."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from infragate.core.artifact_store import (
    ArtifactIntegrityError,
    ContentAddressedStore,
    MissingArtifact,
    StageArtifactStore,
    digest_of,
)
from infragate.core.hasher import sha256_hex

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class TestContentAddressedStore:
    def test_store_and_retrieve(self, artifact_store: ContentAddressedStore):
        data = b"hello world"
        artifact = artifact_store.store(data, name="test.txt")
        assert artifact.content_address.startswith("sha256:")
        assert artifact_store.retrieve(artifact.content_address) == data

    def test_idempotent_store(self, artifact_store: ContentAddressedStore):
        a1 = artifact_store.store(b"same content")
        a2 = artifact_store.store(b"same content")
        assert a1.content_address == a2.content_address

    def test_layout(self, artifact_store: ContentAddressedStore):
        artifact = artifact_store.store(b"layout")
        digest = digest_of(artifact.content_address)
        path = artifact_store.base_path / digest[:2] / digest[2:4] / f"{digest}.dat"
        assert path.read_bytes() == b"layout"

    def test_verify_detects_corruption(self, artifact_store: ContentAddressedStore):
        artifact = artifact_store.store(b"original")
        assert artifact_store.verify(artifact.content_address)
        digest = digest_of(artifact.content_address)
        path = artifact_store.base_path / digest[:2] / digest[2:4] / f"{digest}.dat"
        path.write_bytes(b"tampered")
        assert not artifact_store.verify(artifact.content_address)
        with pytest.raises(ArtifactIntegrityError):
            artifact_store.store(b"original")

    def test_retrieve_missing(self, artifact_store: ContentAddressedStore):
        with pytest.raises(FileNotFoundError):
            artifact_store.retrieve("sha256:" + "0" * 64)

    def test_purge(self, artifact_store: ContentAddressedStore):
        artifact = artifact_store.store(b"short-lived")
        assert artifact_store.purge(artifact.content_address)
        assert not artifact_store.exists(artifact.content_address)
        assert not artifact_store.purge(artifact.content_address)


class TestStageArtifactStore:
    def test_put_and_get_exact_bytes(self, stage_artifacts: StageArtifactStore):
        plan = bytes(range(256))
        ref, record = stage_artifacts.put("run-1", "lint_and_plan", "tfplan", plan, now=NOW)
        assert record.size_bytes == 256
        assert record.content_address == f"sha256:{sha256_hex(plan)}"
        assert stage_artifacts.get(ref, now=NOW) == plan

    def test_default_retention_is_three_days(self, stage_artifacts: StageArtifactStore):
        _, record = stage_artifacts.put("run-1", "lint_and_plan", "tfplan", b"p", now=NOW)
        assert record.expires_at - record.created_at == timedelta(days=3)

    def test_describe(self, stage_artifacts: StageArtifactStore):
        ref, _ = stage_artifacts.put("run-1", "lint_and_plan", "lint-report.txt", b"ok", now=NOW)
        record = stage_artifacts.describe(ref)
        assert (record.run_id, record.stage_id, record.name) == (
            "run-1",
            "lint_and_plan",
            "lint-report.txt",
        )

    def test_describe_unknown_record(self, stage_artifacts: StageArtifactStore):
        with pytest.raises(MissingArtifact):
            stage_artifacts.describe("sha256:" + "f" * 64)

    def test_describe_non_record_blob(
        self, artifact_store: ContentAddressedStore, stage_artifacts: StageArtifactStore
    ):
        blob = artifact_store.store(b"not json")
        with pytest.raises(ArtifactIntegrityError):
            stage_artifacts.describe(blob.content_address)

    def test_get_after_expiry_is_missing(self, stage_artifacts: StageArtifactStore):
        ref, _ = stage_artifacts.put("run-1", "lint_and_plan", "tfplan", b"p", now=NOW)
        assert stage_artifacts.get(ref, now=NOW + timedelta(days=2, hours=23)) == b"p"
        with pytest.raises(MissingArtifact, match="expired"):
            stage_artifacts.get(ref, now=NOW + timedelta(days=3))

    def test_get_with_blob_gone(
        self, artifact_store: ContentAddressedStore, stage_artifacts: StageArtifactStore
    ):
        ref, record = stage_artifacts.put("run-1", "lint_and_plan", "tfplan", b"p", now=NOW)
        artifact_store.purge(record.content_address)
        with pytest.raises(MissingArtifact, match="no stored content"):
            stage_artifacts.get(ref, now=NOW)

    def test_custom_retention(self, artifact_store: ContentAddressedStore):
        store = StageArtifactStore(artifact_store, retention=timedelta(hours=1))
        ref, _ = store.put("run-1", "lint_and_plan", "tfplan", b"p", now=NOW)
        with pytest.raises(MissingArtifact):
            store.get(ref, now=NOW + timedelta(hours=2))

    def test_prune_expired(self, stage_artifacts: StageArtifactStore):
        old_ref, old = stage_artifacts.put("run-1", "lint_and_plan", "tfplan", b"old", now=NOW)
        new_ref, _ = stage_artifacts.put(
            "run-2", "lint_and_plan", "tfplan", b"new", now=NOW + timedelta(days=2)
        )

        pruned = stage_artifacts.prune_expired(now=NOW + timedelta(days=4))

        assert [r.run_id for r in pruned] == ["run-1"]
        with pytest.raises(MissingArtifact):
            stage_artifacts.describe(old_ref)
        assert stage_artifacts.get(new_ref, now=NOW + timedelta(days=4)) == b"new"

    def test_prune_keeps_blob_shared_with_live_record(self, stage_artifacts: StageArtifactStore):
        stage_artifacts.put("run-1", "lint_and_plan", "lint-report.txt", b"same", now=NOW)
        live_ref, _ = stage_artifacts.put(
            "run-2", "lint_and_plan", "lint-report.txt", b"same", now=NOW + timedelta(days=2)
        )
        stage_artifacts.prune_expired(now=NOW + timedelta(days=4))
        assert stage_artifacts.get(live_ref, now=NOW + timedelta(days=4)) == b"same"

    def test_prune_with_nothing_expired(self, stage_artifacts: StageArtifactStore):
        stage_artifacts.put("run-1", "lint_and_plan", "tfplan", b"p", now=NOW)
        assert stage_artifacts.prune_expired(now=NOW) == []
