"""Unit tests for the ArtifactRegistry — append-only recording of discovered values."""

from __future__ import annotations

import pytest

from airbrx_deploy.core.artifact_registry import (
    ArtifactOverwriteError,
    ArtifactRegistry,
    MissingArtifactError,
)


class TestArtifactRegistryRecording:
    """A key is written once per run; identical re-records are no-ops."""

    def test_record_and_read(self):
        registry = ArtifactRegistry()
        registry.record("api.functionUrl", "https://abc.lambda-url.us-east-1.on.aws/", producer="compute.api")

        assert registry["api.functionUrl"] == "https://abc.lambda-url.us-east-1.on.aws/"
        assert registry.producer_of("api.functionUrl") == "compute.api"
        assert "api.functionUrl" in registry
        assert len(registry) == 1

    def test_same_value_twice_is_noop(self):
        registry = ArtifactRegistry()
        registry.record("bucket.admin", "acme-dev-airbrx-admin-storage", producer="storage.admin")
        registry.record("bucket.admin", "acme-dev-airbrx-admin-storage", producer="other")

        assert registry.producer_of("bucket.admin") == "storage.admin"

    def test_different_value_raises(self):
        registry = ArtifactRegistry()
        registry.record("api.cdnDomain", "d1.cloudfront.net", producer="edge.api")

        with pytest.raises(ArtifactOverwriteError, match="edge.api"):
            registry.record("api.cdnDomain", "d2.cloudfront.net", producer="edge.api")
        assert registry["api.cdnDomain"] == "d1.cloudfront.net"

    def test_non_string_value_rejected(self):
        registry = ArtifactRegistry()
        with pytest.raises(TypeError):
            registry.record("app.syncedObjects", 3)  # type: ignore[arg-type]

    def test_record_many(self):
        registry = ArtifactRegistry()
        registry.record_many({"a": "1", "b": "2"}, producer="step")
        assert registry.snapshot() == {"a": "1", "b": "2"}
        assert registry.producer_of("b") == "step"


class TestArtifactRegistryReading:
    """Reads of unknown keys fail loudly."""

    def test_missing_key_raises_missing_artifact(self):
        registry = ArtifactRegistry()
        with pytest.raises(MissingArtifactError):
            registry["gateway.fqdn"]

    def test_missing_artifact_is_a_key_error(self):
        registry = ArtifactRegistry()
        with pytest.raises(KeyError):
            registry["gateway.fqdn"]
        assert registry.get("gateway.fqdn") is None

    def test_seed_values_are_recorded_with_seed_producer(self):
        registry = ArtifactRegistry({"account.id": "123456789012"})
        assert registry["account.id"] == "123456789012"
        assert registry.producer_of("account.id") == "seed"

    def test_snapshot_is_a_copy(self):
        registry = ArtifactRegistry({"account.id": "123456789012"})
        snap = registry.snapshot()
        snap["account.id"] = "tampered"
        assert registry["account.id"] == "123456789012"
