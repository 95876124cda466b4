"""
Tests for settings validation and wiring from settings.
"""

import json

import pytest

from promql_cache.api.dependencies import build_translation_service
from promql_cache.config import Settings
from promql_cache.repositories import InMemoryCacheEntryStore, LinearScanIndex, OllamaEmbeddingProvider


def test_defaults_are_valid():
    config = Settings()

    assert 0 <= config.similarity_threshold <= 1
    assert config.validation_policy in ("always", "on_miss", "never")


@pytest.mark.parametrize(
    "overrides",
    [
        {"similarity_threshold": 1.5},
        {"confidence_threshold": -0.1},
        {"neighbor_count": 0},
        {"prior_successes": 0.0},
        {"validation_policy": "sometimes"},
        {"validation_penalty": 2.0},
        {"storage_backend": "postgres"},
        {"embedding_provider": "openai"},
        {"stats_max_attempts": 0},
        {"upstream_max_attempts": 0},
    ],
)
def test_invalid_settings_rejected(overrides):
    with pytest.raises(ValueError):
        Settings(**overrides)


def test_memory_backend_wiring(tmp_path):
    snapshot = tmp_path / "registry.json"
    snapshot.write_text(json.dumps({"services": [{"name": "checkout-service"}]}))
    config = Settings(
        storage_backend="memory",
        embedding_model="nomic-embed-text",
        prometheus_url=None,
        registry_snapshot_path=str(snapshot),
    )

    service = build_translation_service(config)

    assert isinstance(service.entry_store, InMemoryCacheEntryStore)
    assert isinstance(service.index, LinearScanIndex)
    assert isinstance(service.embedding_provider, OllamaEmbeddingProvider)
    assert service.index.dimension == 768
    assert service.executor is None
    assert [s.name for s in service.registry.list_services()] == ["checkout-service"]
