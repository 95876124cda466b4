"""
Tests for the PromQL cache API.
"""

import pytest
from conftest import FakeExecutor, Harness
from fastapi.testclient import TestClient

from promql_cache.api.app import app
from promql_cache.errors import EmbedderUnavailable, GeneratorUnavailable, InvalidGenerationRequest, RateLimited


@pytest.fixture
def api_harness(registry):
    return Harness(executor=FakeExecutor(), registry=registry)


@pytest.fixture
def client(api_harness):
    """Create a test client around an in-memory translation service."""
    app.state.translation_service = api_harness.service
    with TestClient(app) as test_client:
        yield test_client
    del app.state.translation_service


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "PromQL Semantic Cache API"
    assert data["endpoints"]["query"] == "/api/v1/query"


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "cache_healthy": True, "embedding_healthy": True}


def test_query_miss_then_hit(client, api_harness):
    body = {"query": "Error rate for checkout-service", "time_range": "5m", "user_id": "alice"}

    first = client.post("/api/v1/query", json=body)
    second = client.post("/api/v1/query", json=body)

    assert first.status_code == 200
    data = first.json()
    assert data["cache_hit"] is False
    assert data["promql"] == 'sum(rate(http_requests_total{service="checkout-service"}[5m]))'
    assert data["estimated_cost"] == 6
    assert data["intent_type"] == "errors"
    assert data["service_name"] == "checkout-service"
    assert data["validated"] is True
    assert data["processing_time"] >= 0

    assert second.status_code == 200
    assert second.json()["cache_hit"] is True
    assert second.json()["promql"] == data["promql"]
    assert api_harness.generator.calls == 1


def test_query_with_context_labels(client, api_harness):
    api_harness.generator.answers = ['up{namespace="billing"}']

    response = client.post("/api/v1/query", json={"query": "is it up", "context": {"namespace": "billing"}})

    assert response.status_code == 200
    assert api_harness.entries.get("is it up").promql_template == 'up{namespace="{{namespace}}"}'


def test_query_validation(client):
    assert client.post("/api/v1/query", json={"query": ""}).status_code == 422

    response = client.post("/api/v1/query", json={"query": "   "})
    assert response.status_code == 400
    assert response.json()["detail"]["error"]["code"] == "INVALID_INPUT"

    response = client.post("/api/v1/query", json={"query": "cpu", "time_range": "30d"})
    assert response.status_code == 400


@pytest.mark.parametrize(
    "error,status_code,code",
    [
        (EmbedderUnavailable("Embedder unavailable"), 503, "EMBEDDER_UNAVAILABLE"),
        (RateLimited("Embedding service is rate limiting requests"), 429, "RATE_LIMITED"),
    ],
)
def test_embedder_errors(client, api_harness, error, status_code, code):
    api_harness.embedder.error = error

    response = client.post("/api/v1/query", json={"query": "cpu usage"})

    assert response.status_code == status_code
    assert response.json()["detail"]["error"]["code"] == code


@pytest.mark.parametrize(
    "error,status_code",
    [
        (GeneratorUnavailable("Generator unavailable"), 503),
        (InvalidGenerationRequest("Generator returned no PromQL"), 502),
    ],
)
def test_generator_errors(client, api_harness, error, status_code):
    api_harness.generator.error = error

    response = client.post("/api/v1/query", json={"query": "cpu usage"})

    assert response.status_code == status_code


def test_safety_violation(client, api_harness):
    api_harness.generator.answers = ["sum(api_token_expiry)"]

    response = client.post("/api/v1/query", json={"query": "token expiry"})

    assert response.status_code == 400
    error = response.json()["detail"]["error"]
    assert error["code"] == "SAFETY_VALIDATION_FAILED"
    assert "suggestion" in error


def test_list_and_search_services(client):
    response = client.get("/api/v1/services")
    assert response.status_code == 200
    assert [s["name"] for s in response.json()] == ["checkout-service", "search-api"]

    response = client.get("/api/v1/services/search", params={"q": "product"})
    assert response.status_code == 200
    assert [s["name"] for s in response.json()] == ["search-api"]


def test_get_service_and_metrics(client):
    response = client.get("/api/v1/services/checkout-service", params={"namespace": "shop"})
    assert response.status_code == 200
    assert response.json()["labels"] == {"team": "payments"}

    response = client.get("/api/v1/services/checkout-service/metrics", params={"namespace": "shop"})
    assert response.status_code == 200
    metrics = {m["name"]: m["type"] for m in response.json()}
    assert metrics == {"http_requests_total": "counter", "http_request_duration_seconds": "histogram"}


def test_unknown_service_is_404(client):
    response = client.get("/api/v1/services/nope")

    assert response.status_code == 404
    assert response.json()["detail"]["error"]["code"] == "CACHE_ENTRY_NOT_FOUND"


def test_history(client):
    client.post("/api/v1/query", json={"query": "cpu usage", "user_id": "alice"})
    client.post("/api/v1/query", json={"query": "memory usage", "user_id": "bob"})

    response = client.get("/api/v1/history")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [item["natural_query"] for item in data["items"]] == ["memory usage", "cpu usage"]

    response = client.get("/api/v1/history", params={"user_id": "alice", "limit": 10})
    assert [item["user_id"] for item in response.json()["items"]] == ["alice"]


def test_stats(client):
    client.post("/api/v1/query", json={"query": "cpu usage"})

    response = client.get("/api/v1/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["cache"]["total_entries"] == 1
    assert data["performance"]["total_queries"] == 1
    assert data["performance"]["cache_misses"] == 1
    assert data["pending_feedback"] == 0
