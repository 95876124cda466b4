"""
Shared fixtures: deterministic fakes for the embedder, generator and executor.
"""

import asyncio
import math

import pytest

from promql_cache.entities import ExecutionResult, GeneratedQuery, GenerationContext
from promql_cache.repositories import (
    InMemoryCacheEntryStore,
    InMemoryHistoryStore,
    InMemoryServiceRegistry,
    LinearScanIndex,
)
from promql_cache.services import FeedbackRecorder, TranslationService

DIMENSION = 16


def unit(index: int, dimension: int = DIMENSION) -> list[float]:
    vector = [0.0] * dimension
    vector[index] = 1.0
    return vector


def at_similarity(similarity: float, dimension: int = DIMENSION) -> list[float]:
    """Unit vector whose cosine similarity with unit(0) is exactly ``similarity``."""
    vector = [0.0] * dimension
    vector[0] = similarity
    vector[1] = math.sqrt(1.0 - similarity**2)
    return vector


class FakeEmbedder:
    """Maps canonical texts to fixed vectors.

    Unregistered texts get the next unused basis vector, so distinct
    questions are orthogonal (similarity 0) unless a test says otherwise.
    """

    def __init__(self, dimension: int = DIMENSION) -> None:
        self._dimension = dimension
        self.vectors: dict[str, list[float]] = {}
        self.calls: list[str] = []
        self.error: Exception | None = None
        self._next_basis = dimension - 1

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return "fake-embedder"

    def set(self, text: str, vector: list[float]) -> None:
        self.vectors[text] = vector

    async def encode(self, text: str) -> list[float]:
        self.calls.append(text)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if text not in self.vectors:
            self.vectors[text] = unit(self._next_basis, self._dimension)
            self._next_basis -= 1
        return self.vectors[text]

    async def is_available(self) -> bool:
        return self.error is None


class FakeGenerator:
    """Returns queued answers in order, repeating the last one."""

    def __init__(self, *answers: str, confidence: float | None = None, delay: float = 0.0) -> None:
        self.answers = list(answers) or ['sum(rate(http_requests_total{service="checkout-service"}[5m]))']
        self.confidence = confidence
        self.delay = delay
        self.error: Exception | None = None
        self.contexts: list[GenerationContext] = []

    async def generate(self, context: GenerationContext) -> GeneratedQuery:
        self.contexts.append(context)
        index = min(len(self.contexts), len(self.answers)) - 1
        if self.delay:
            await asyncio.sleep(self.delay)
        else:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return GeneratedQuery(self.answers[index], confidence=self.confidence, explanation="generated")

    @property
    def calls(self) -> int:
        return len(self.contexts)


class FakeExecutor:
    def __init__(self, success: bool = True, error: str | None = None, execution_time_ms: float = 12.0) -> None:
        self.success = success
        self.error = error
        self.execution_time_ms = execution_time_ms
        self.raises: Exception | None = None
        self.executed: list[str] = []

    async def execute(self, promql: str) -> ExecutionResult:
        self.executed.append(promql)
        await asyncio.sleep(0)
        if self.raises is not None:
            raise self.raises
        return ExecutionResult(self.success, self.execution_time_ms, None if self.success else self.error)


class Harness:
    """Bundle of in-memory collaborators wired into a TranslationService."""

    def __init__(self, executor: FakeExecutor | None = None, registry: InMemoryServiceRegistry | None = None, **overrides):
        self.embedder = FakeEmbedder()
        self.generator = FakeGenerator()
        self.executor = executor
        self.entries = InMemoryCacheEntryStore()
        self.index = LinearScanIndex(DIMENSION)
        self.history = InMemoryHistoryStore()
        self.registry = registry or InMemoryServiceRegistry()
        self.feedback = FeedbackRecorder(self.history, self.entries, deferred=False)
        settings = {
            "similarity_threshold": 0.85,
            "confidence_threshold": 0.6,
            "neighbor_count": 3,
            "prior_successes": 1.0,
            "prior_failures": 1.0,
            "default_generation_confidence": 0.5,
            "validation_policy": "always",
            "validation_penalty": 0.5,
            "request_timeout": 5.0,
            "default_time_range": "5m",
        }
        settings.update(overrides)
        self.service = TranslationService.create(
            embedding_provider=self.embedder,
            index=self.index,
            entry_store=self.entries,
            generator=self.generator,
            feedback=self.feedback,
            registry=self.registry,
            executor=executor,
            **settings,
        )

    def translate(self, query: str, user_context=None):
        return asyncio.run(self.service.translate_query(query, user_context))


@pytest.fixture
def registry():
    return InMemoryServiceRegistry.from_snapshot(
        {
            "services": [
                {
                    "name": "checkout-service",
                    "namespace": "shop",
                    "description": "Checkout and payment flow",
                    "labels": {"team": "payments"},
                    "metrics": [
                        {"name": "http_requests_total", "type": "counter"},
                        {"name": "http_request_duration_seconds", "type": "histogram"},
                    ],
                },
                {
                    "name": "search-api",
                    "description": "Product search",
                    "metrics": [{"name": "search_latency_seconds", "type": "histogram"}],
                },
            ]
        }
    )


@pytest.fixture
def harness():
    """Service with a succeeding executor and the default thresholds."""
    return Harness(executor=FakeExecutor())


@pytest.fixture
def make_harness():
    return Harness
