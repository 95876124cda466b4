#!/usr/bin/env python3
"""
Demo script for the PromQL semantic cache.

Runs a handful of questions through the translation service with in-memory
storage, a local Ollama for embeddings and generation, and (if
PROMETHEUS_URL is set) Prometheus as the validation oracle. Repeating a
question shows the confidence loop at work.

Requires: `ollama pull nomic-embed-text && ollama pull llama3.1`
"""

import asyncio
import time

from promql_cache.config import configure_logging, settings
from promql_cache.entities import UserContext
from promql_cache.errors import QueryCacheError
from promql_cache.repositories import (
    InMemoryCacheEntryStore,
    InMemoryHistoryStore,
    InMemoryServiceRegistry,
    LinearScanIndex,
    OllamaEmbeddingProvider,
    OllamaQueryGenerator,
    PrometheusExecutor,
)
from promql_cache.services import FeedbackRecorder, TranslationService

SNAPSHOT = {
    "services": [
        {
            "name": "checkout-service",
            "namespace": "shop",
            "description": "Checkout and payment flow",
            "metrics": [
                {"name": "http_requests_total", "type": "counter"},
                {"name": "http_request_duration_seconds", "type": "histogram"},
            ],
        },
        {
            "name": "search-api",
            "namespace": "shop",
            "description": "Product search",
            "metrics": [{"name": "search_requests_total", "type": "counter"}],
        },
    ]
}

QUESTIONS = [
    "What is the error rate of checkout-service?",
    "What is the error rate of checkout-service?",
    "error rate for the checkout-service",
    "Show me the p95 latency of search-api in the last 15 minutes",
    "p95 latency of search-api over the last 15 minutes",
]


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def build_service() -> TranslationService:
    embedder = OllamaEmbeddingProvider.create()
    entries = InMemoryCacheEntryStore()
    executor = PrometheusExecutor.create() if settings.prometheus_url else None
    return TranslationService.create(
        embedding_provider=embedder,
        index=LinearScanIndex(dimension=embedder.dimension),
        entry_store=entries,
        generator=OllamaQueryGenerator.create(),
        feedback=FeedbackRecorder(InMemoryHistoryStore(), entries, deferred=False),
        registry=InMemoryServiceRegistry.from_snapshot(SNAPSHOT),
        executor=executor,
    )


async def demo_translations(service: TranslationService) -> None:
    print_section("Translating questions")
    context = UserContext(user_id="demo", labels={"namespace": "shop"})

    for question in QUESTIONS:
        start = time.time()
        try:
            result = await service.translate_query(question, context)
        except QueryCacheError as e:
            print(f"\n❌ {question}\n   {e}")
            if e.suggestion:
                print(f"   💡 {e.suggestion}")
            continue

        marker = "✅ HIT " if result.cache_hit else "🆕 MISS"
        print(f"\n{marker} {question}")
        print(f"   PromQL:     {result.promql}")
        print(f"   Confidence: {result.confidence:.3f}   Cost: {result.estimated_cost}")
        print(f"   Time:       {(time.time() - start) * 1000:.0f}ms")
        if result.suggestions:
            print(f"   Similar:    {', '.join(result.suggestions)}")


def demo_stats(service: TranslationService) -> None:
    print_section("Statistics")
    for key, value in service.metrics.to_dict().items():
        print(f"   {key}: {value}")
    for key, value in service.get_stats().items():
        print(f"   {key}: {value}")


async def main() -> None:
    configure_logging("WARNING")
    service = build_service()
    try:
        await demo_translations(service)
        demo_stats(service)
    finally:
        await service.feedback.drain()
        await service.embedding_provider.close()
        await service.generator.close()
        if service.executor is not None:
            await service.executor.close()


if __name__ == "__main__":
    asyncio.run(main())
