"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state

Tests (or embedding applications) may pre-populate
``app.state.translation_service`` before startup; the lifespan then wires
the handler around it instead of building components from settings.
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from promql_cache.config import Settings, configure_logging, get_settings
from promql_cache.handlers import TranslationHandler
from promql_cache.protocols import EmbeddingProvider
from promql_cache.repositories import (
    InMemoryCacheEntryStore,
    InMemoryHistoryStore,
    InMemoryServiceRegistry,
    LinearScanIndex,
    OllamaEmbeddingProvider,
    OllamaQueryGenerator,
    PrometheusExecutor,
    RedisCacheEntryStore,
    RedisHistoryStore,
    RedisVectorIndex,
)
from promql_cache.services import FeedbackRecorder, TranslationService

logger = logging.getLogger(__name__)


def get_translation_service(request: Request) -> TranslationService:
    """Dependency injection for TranslationService from app.state.

    Raises:
        RuntimeError: If service is not initialized
    """
    service = getattr(request.app.state, "translation_service", None)
    if service is None:
        raise RuntimeError("TranslationService not initialized. Check lifespan setup.")
    return service


def get_handler(request: Request) -> TranslationHandler:
    """Dependency injection for TranslationHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "translation_handler", None)
    if handler is None:
        raise RuntimeError("TranslationHandler not initialized. Check lifespan setup.")
    return handler


def build_embedding_provider(config: Settings) -> EmbeddingProvider:
    """Pick the embedder named by EMBEDDING_PROVIDER.

    ⚠️ IMPORTANT: When switching providers or dimensions, the Redis index must
    be dropped, since stored vectors are only comparable within one model.
    """
    if config.embedding_provider == "local":
        # sentence-transformers pulls in torch; only import it when asked for
        from promql_cache.repositories.local_embedding_provider import LocalEmbeddingProvider

        return LocalEmbeddingProvider.create(model_name=config.embedding_model)
    return OllamaEmbeddingProvider.create(model_name=config.embedding_model, base_url=config.ollama_base_url)


def build_registry(config: Settings) -> InMemoryServiceRegistry:
    if config.registry_snapshot_path:
        registry = InMemoryServiceRegistry.from_file(config.registry_snapshot_path)
        logger.info(
            "Loaded %d services from %s",
            len(registry.list_services()),
            config.registry_snapshot_path,
        )
        return registry
    logger.warning("REGISTRY_SNAPSHOT_PATH not set; starting with an empty service registry")
    return InMemoryServiceRegistry()


def build_translation_service(config: Settings) -> TranslationService:
    """Wire every layer from settings.

    STORAGE_BACKEND selects Redis (entries, HNSW index, history stream) or
    the in-process equivalents. Validation is enabled only when
    PROMETHEUS_URL is set.
    """
    embedding_provider = build_embedding_provider(config)

    if config.storage_backend == "memory":
        entry_store = InMemoryCacheEntryStore()
        index = LinearScanIndex(dimension=embedding_provider.dimension)
        history_store = InMemoryHistoryStore()
    else:
        entry_store = RedisCacheEntryStore.create()
        index = RedisVectorIndex.create(dimension=embedding_provider.dimension)
        history_store = RedisHistoryStore.create()

    executor = PrometheusExecutor.create(base_url=config.prometheus_url) if config.prometheus_url else None

    return TranslationService.create(
        embedding_provider=embedding_provider,
        index=index,
        entry_store=entry_store,
        generator=OllamaQueryGenerator.create(model_name=config.generator_model, base_url=config.ollama_base_url),
        feedback=FeedbackRecorder(history_store, entry_store),
        registry=build_registry(config),
        executor=executor,
        similarity_threshold=config.similarity_threshold,
        confidence_threshold=config.confidence_threshold,
        neighbor_count=config.neighbor_count,
        prior_successes=config.prior_successes,
        prior_failures=config.prior_failures,
        default_generation_confidence=config.default_generation_confidence,
        validation_policy=config.validation_policy,
        validation_penalty=config.validation_penalty,
        request_timeout=config.request_timeout_seconds,
        max_query_length=config.max_query_length,
        default_time_range=config.default_time_range,
    )


async def _close_clients(service: TranslationService) -> None:
    for component in (service.embedding_provider, service.generator, service.executor):
        close = getattr(component, "close", None)
        if close is not None:
            await close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores in app.state:
    1. Service (business logic) - stored in app.state.translation_service
    2. Handler (HTTP endpoints) - stored in app.state.translation_handler

    Cleanup:
        Waits for deferred feedback writes, closes HTTP clients and
        removes all services from app.state on shutdown
    """
    config = get_settings()
    configure_logging(config.log_level)

    service = getattr(app.state, "translation_service", None)
    owns_service = service is None
    if owns_service:
        service = build_translation_service(config)
        app.state.translation_service = service
    app.state.translation_handler = TranslationHandler(translation_service=service)

    logger.info("Translation service initialized (storage=%s)", config.storage_backend)
    logger.info(
        "Thresholds: similarity=%.2f confidence=%.2f k=%d",
        config.similarity_threshold,
        config.confidence_threshold,
        config.neighbor_count,
    )

    yield

    await service.feedback.drain()
    del app.state.translation_handler
    if owns_service:
        await _close_clients(service)
        del app.state.translation_service
    logger.info("Translation service shut down")


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[TranslationHandler, Depends(get_handler)]
ServiceDep = Annotated[TranslationService, Depends(get_translation_service)]
