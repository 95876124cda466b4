"""PromQL Semantic Cache - natural language to PromQL with a self-tuning cache.

Answers are reused for semantically similar questions once their execution
history makes them trustworthy; everything else goes to an LLM generator and
is cached for next time.

Layers:
    - protocols: Interface contracts (EmbeddingProvider, VectorIndex, CacheEntryStore, ...)
    - repositories: Data access implementations (Redis, in-memory, Ollama, Prometheus)
    - services: Business logic (TranslationService, FeedbackRecorder)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from promql_cache.services import TranslationService

    service = TranslationService.create(...)
    result = await service.translate_query("p95 latency of checkout-service")
    ```

For HTTP API:
    ```python
    from promql_cache.api.app import app
    ```
"""

from promql_cache.config import get_redis_client, settings
from promql_cache.dto import TranslateQueryRequest, TranslateQueryResponse
from promql_cache.entities import CacheEntryEntity, CacheMatchEntity, TranslationResult, UserContext
from promql_cache.errors import QueryCacheError
from promql_cache.handlers import TranslationHandler
from promql_cache.protocols import (
    CacheEntryStore,
    EmbeddingProvider,
    HistoryStore,
    QueryExecutor,
    QueryGenerator,
    ServiceRegistry,
    VectorIndex,
)
from promql_cache.repositories import (
    InMemoryCacheEntryStore,
    InMemoryServiceRegistry,
    LinearScanIndex,
    RedisCacheEntryStore,
    RedisVectorIndex,
)
from promql_cache.services import FeedbackRecorder, TranslationService

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Protocols (interfaces)
    "CacheEntryStore",
    "EmbeddingProvider",
    "HistoryStore",
    "QueryExecutor",
    "QueryGenerator",
    "ServiceRegistry",
    "VectorIndex",
    # Services (business logic)
    "TranslationService",
    "FeedbackRecorder",
    # Handlers (HTTP)
    "TranslationHandler",
    # Repositories (data access)
    "InMemoryCacheEntryStore",
    "InMemoryServiceRegistry",
    "LinearScanIndex",
    "RedisCacheEntryStore",
    "RedisVectorIndex",
    # Entities (domain models)
    "CacheEntryEntity",
    "CacheMatchEntity",
    "TranslationResult",
    "UserContext",
    "QueryCacheError",
    # DTOs (API contracts)
    "TranslateQueryRequest",
    "TranslateQueryResponse",
]
