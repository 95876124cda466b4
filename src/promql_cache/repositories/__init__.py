"""Repository layer for data access.

This layer abstracts external dependencies (Redis, embedding and generation
APIs, Prometheus) behind protocol-based interfaces. This enables:
- Easy swapping of implementations (Redis → PostgreSQL, Ollama → OpenAI, etc.)
- Unit testing with in-memory implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.

``LocalEmbeddingProvider`` lives in its own module and is imported lazily,
since sentence-transformers pulls in torch.
"""

from .history_stores import InMemoryHistoryStore, RedisHistoryStore
from .memory_entry_store import InMemoryCacheEntryStore
from .memory_index import LinearScanIndex
from .memory_registry import InMemoryServiceRegistry
from .ollama_embedding_provider import OllamaEmbeddingProvider
from .ollama_generator import OllamaQueryGenerator
from .prometheus_executor import PrometheusExecutor
from .redis_entry_store import RedisCacheEntryStore
from .redis_index import RedisVectorIndex

__all__ = [
    "InMemoryCacheEntryStore",
    "InMemoryHistoryStore",
    "InMemoryServiceRegistry",
    "LinearScanIndex",
    "OllamaEmbeddingProvider",
    "OllamaQueryGenerator",
    "PrometheusExecutor",
    "RedisCacheEntryStore",
    "RedisHistoryStore",
    "RedisVectorIndex",
]
