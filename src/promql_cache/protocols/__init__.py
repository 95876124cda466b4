"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis → PostgreSQL, linear scan → HNSW, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

Usage:
    ```python
    from promql_cache.protocols import CacheEntryStore, VectorIndex

    store: CacheEntryStore = RedisCacheEntryStore.create()   # works
    store: CacheEntryStore = InMemoryCacheEntryStore()       # also works
    ```
"""

from .embedding_provider import EmbeddingProvider
from .entry_store import CacheEntryStore
from .history_store import HistoryStore
from .registry import ServiceRegistry
from .upstreams import QueryExecutor, QueryGenerator
from .vector_index import VectorIndex

__all__ = [
    "CacheEntryStore",
    "EmbeddingProvider",
    "HistoryStore",
    "QueryExecutor",
    "QueryGenerator",
    "ServiceRegistry",
    "VectorIndex",
]
