"""Redis implementation of VectorIndex.

This index uses Redis Stack with vector search capabilities (HNSW index).
Recall is approximate; the translation service re-checks every match
against its confidence threshold.
"""

import logging
import struct

import redis
from redisvl.index import SearchIndex
from redisvl.query import VectorQuery

from promql_cache.config import get_redis_client, settings
from promql_cache.entities import CacheMatchEntity
from promql_cache.errors import DimensionMismatch, DuplicateKey

logger = logging.getLogger(__name__)


class RedisVectorIndex:
    """Redis implementation using an HNSW vector index.

    This class satisfies the VectorIndex protocol through structural
    typing - no explicit inheritance needed.

    Uses Redis Stack's vector search with:
    - HNSW (Hierarchical Navigable Small World) algorithm
    - COSINE distance metric (similarity = 1 - distance)
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        dimension: int | None = None,
        index_name: str | None = None,
    ) -> None:
        """Initialize the Redis vector index.

        Args:
            redis_client: Redis client instance. If None, creates default.
            dimension: Vector dimension. Defaults to settings.
            index_name: Name of the Redis search index. Defaults to settings.
        """
        self._client = redis_client or get_redis_client()
        self._dimension = dimension or settings.embedding_dimension
        self._index_name = f"{index_name or settings.cache_index_name}_vectors"
        self._index: SearchIndex | None = None

        self._ensure_index()

    @classmethod
    def create(
        cls,
        dimension: int | None = None,
        index_name: str | None = None,
    ) -> "RedisVectorIndex":
        """Factory method to create RedisVectorIndex with defaults.

        Args:
            dimension: Vector dimension. If None, uses settings.
            index_name: Redis index name prefix. If None, uses settings.

        Returns:
            Configured RedisVectorIndex
        """
        return cls(dimension=dimension, index_name=index_name)

    def _ensure_index(self) -> None:
        """Ensure the Redis vector index exists."""
        if self._index is not None:
            return

        index_schema = {
            "index": {
                "name": self._index_name,
                "prefix": f"{self._index_name}:",
                "storage_type": "hash",
            },
            "fields": [
                {"name": "entry_id", "type": "tag"},
                {
                    "name": "embedding",
                    "type": "vector",
                    "attrs": {
                        "dims": self._dimension,
                        "algorithm": "HNSW",
                        "metric": "COSINE",
                        "datatype": "FLOAT32",
                    },
                },
            ],
        }

        self._index = SearchIndex.from_dict(index_schema, redis_client=self._client)

        # Create the index if it doesn't exist
        try:
            self._index.create(overwrite=False)
            logger.info("Created vector index %s (dims=%d)", self._index_name, self._dimension)
        except Exception as e:
            if "already exists" in str(e) or "Index already exists" in str(e):
                logger.info("Using existing vector index %s", self._index_name)
            else:
                raise

    @property
    def dimension(self) -> int:
        return self._dimension

    def _check_dimension(self, vector: list[float]) -> None:
        if len(vector) != self._dimension:
            raise DimensionMismatch(
                "Embedding has the wrong dimension",
                details=f"expected {self._dimension}, got {len(vector)}",
            )

    def _key(self, entry_id: str) -> str:
        return f"{self._index_name}:{entry_id}"

    def insert(self, entry_id: str, vector: list[float]) -> None:
        """Index the embedding of a cache entry.

        The ``entry_id`` field is claimed with HSETNX first, so two writers
        for the same entry cannot both succeed.
        """
        self._check_dimension(vector)

        key = self._key(entry_id)
        if not self._client.hsetnx(key, "entry_id", entry_id):
            raise DuplicateKey(f"Entry {entry_id} is already indexed", existing_id=entry_id)

        # Convert vector to float32 bytes for Redis
        vector_bytes = struct.pack(f"{len(vector)}f", *vector)
        self._client.hset(key, "embedding", vector_bytes)

    def nearest_neighbors(
        self,
        vector: list[float],
        k: int,
        min_similarity: float,
    ) -> list[CacheMatchEntity]:
        self._check_dimension(vector)
        if self._index is None or k <= 0:
            return []

        query = VectorQuery(
            vector=vector,
            vector_field_name="embedding",
            return_fields=["entry_id"],
            num_results=k,
        )
        results = self._index.query(query)

        matches = []
        for result in results:
            distance = float(result.get("vector_distance", 2.0))
            similarity = 1.0 - distance
            if similarity >= min_similarity:
                matches.append(CacheMatchEntity(entry_id=str(result["entry_id"]), similarity=similarity))

        # Closest first
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:k]

    def count(self) -> int:
        count = 0
        for _ in self._client.scan_iter(match=f"{self._index_name}:*"):
            count += 1
        return count

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
