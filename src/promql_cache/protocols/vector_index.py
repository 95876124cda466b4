"""Vector index protocol.

Nearest-neighbour search is kept behind this small interface so a
deployment can swap an exact linear scan for a graph-based approximate
index (HNSW) without touching the translation service.

Approximate recall is acceptable: every match is re-checked against the
confidence threshold downstream.
"""

from typing import Protocol, runtime_checkable

from promql_cache.entities import CacheMatchEntity


@runtime_checkable
class VectorIndex(Protocol):
    """Protocol for similarity-searchable vector indexes."""

    @property
    def dimension(self) -> int:
        """Return the fixed vector dimension of the index."""
        ...

    def insert(self, entry_id: str, vector: list[float]) -> None:
        """Index the embedding of a cache entry.

        Args:
            entry_id: Id of the cache entry the vector belongs to
            vector: The embedding vector

        Raises:
            DuplicateKey: If the entry is already indexed
            DimensionMismatch: If the vector has the wrong length
        """
        ...

    def nearest_neighbors(
        self,
        vector: list[float],
        k: int,
        min_similarity: float,
    ) -> list[CacheMatchEntity]:
        """Find the closest indexed entries.

        Args:
            vector: The query embedding vector
            k: Maximum number of results to return
            min_similarity: Minimum cosine similarity for a result

        Returns:
            Up to ``k`` matches, all at or above ``min_similarity``,
            sorted by similarity (closest first)
        """
        ...

    def count(self) -> int:
        """Return the number of indexed vectors."""
        ...
