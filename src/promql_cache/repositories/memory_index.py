"""Exact in-memory implementation of VectorIndex.

Brute-force cosine similarity over a numpy matrix. Exact recall, suited
to tests and small deployments; swap for RedisVectorIndex at scale.
"""

import threading

import numpy as np

from promql_cache.entities import CacheMatchEntity
from promql_cache.errors import DimensionMismatch, DuplicateKey

INITIAL_CAPACITY = 64


class LinearScanIndex:
    """Linear-scan implementation using normalized row vectors.

    This class satisfies the VectorIndex protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self, dimension: int) -> None:
        """Initialize an empty index.

        Args:
            dimension: Fixed length of every indexed vector.
        """
        self._dimension = dimension
        self._ids: list[str] = []
        self._positions: dict[str, int] = {}
        # Rows [0, len(self._ids)) are live; capacity doubles when full
        self._matrix = np.empty((INITIAL_CAPACITY, dimension), dtype=np.float32)
        self._lock = threading.Lock()

    @property
    def dimension(self) -> int:
        return self._dimension

    def _normalize(self, vector: list[float]) -> np.ndarray:
        if len(vector) != self._dimension:
            raise DimensionMismatch(
                "Embedding has the wrong dimension",
                details=f"expected {self._dimension}, got {len(vector)}",
            )
        arr = np.asarray(vector, dtype=np.float32)
        norm = np.linalg.norm(arr)
        return arr / norm if norm > 0 else arr

    def insert(self, entry_id: str, vector: list[float]) -> None:
        row = self._normalize(vector)
        with self._lock:
            if entry_id in self._positions:
                raise DuplicateKey(f"Entry {entry_id} is already indexed", existing_id=entry_id)
            size = len(self._ids)
            if size == len(self._matrix):
                grown = np.empty((2 * size, self._dimension), dtype=np.float32)
                grown[:size] = self._matrix
                self._matrix = grown
            self._matrix[size] = row
            self._positions[entry_id] = size
            self._ids.append(entry_id)

    def nearest_neighbors(
        self,
        vector: list[float],
        k: int,
        min_similarity: float,
    ) -> list[CacheMatchEntity]:
        query = self._normalize(vector)
        with self._lock:
            ids = list(self._ids)
            # Live rows are never rewritten, so a view stays valid after growth
            matrix = self._matrix[: len(ids)]

        if not ids or k <= 0:
            return []

        similarities = matrix @ query
        # Best k candidates, then order them closest first
        top = np.argsort(-similarities)[:k]
        return [
            CacheMatchEntity(entry_id=ids[i], similarity=float(similarities[i]))
            for i in top
            if float(similarities[i]) >= min_similarity
        ]

    def count(self) -> int:
        return len(self._ids)
