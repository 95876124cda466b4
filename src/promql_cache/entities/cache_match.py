"""Cache match domain entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheMatchEntity:
    """Domain entity for a nearest-neighbour search result.

    Attributes:
        entry_id: Id of the matched cache entry
        similarity: Cosine similarity (1 = identical direction, -1 = opposite)
    """

    entry_id: str
    similarity: float

    @property
    def distance(self) -> float:
        """Cosine distance (0 = identical, 2 = opposite)."""
        return 1.0 - self.similarity
