"""Cache entry storage protocol.

Defines the interface for any backend that durably stores cache entries
and updates their usage statistics atomically per entry.

Implementations can include:
- Redis (hashes + SET NX uniqueness key, WATCH/MULTI updates)
- In-memory (per-entry locks), for tests and small deployments
- PostgreSQL (unique constraint + row-level locking)
"""

from typing import Protocol, runtime_checkable

from promql_cache.entities import CacheEntryEntity


@runtime_checkable
class CacheEntryStore(Protocol):
    """Protocol for cache entry storage backends."""

    def get(self, query_text: str) -> CacheEntryEntity:
        """Fetch an entry by its canonical query text.

        Raises:
            EntryNotFound: If no entry exists for the text
        """
        ...

    def get_by_id(self, entry_id: str) -> CacheEntryEntity:
        """Fetch an entry by id.

        Raises:
            EntryNotFound: If no entry exists with the id
        """
        ...

    def put(self, entry: CacheEntryEntity) -> str:
        """Store a new entry.

        Args:
            entry: The entry to store

        Returns:
            The id of the stored entry

        Raises:
            DuplicateKey: If an entry with the same query text exists.
                ``existing_id`` carries the id of that entry.
        """
        ...

    def record_outcome(self, entry_id: str, success: bool, execution_time_ms: float) -> CacheEntryEntity:
        """Fold one execution outcome into the entry's statistics.

        Must be linearizable per entry: concurrent callers never lose
        updates.

        Returns:
            The updated entry

        Raises:
            EntryNotFound: If the entry does not exist
            StatisticsUpdateConflict: If optimistic retries are exhausted
        """
        ...

    def count(self) -> int:
        """Count stored entries."""
        ...

    def health_check(self) -> bool:
        """Check if the backend is accessible."""
        ...

    def get_stats(self) -> dict:
        """Get backend statistics (implementation-specific)."""
        ...
