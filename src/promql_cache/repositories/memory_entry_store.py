"""In-memory implementation of CacheEntryStore.

Statistic updates take a lock per entry (the in-memory analogue of a
row-level lock), so updates to different entries never contend.
"""

import threading

from promql_cache.entities import CacheEntryEntity
from promql_cache.errors import DuplicateKey, EntryNotFound


class InMemoryCacheEntryStore:
    """Dictionary-backed store.

    This class satisfies the CacheEntryStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntryEntity] = {}
        self._ids_by_query: dict[str, str] = {}
        self._row_locks: dict[str, threading.Lock] = {}
        # Guards the unique query_text map only, like a unique index.
        self._unique_lock = threading.Lock()

    def get(self, query_text: str) -> CacheEntryEntity:
        entry_id = self._ids_by_query.get(query_text)
        if entry_id is None:
            raise EntryNotFound(f"No cache entry for query {query_text!r}")
        return self._entries[entry_id]

    def get_by_id(self, entry_id: str) -> CacheEntryEntity:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise EntryNotFound(f"No cache entry with id {entry_id}") from None

    def put(self, entry: CacheEntryEntity) -> str:
        with self._unique_lock:
            existing_id = self._ids_by_query.get(entry.query_text)
            if existing_id is not None:
                raise DuplicateKey(
                    f"A cache entry for {entry.query_text!r} already exists",
                    existing_id=existing_id,
                )
            self._row_locks[entry.id] = threading.Lock()
            self._entries[entry.id] = entry
            self._ids_by_query[entry.query_text] = entry.id
        return entry.id

    def record_outcome(self, entry_id: str, success: bool, execution_time_ms: float) -> CacheEntryEntity:
        lock = self._row_locks.get(entry_id)
        if lock is None:
            raise EntryNotFound(f"No cache entry with id {entry_id}")
        with lock:
            updated = self._entries[entry_id].with_outcome(success, execution_time_ms)
            self._entries[entry_id] = updated
        return updated

    def count(self) -> int:
        return len(self._entries)

    def all(self) -> list[CacheEntryEntity]:
        return list(self._entries.values())

    def health_check(self) -> bool:
        return True

    def get_stats(self) -> dict:
        entries = self.all()
        return {
            "backend": "memory",
            "total_entries": len(entries),
            "total_successes": sum(e.success_count for e in entries),
            "total_failures": sum(e.failure_count for e in entries),
        }
