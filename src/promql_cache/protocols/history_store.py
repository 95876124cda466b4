"""Query history storage protocol."""

from typing import Protocol, runtime_checkable

from promql_cache.entities import HistoryRecordEntity


@runtime_checkable
class HistoryStore(Protocol):
    """Append-only log of translation attempts."""

    def append(self, record: HistoryRecordEntity) -> None:
        """Append a record. Records are never updated or removed by the core."""
        ...

    def recent(self, limit: int = 50, user_id: str | None = None) -> list[HistoryRecordEntity]:
        """Return the newest records first, optionally for one user."""
        ...

    def count(self) -> int:
        ...
