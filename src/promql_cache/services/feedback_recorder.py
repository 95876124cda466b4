"""Feedback recorder: history log plus deferred cache statistic updates.

Nothing here is allowed to fail a user-visible response. History is
analytics and statistics are advisory, so every write is best-effort and
failures are logged.
"""

import asyncio
import logging
from dataclasses import dataclass

from promql_cache.entities import HistoryRecordEntity
from promql_cache.errors import EntryNotFound, StatisticsUpdateConflict
from promql_cache.protocols import CacheEntryStore, HistoryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutcomeUpdate:
    """An execution outcome to fold into one cache entry's statistics."""

    entry_id: str
    success: bool
    execution_time_ms: float


class FeedbackRecorder:
    """Writes history records and statistic updates off the response path.

    Example:
        ```python
        recorder = FeedbackRecorder(history_store, entry_store)
        recorder.submit(record, OutcomeUpdate(entry.id, True, 12.5))
        ...
        await recorder.drain()  # on shutdown
        ```
    """

    def __init__(
        self,
        history_store: HistoryStore,
        entry_store: CacheEntryStore,
        deferred: bool = True,
    ) -> None:
        """Initialize the recorder.

        Args:
            history_store: Append-only history log.
            entry_store: Store receiving statistic updates.
            deferred: Run writes on background tasks (default). When False,
                ``submit`` callers must await ``flush`` themselves.
        """
        self._history = history_store
        self._entries = entry_store
        self._deferred = deferred
        self._pending: set[asyncio.Task] = set()

    async def record_history(self, record: HistoryRecordEntity) -> bool:
        """Append a history record. Returns False (and logs) on failure."""
        try:
            await asyncio.to_thread(self._history.append, record)
            return True
        except Exception:
            logger.warning("Failed to record history for query %r", record.natural_query, exc_info=True)
            return False

    async def record_outcome(self, update: OutcomeUpdate) -> bool:
        """Forward an outcome to the entry store. Returns False if it was skipped."""
        try:
            await asyncio.to_thread(
                self._entries.record_outcome,
                update.entry_id,
                update.success,
                update.execution_time_ms,
            )
            return True
        except StatisticsUpdateConflict as e:
            logger.warning("Skipping statistics update for entry %s: %s", update.entry_id, e)
        except EntryNotFound:
            logger.warning("Skipping statistics update for missing entry %s", update.entry_id)
        except Exception:
            logger.warning("Statistics update for entry %s failed", update.entry_id, exc_info=True)
        return False

    async def flush(self, record: HistoryRecordEntity, outcome: OutcomeUpdate | None = None) -> None:
        await self.record_history(record)
        if outcome is not None:
            await self.record_outcome(outcome)

    def submit(self, record: HistoryRecordEntity, outcome: OutcomeUpdate | None = None) -> asyncio.Task:
        """Schedule the writes for one request on a background task."""
        task = asyncio.get_running_loop().create_task(self.flush(record, outcome))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def deferred(self) -> bool:
        return self._deferred

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def history_store(self) -> HistoryStore:
        return self._history
