"""
Tests for the feedback recorder: best-effort history, skipped statistics
updates and deferred writes.
"""

import asyncio
import logging

from conftest import unit

from promql_cache.entities import CacheEntryEntity, HistoryRecordEntity
from promql_cache.errors import StatisticsUpdateConflict
from promql_cache.repositories import InMemoryCacheEntryStore, InMemoryHistoryStore
from promql_cache.services import FeedbackRecorder, OutcomeUpdate


class BrokenHistoryStore(InMemoryHistoryStore):
    def append(self, record):
        raise ConnectionError("stream unavailable")


class ConflictingEntryStore(InMemoryCacheEntryStore):
    def record_outcome(self, entry_id, success, execution_time_ms):
        raise StatisticsUpdateConflict("Too many concurrent updates", details=entry_id)


def record(query: str = "cpu usage") -> HistoryRecordEntity:
    return HistoryRecordEntity(natural_query=query, generated_promql="sum(up)", success=True, confidence_score=0.7)


def stored_entry(store: InMemoryCacheEntryStore) -> CacheEntryEntity:
    entry = CacheEntryEntity.new("cpu usage", unit(0), "sum(up)")
    store.put(entry)
    return entry


def test_flush_writes_history_and_statistics():
    history, entries = InMemoryHistoryStore(), InMemoryCacheEntryStore()
    entry = stored_entry(entries)
    recorder = FeedbackRecorder(history, entries)

    asyncio.run(recorder.flush(record(), OutcomeUpdate(entry.id, True, 8.0)))

    assert history.count() == 1
    assert entries.get_by_id(entry.id).success_count == 1


def test_history_failure_is_logged_not_raised(caplog):
    recorder = FeedbackRecorder(BrokenHistoryStore(), InMemoryCacheEntryStore())

    with caplog.at_level(logging.WARNING, logger="promql_cache.services.feedback_recorder"):
        ok = asyncio.run(recorder.record_history(record("broken")))

    assert ok is False
    assert "Failed to record history" in caplog.text


def test_statistics_conflict_is_skipped(caplog):
    entries = ConflictingEntryStore()
    entry = stored_entry(entries)
    recorder = FeedbackRecorder(InMemoryHistoryStore(), entries)

    with caplog.at_level(logging.WARNING, logger="promql_cache.services.feedback_recorder"):
        ok = asyncio.run(recorder.record_outcome(OutcomeUpdate(entry.id, True, 1.0)))

    assert ok is False
    assert "Skipping statistics update" in caplog.text
    assert entries.get_by_id(entry.id).total_executions == 0


def test_outcome_for_missing_entry_is_skipped():
    recorder = FeedbackRecorder(InMemoryHistoryStore(), InMemoryCacheEntryStore())

    assert asyncio.run(recorder.record_outcome(OutcomeUpdate("gone", False, 1.0))) is False


def test_submit_runs_in_background_until_drained():
    history, entries = InMemoryHistoryStore(), InMemoryCacheEntryStore()
    entry = stored_entry(entries)
    recorder = FeedbackRecorder(history, entries)

    async def run():
        for i in range(5):
            recorder.submit(record(f"q{i}"), OutcomeUpdate(entry.id, i % 2 == 0, float(i)))
        assert recorder.pending == 5
        await recorder.drain()

    asyncio.run(run())

    assert recorder.pending == 0
    assert history.count() == 5
    final = entries.get_by_id(entry.id)
    assert (final.success_count, final.failure_count) == (3, 2)
