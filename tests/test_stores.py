"""
Tests for the in-memory vector index and cache entry store.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from conftest import at_similarity, unit
from hypothesis import given, settings
from hypothesis import strategies as st

from promql_cache.entities import CacheEntryEntity
from promql_cache.errors import DimensionMismatch, DuplicateKey, EntryNotFound
from promql_cache.protocols import CacheEntryStore, VectorIndex
from promql_cache.repositories import InMemoryCacheEntryStore, LinearScanIndex


def new_entry(text: str = "cpu usage", template: str = "sum(node_cpu_seconds_total)") -> CacheEntryEntity:
    return CacheEntryEntity.new(text, unit(0), template)


def test_implementations_satisfy_protocols():
    assert isinstance(LinearScanIndex(4), VectorIndex)
    assert isinstance(InMemoryCacheEntryStore(), CacheEntryStore)


def test_nearest_neighbors_ordered_and_filtered():
    index = LinearScanIndex(16)
    index.insert("exact", unit(0))
    index.insert("close", at_similarity(0.9))
    index.insert("far", at_similarity(0.2))
    index.insert("orthogonal", unit(5))

    matches = index.nearest_neighbors(unit(0), k=3, min_similarity=0.5)

    assert [m.entry_id for m in matches] == ["exact", "close"]
    assert matches[0].similarity == pytest.approx(1.0, abs=1e-6)
    assert matches[1].similarity == pytest.approx(0.9, abs=1e-6)
    assert matches[1].distance == pytest.approx(0.1, abs=1e-6)


def test_nearest_neighbors_respects_k():
    index = LinearScanIndex(16)
    for i in range(5):
        index.insert(f"e{i}", at_similarity(0.99 - i * 0.01))

    assert len(index.nearest_neighbors(unit(0), k=2, min_similarity=0.0)) == 2
    assert index.nearest_neighbors(unit(0), k=0, min_similarity=0.0) == []


def test_empty_index_returns_nothing():
    assert LinearScanIndex(16).nearest_neighbors(unit(0), k=3, min_similarity=0.0) == []


def test_index_rejects_duplicates_and_wrong_dimension():
    index = LinearScanIndex(16)
    index.insert("a", unit(0))

    with pytest.raises(DuplicateKey):
        index.insert("a", unit(1))
    with pytest.raises(DimensionMismatch):
        index.insert("b", [1.0, 0.0])
    with pytest.raises(DimensionMismatch):
        index.nearest_neighbors([1.0], k=1, min_similarity=0.0)
    assert index.count() == 1


def test_index_keeps_every_row_across_growth():
    index = LinearScanIndex(16)
    for i in range(199):
        index.insert(f"e{i}", unit(1 + i % 15))
    index.insert("target", unit(0))

    assert index.count() == 200
    assert [m.entry_id for m in index.nearest_neighbors(unit(0), k=1, min_similarity=0.5)] == ["target"]
    matches = index.nearest_neighbors(unit(1), k=200, min_similarity=0.99)
    assert {m.entry_id for m in matches} == {f"e{i}" for i in range(199) if i % 15 == 0}


def test_put_and_get():
    store = InMemoryCacheEntryStore()
    entry = new_entry()

    assert store.put(entry) == entry.id
    assert store.get("cpu usage") == entry
    assert store.get_by_id(entry.id) == entry
    assert store.count() == 1


def test_missing_entries_raise():
    store = InMemoryCacheEntryStore()

    with pytest.raises(EntryNotFound):
        store.get("nothing")
    with pytest.raises(EntryNotFound):
        store.get_by_id("nope")
    with pytest.raises(EntryNotFound):
        store.record_outcome("nope", True, 1.0)


def test_duplicate_query_text_reports_existing_id():
    store = InMemoryCacheEntryStore()
    first = new_entry()
    store.put(first)

    with pytest.raises(DuplicateKey) as exc_info:
        store.put(new_entry(template="avg(node_cpu_seconds_total)"))

    assert exc_info.value.existing_id == first.id
    assert store.count() == 1


def test_record_outcome_updates_counts_and_running_average():
    store = InMemoryCacheEntryStore()
    entry = new_entry()
    store.put(entry)

    store.record_outcome(entry.id, True, 10.0)
    store.record_outcome(entry.id, False, 30.0)
    updated = store.record_outcome(entry.id, True, 20.0)

    assert updated.success_count == 2
    assert updated.failure_count == 1
    assert updated.avg_execution_time_ms == pytest.approx(20.0)
    assert updated.updated_at >= entry.updated_at
    assert store.get_by_id(entry.id) == updated


@settings(max_examples=50, deadline=None)
@given(
    outcomes=st.lists(
        st.tuples(st.booleans(), st.integers(min_value=0, max_value=5000).map(float)),
        min_size=1,
        max_size=30,
    ),
    data=st.data(),
)
def test_statistics_do_not_depend_on_outcome_order(outcomes, data):
    shuffled = data.draw(st.permutations(outcomes))

    final = []
    for ordering in (outcomes, shuffled):
        store = InMemoryCacheEntryStore()
        entry = new_entry()
        store.put(entry)
        for success, ms in ordering:
            store.record_outcome(entry.id, success, ms)
        final.append(store.get_by_id(entry.id))

    assert final[0].success_count == final[1].success_count == sum(1 for s, _ in outcomes if s)
    assert final[0].failure_count == final[1].failure_count == sum(1 for s, _ in outcomes if not s)
    assert final[0].avg_execution_time_ms == pytest.approx(final[1].avg_execution_time_ms)
    assert final[0].avg_execution_time_ms == pytest.approx(sum(ms for _, ms in outcomes) / len(outcomes))


def test_concurrent_puts_create_one_entry():
    store = InMemoryCacheEntryStore()
    barrier = threading.Barrier(8)

    def attempt(i: int) -> str:
        barrier.wait()
        try:
            return store.put(new_entry(template=f"sum(x{i})"))
        except DuplicateKey as e:
            return e.existing_id

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(attempt, range(8)))

    assert store.count() == 1
    assert len(set(ids)) == 1


def test_concurrent_outcomes_are_not_lost():
    store = InMemoryCacheEntryStore()
    entry = new_entry()
    store.put(entry)

    def record(i: int) -> None:
        store.record_outcome(entry.id, i % 2 == 0, float(i))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(record, range(200)))

    final = store.get_by_id(entry.id)
    assert final.success_count == 100
    assert final.failure_count == 100
    assert final.avg_execution_time_ms == pytest.approx(sum(range(200)) / 200)
