"""
Tests for the Redis-backed entry store, vector index and history stream.

Tests using the live client skip when no Redis server answers PING at
REDIS_URL, and the vector index tests additionally need Redis Stack
(RediSearch). The optimistic-retry tests run against a stub client.
"""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest
import redis
from conftest import at_similarity, unit

from promql_cache.config import get_redis_client
from promql_cache.entities import CacheEntryEntity, HistoryRecordEntity
from promql_cache.errors import DuplicateKey, EntryNotFound, StatisticsUpdateConflict
from promql_cache.repositories import RedisCacheEntryStore, RedisHistoryStore, RedisVectorIndex


@pytest.fixture(scope="module")
def redis_client():
    client = get_redis_client()
    try:
        client.ping()
    except redis.RedisError:
        pytest.skip("Redis is not running")
    return client


@pytest.fixture
def prefix(redis_client):
    name = f"promql_cache_test_{uuid.uuid4().hex[:8]}"
    yield name
    for key in redis_client.scan_iter(match=f"{name}*"):
        redis_client.delete(key)


@pytest.fixture
def store(redis_client, prefix):
    return RedisCacheEntryStore(
        redis_client=redis_client,
        prefix=prefix,
        max_attempts=50,
        backoff_min=0.001,
        backoff_max=0.01,
    )


@pytest.fixture
def index(redis_client, prefix):
    try:
        vector_index = RedisVectorIndex(redis_client=redis_client, dimension=16, index_name=prefix)
    except redis.ResponseError as e:
        pytest.skip(f"Redis search module unavailable: {e}")
    yield vector_index
    try:
        redis_client.execute_command("FT.DROPINDEX", f"{prefix}_vectors", "DD")
    except redis.ResponseError:
        pass


def test_put_get_roundtrip_preserves_fields(store):
    entry = CacheEntryEntity.new("cpu usage", unit(0), 'sum(rate(x{ns="{{namespace}}"}[{{time_range}}]))')

    store.put(entry)

    loaded = store.get("cpu usage")
    assert loaded.id == entry.id
    assert loaded.promql_template == entry.promql_template
    assert loaded.embedding == pytest.approx(entry.embedding)
    assert loaded.created_at == entry.created_at
    assert store.get_by_id(entry.id).query_text == "cpu usage"
    assert store.count() == 1
    assert store.health_check() is True


def test_duplicate_put_keeps_the_first_entry(store):
    first = CacheEntryEntity.new("cpu usage", unit(0), "sum(a)")
    store.put(first)

    with pytest.raises(DuplicateKey) as exc_info:
        store.put(CacheEntryEntity.new("cpu usage", unit(0), "sum(b)"))

    assert exc_info.value.existing_id == first.id
    assert store.count() == 1
    assert store.get("cpu usage").promql_template == "sum(a)"


def test_concurrent_puts_create_one_entry(store):
    barrier = threading.Barrier(6)

    def attempt(i: int) -> str:
        barrier.wait()
        try:
            return store.put(CacheEntryEntity.new("memory usage", unit(0), f"sum(x{i})"))
        except DuplicateKey as e:
            return e.existing_id

    with ThreadPoolExecutor(max_workers=6) as pool:
        ids = list(pool.map(attempt, range(6)))

    assert len(set(ids)) == 1
    assert store.count() == 1


def test_concurrent_outcomes_are_all_applied(store):
    entry = CacheEntryEntity.new("error rate", unit(0), "sum(errors)")
    store.put(entry)

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(lambda i: store.record_outcome(entry.id, True, 10.0), range(20)))

    final = store.get_by_id(entry.id)
    assert final.success_count == 20
    assert final.avg_execution_time_ms == pytest.approx(10.0)


def test_record_outcome_for_missing_entry(store):
    with pytest.raises(EntryNotFound):
        store.record_outcome("missing", True, 1.0)


def test_vector_index_search(index):
    index.insert("exact", unit(0))
    index.insert("close", at_similarity(0.9))
    index.insert("orthogonal", unit(3))

    matches = index.nearest_neighbors(unit(0), k=3, min_similarity=0.5)

    assert [m.entry_id for m in matches] == ["exact", "close"]
    assert matches[1].similarity == pytest.approx(0.9, abs=1e-3)
    assert index.count() == 3
    with pytest.raises(DuplicateKey):
        index.insert("exact", unit(0))


def test_history_stream(redis_client, prefix):
    history = RedisHistoryStore(redis_client=redis_client, stream_name=f"{prefix}:history", maxlen=100)
    history.append(HistoryRecordEntity("cpu", "sum(cpu)", True, 0.7, user_id="alice"))
    history.append(HistoryRecordEntity("mem", "sum(mem)", False, 0.2, user_id="bob", error_message="boom"))

    records = history.recent()

    assert [r.natural_query for r in records] == ["mem", "cpu"]
    assert records[0].error_message == "boom"
    assert [r.user_id for r in history.recent(user_id="alice")] == ["alice"]
    assert history.count() == 2


class ConflictingPipeline:
    """Pipeline whose EXEC loses the WATCH race a set number of times."""

    def __init__(self, client: "ConflictingClient") -> None:
        self._client = client

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def watch(self, key: str) -> None:
        self._client.attempts += 1

    def hgetall(self, key: str) -> dict:
        return self._client.raw

    def multi(self) -> None:
        pass

    def hset(self, key: str, mapping: dict) -> None:
        self._client.written = mapping

    def execute(self) -> list:
        if self._client.conflicts_left > 0:
            self._client.conflicts_left -= 1
            raise redis.WatchError("Watched variable changed.")
        return [1]


class ConflictingClient:
    def __init__(self, entry: CacheEntryEntity, conflicts: int) -> None:
        self.raw = RedisCacheEntryStore._serialize(entry)
        self.conflicts_left = conflicts
        self.attempts = 0
        self.written: dict | None = None

    def pipeline(self) -> ConflictingPipeline:
        return ConflictingPipeline(self)


def stub_store(client: ConflictingClient) -> RedisCacheEntryStore:
    return RedisCacheEntryStore(redis_client=client, prefix="stub", max_attempts=3, backoff_min=0.0, backoff_max=0.0)


def test_outcome_retries_after_watch_conflicts():
    entry = CacheEntryEntity.new("cpu usage", unit(0), "sum(cpu)")
    client = ConflictingClient(entry, conflicts=2)

    updated = stub_store(client).record_outcome(entry.id, True, 8.0)

    assert client.attempts == 3
    assert updated.success_count == 1
    assert client.written["success_count"] == "1"


def test_outcome_conflict_after_max_attempts():
    entry = CacheEntryEntity.new("cpu usage", unit(0), "sum(cpu)")
    client = ConflictingClient(entry, conflicts=10)

    with pytest.raises(StatisticsUpdateConflict) as exc_info:
        stub_store(client).record_outcome(entry.id, False, 8.0)

    assert client.attempts == 3
    assert isinstance(exc_info.value.__cause__, redis.WatchError)
