"""HistoryStore implementations: in-memory list and Redis stream."""

import json
import threading
from dataclasses import asdict
from datetime import datetime

import redis

from promql_cache.config import get_redis_client, settings
from promql_cache.entities import HistoryRecordEntity


class InMemoryHistoryStore:
    """Append-only list of history records."""

    def __init__(self) -> None:
        self._records: list[HistoryRecordEntity] = []
        self._lock = threading.Lock()

    def append(self, record: HistoryRecordEntity) -> None:
        with self._lock:
            self._records.append(record)

    def recent(self, limit: int = 50, user_id: str | None = None) -> list[HistoryRecordEntity]:
        with self._lock:
            records = list(reversed(self._records))
        if user_id is not None:
            records = [r for r in records if r.user_id == user_id]
        return records[:limit]

    def count(self) -> int:
        return len(self._records)


class RedisHistoryStore:
    """History kept in a capped Redis stream (XADD with approximate MAXLEN)."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        stream_name: str | None = None,
        maxlen: int | None = None,
    ) -> None:
        self._client = redis_client or get_redis_client()
        self._stream = stream_name or f"{settings.cache_index_name}:history"
        self._maxlen = maxlen or settings.history_stream_maxlen

    @classmethod
    def create(cls, stream_name: str | None = None) -> "RedisHistoryStore":
        return cls(stream_name=stream_name)

    def append(self, record: HistoryRecordEntity) -> None:
        payload = asdict(record)
        payload["created_at"] = record.created_at.isoformat()
        self._client.xadd(
            self._stream,
            {"record": json.dumps(payload)},
            maxlen=self._maxlen,
            approximate=True,
        )

    def recent(self, limit: int = 50, user_id: str | None = None) -> list[HistoryRecordEntity]:
        # Over-fetch when filtering by user; the stream is not indexed by user.
        fetch = limit if user_id is None else limit * 10
        records = []
        for _, fields in self._client.xrevrange(self._stream, count=fetch):
            raw = fields.get(b"record") or fields.get("record")
            data = json.loads(raw)
            data["created_at"] = datetime.fromisoformat(data["created_at"])
            record = HistoryRecordEntity(**data)
            if user_id is None or record.user_id == user_id:
                records.append(record)
        return records[:limit]

    def count(self) -> int:
        return int(self._client.xlen(self._stream))
