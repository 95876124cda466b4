"""Redis implementation of CacheEntryStore.

Layout:
    {prefix}:entry:{id}          hash with the entry fields
    {prefix}:query:{sha256(q)}   string holding the id of the entry for q

Uniqueness of the canonical query text is enforced with ``SET NX`` on the
query key. Statistic updates use WATCH/MULTI optimistic concurrency on the
entry hash and retry with bounded exponential backoff.
"""

import hashlib
import logging
import struct
from datetime import datetime

import redis
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from promql_cache.config import get_redis_client, settings
from promql_cache.entities import CacheEntryEntity
from promql_cache.errors import DuplicateKey, EntryNotFound, StatisticsUpdateConflict

logger = logging.getLogger(__name__)


def _text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    return value.decode() if isinstance(value, bytes) else value


class RedisCacheEntryStore:
    """Redis implementation of the cache entry store.

    This class satisfies the CacheEntryStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        prefix: str | None = None,
        max_attempts: int | None = None,
        backoff_min: float | None = None,
        backoff_max: float | None = None,
    ) -> None:
        """Initialize the Redis entry store.

        Args:
            redis_client: Redis client instance. If None, creates default.
            prefix: Key prefix. Defaults to settings.cache_index_name.
            max_attempts: Attempts for an optimistic statistic update.
            backoff_min: Minimum wait between attempts in seconds.
            backoff_max: Maximum wait between attempts in seconds.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = prefix or settings.cache_index_name
        self._max_attempts = max_attempts or settings.stats_max_attempts
        self._backoff_min = backoff_min if backoff_min is not None else settings.stats_backoff_min
        self._backoff_max = backoff_max if backoff_max is not None else settings.stats_backoff_max

    @classmethod
    def create(cls, prefix: str | None = None) -> "RedisCacheEntryStore":
        """Factory method to create RedisCacheEntryStore with defaults."""
        return cls(prefix=prefix)

    def _entry_key(self, entry_id: str) -> str:
        return f"{self._prefix}:entry:{entry_id}"

    def _query_key(self, query_text: str) -> str:
        digest = hashlib.sha256(query_text.encode()).hexdigest()
        return f"{self._prefix}:query:{digest}"

    @staticmethod
    def _serialize(entry: CacheEntryEntity) -> dict[str, bytes | str]:
        return {
            "id": entry.id,
            "query_text": entry.query_text,
            "embedding": struct.pack(f"{len(entry.embedding)}f", *entry.embedding),
            "promql_template": entry.promql_template,
            "success_count": str(entry.success_count),
            "failure_count": str(entry.failure_count),
            "avg_execution_time_ms": repr(entry.avg_execution_time_ms),
            "created_at": entry.created_at.isoformat(),
            "updated_at": entry.updated_at.isoformat(),
        }

    @staticmethod
    def _deserialize(raw: dict) -> CacheEntryEntity:
        fields = {_text(k): v for k, v in raw.items()}
        vector_bytes = fields["embedding"]
        embedding = list(struct.unpack(f"{len(vector_bytes) // 4}f", vector_bytes))
        return CacheEntryEntity(
            id=_text(fields["id"]),
            query_text=_text(fields["query_text"]),
            embedding=embedding,
            promql_template=_text(fields["promql_template"]),
            success_count=int(_text(fields["success_count"])),
            failure_count=int(_text(fields["failure_count"])),
            avg_execution_time_ms=float(_text(fields["avg_execution_time_ms"])),
            created_at=datetime.fromisoformat(_text(fields["created_at"])),
            updated_at=datetime.fromisoformat(_text(fields["updated_at"])),
        )

    def get(self, query_text: str) -> CacheEntryEntity:
        entry_id = self._client.get(self._query_key(query_text))
        if entry_id is None:
            raise EntryNotFound(f"No cache entry for query {query_text!r}")
        return self.get_by_id(_text(entry_id))

    def get_by_id(self, entry_id: str) -> CacheEntryEntity:
        raw = self._client.hgetall(self._entry_key(entry_id))
        if not raw:
            raise EntryNotFound(f"No cache entry with id {entry_id}")
        return self._deserialize(raw)

    def put(self, entry: CacheEntryEntity) -> str:
        """Store a new entry, claiming its query text with SET NX.

        The hash is written before the claim so a losing writer that reads
        the winner's id always finds a complete entry behind it.
        """
        entry_key = self._entry_key(entry.id)
        self._client.hset(entry_key, mapping=self._serialize(entry))

        if not self._client.set(self._query_key(entry.query_text), entry.id, nx=True):
            self._client.delete(entry_key)
            existing_id = _text(self._client.get(self._query_key(entry.query_text))) or None
            raise DuplicateKey(
                f"A cache entry for {entry.query_text!r} already exists",
                existing_id=existing_id,
            )
        return entry.id

    def _apply_outcome(self, entry_key: str, success: bool, execution_time_ms: float) -> CacheEntryEntity:
        with self._client.pipeline() as pipe:
            pipe.watch(entry_key)
            raw = pipe.hgetall(entry_key)
            if not raw:
                raise EntryNotFound(f"No cache entry at {entry_key}")
            updated = self._deserialize(raw).with_outcome(success, execution_time_ms)
            pipe.multi()
            pipe.hset(
                entry_key,
                mapping={
                    "success_count": str(updated.success_count),
                    "failure_count": str(updated.failure_count),
                    "avg_execution_time_ms": repr(updated.avg_execution_time_ms),
                    "updated_at": updated.updated_at.isoformat(),
                },
            )
            pipe.execute()
        return updated

    def record_outcome(self, entry_id: str, success: bool, execution_time_ms: float) -> CacheEntryEntity:
        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff_min, min=self._backoff_min, max=self._backoff_max),
            retry=retry_if_exception_type(redis.WatchError),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        try:
            return retrying(self._apply_outcome, self._entry_key(entry_id), success, execution_time_ms)
        except redis.WatchError as e:
            raise StatisticsUpdateConflict(
                f"Statistics update for entry {entry_id} kept conflicting",
                details=f"gave up after {self._max_attempts} attempts",
            ) from e

    def count(self) -> int:
        count = 0
        for _ in self._client.scan_iter(match=f"{self._prefix}:entry:*"):
            count += 1
        return count

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def get_stats(self) -> dict:
        return {
            "backend": "redis",
            "prefix": self._prefix,
            "total_entries": self.count(),
        }

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
