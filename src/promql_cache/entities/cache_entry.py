"""Cache entry domain entity."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntryEntity:
    """Domain entity for a cached query template.

    This is an internal representation used by services and repositories.
    For API contracts, use the DTO classes from the dto package.

    Attributes:
        id: Unique identifier of the entry
        query_text: The canonical natural-language query (unique per store)
        embedding: The embedding vector of the canonical query
        promql_template: PromQL with ``{{name}}`` placeholders
        success_count: Number of successful executions recorded
        failure_count: Number of failed executions recorded
        avg_execution_time_ms: Rolling mean of recorded execution times
        created_at: When this entry was created
        updated_at: When the statistics were last updated
    """

    id: str
    query_text: str
    embedding: list[float]
    promql_template: str
    success_count: int = 0
    failure_count: int = 0
    avg_execution_time_ms: float = 0.0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def new(cls, query_text: str, embedding: list[float], promql_template: str) -> "CacheEntryEntity":
        """Create a fresh entry with zeroed statistics and a random id."""
        now = utcnow()
        return cls(
            id=str(uuid.uuid4()),
            query_text=query_text,
            embedding=list(embedding),
            promql_template=promql_template,
            created_at=now,
            updated_at=now,
        )

    @property
    def total_executions(self) -> int:
        return self.success_count + self.failure_count

    def with_outcome(self, success: bool, execution_time_ms: float) -> "CacheEntryEntity":
        """Return a copy with one more recorded execution folded into the statistics.

        The average is a running mean over every recorded execution, so the
        final statistics do not depend on the order outcomes arrive in.
        """
        success_count = self.success_count + (1 if success else 0)
        failure_count = self.failure_count + (0 if success else 1)
        total = success_count + failure_count
        avg = self.avg_execution_time_ms + (execution_time_ms - self.avg_execution_time_ms) / total
        return replace(
            self,
            success_count=success_count,
            failure_count=failure_count,
            avg_execution_time_ms=avg,
            updated_at=utcnow(),
        )
