"""Query history domain entity."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from .cache_entry import utcnow


@dataclass(frozen=True)
class HistoryRecordEntity:
    """Append-only record of one translation attempt.

    Written for every request regardless of which path it took, including
    failures, so it can feed analytics and offline threshold tuning.
    """

    natural_query: str
    generated_promql: str
    success: bool
    confidence_score: float
    user_id: str | None = None
    intent_type: str | None = None
    service_name: str | None = None
    execution_time_ms: float | None = None
    error_message: str | None = None
    cache_hit: bool = False
    cache_entry_id: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
