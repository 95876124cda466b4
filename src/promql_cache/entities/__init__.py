"""Domain entities for internal representation.

These are pure dataclasses (frozen) used internally by services
and repositories. They are NOT used for API contracts - use DTOs
from the dto package for that.
"""

from .cache_entry import CacheEntryEntity
from .cache_match import CacheMatchEntity
from .history_record import HistoryRecordEntity
from .service import MetricEntity, MetricType, ServiceEntity
from .translation import (
    ExecutionResult,
    GeneratedQuery,
    GenerationContext,
    QueryExample,
    QueryIntent,
    TranslationResult,
    UserContext,
)

__all__ = [
    "CacheEntryEntity",
    "CacheMatchEntity",
    "HistoryRecordEntity",
    "ServiceEntity",
    "MetricEntity",
    "MetricType",
    "UserContext",
    "QueryIntent",
    "QueryExample",
    "GenerationContext",
    "GeneratedQuery",
    "ExecutionResult",
    "TranslationResult",
]
