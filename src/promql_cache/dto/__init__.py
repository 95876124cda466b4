"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import TranslateQueryRequest
from .responses import (
    HealthCheckResponse,
    HistoryItem,
    HistoryResponse,
    MetricResponse,
    ServiceResponse,
    StatsResponse,
    TranslateQueryResponse,
)

__all__ = [
    "TranslateQueryRequest",
    "TranslateQueryResponse",
    "ServiceResponse",
    "MetricResponse",
    "HistoryItem",
    "HistoryResponse",
    "StatsResponse",
    "HealthCheckResponse",
]
