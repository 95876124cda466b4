"""Response DTOs for API endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class TranslateQueryResponse(BaseModel):
    """Response DTO for a translation.

    ``processing_time`` is reported in milliseconds.
    """

    promql: str = Field(..., description="PromQL ready to run")
    explanation: str = Field(..., description="How the PromQL was obtained, plus any validation error")
    confidence: float = Field(..., description="Confidence in the PromQL", ge=0.0, le=1.0)
    suggestions: list[str] = Field(
        default_factory=list,
        description="Similar cached questions that were not trusted enough to reuse",
    )
    estimated_cost: int = Field(..., description="Relative cost heuristic of running the query", ge=1)
    cache_hit: bool = Field(..., description="Whether the PromQL came from the cache")
    processing_time: float = Field(..., description="Time taken to answer in milliseconds")
    cache_entry_id: str | None = Field(None, description="Cache entry that produced or stores this PromQL")
    intent_type: str | None = Field(None, description="Classified intent of the question")
    service_name: str | None = Field(None, description="Service detected in the question")
    validated: bool = Field(False, description="Whether the PromQL was run against Prometheus")


class ServiceResponse(BaseModel):
    id: str
    name: str
    namespace: str
    description: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    metric_names: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class MetricResponse(BaseModel):
    id: str
    name: str
    type: str = Field(..., description="counter, gauge, histogram or summary")
    service_id: str
    description: str = ""
    labels: dict[str, str] = Field(default_factory=dict)


class HistoryItem(BaseModel):
    """Single query history record."""

    id: str
    natural_query: str
    generated_promql: str
    success: bool
    confidence_score: float
    cache_hit: bool
    user_id: str | None = None
    intent_type: str | None = None
    service_name: str | None = None
    execution_time_ms: float | None = None
    error_message: str | None = None
    cache_entry_id: str | None = None
    created_at: datetime


class HistoryResponse(BaseModel):
    items: list[HistoryItem] = Field(default_factory=list, description="Most recent first")
    total: int = Field(..., description="Total number of records in the history log", ge=0)


class StatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    cache: dict = Field(..., description="Entry store and index statistics")
    performance: dict = Field(..., description="In-process request counters")
    pending_feedback: int = Field(0, description="Deferred history/statistic writes still in flight", ge=0)


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the cache backend is reachable")
    embedding_healthy: bool | None = Field(
        None,
        description="Whether the embedding service is reachable",
    )
