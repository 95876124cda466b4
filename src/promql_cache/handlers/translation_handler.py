"""HTTP handlers for translation and registry operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

import logging

from fastapi import HTTPException, status

from promql_cache.dto import (
    HealthCheckResponse,
    HistoryItem,
    HistoryResponse,
    MetricResponse,
    ServiceResponse,
    StatsResponse,
    TranslateQueryRequest,
    TranslateQueryResponse,
)
from promql_cache.entities import HistoryRecordEntity, MetricEntity, ServiceEntity, UserContext
from promql_cache.errors import (
    EntryNotFound,
    InvalidGenerationRequest,
    QueryCacheError,
    RateLimited,
    RequestTimeout,
    SafetyViolation,
    UpstreamUnavailable,
    ValidationError,
)
from promql_cache.services import TranslationService

logger = logging.getLogger(__name__)

# Most specific first; RateLimited is also an UpstreamUnavailable
_STATUS_BY_ERROR: list[tuple[type[QueryCacheError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (SafetyViolation, status.HTTP_400_BAD_REQUEST),
    (RateLimited, status.HTTP_429_TOO_MANY_REQUESTS),
    (UpstreamUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvalidGenerationRequest, status.HTTP_502_BAD_GATEWAY),
    (RequestTimeout, status.HTTP_504_GATEWAY_TIMEOUT),
    (EntryNotFound, status.HTTP_404_NOT_FOUND),
]


def to_http_exception(error: QueryCacheError) -> HTTPException:
    """Map a domain error to an HTTPException carrying its serialized form."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail={"error": error.to_dict()})


def _service_response(service: ServiceEntity) -> ServiceResponse:
    return ServiceResponse(
        id=service.id,
        name=service.name,
        namespace=service.namespace,
        description=service.description,
        labels=dict(service.labels),
        metric_names=sorted(service.metric_names),
        created_at=service.created_at,
        updated_at=service.updated_at,
    )


def _metric_response(metric: MetricEntity) -> MetricResponse:
    return MetricResponse(
        id=metric.id,
        name=metric.name,
        type=metric.type.value,
        service_id=metric.service_id,
        description=metric.description,
        labels=dict(metric.labels),
    )


def _history_item(record: HistoryRecordEntity) -> HistoryItem:
    return HistoryItem(
        id=record.id,
        natural_query=record.natural_query,
        generated_promql=record.generated_promql,
        success=record.success,
        confidence_score=record.confidence_score,
        cache_hit=record.cache_hit,
        user_id=record.user_id,
        intent_type=record.intent_type,
        service_name=record.service_name,
        execution_time_ms=record.execution_time_ms,
        error_message=record.error_message,
        cache_entry_id=record.cache_entry_id,
        created_at=record.created_at,
    )


class TranslationHandler:
    """HTTP handlers for translation, registry browsing and history.

    This handler delegates business logic to TranslationService
    and handles HTTP-specific concerns like:
    - Converting entities to DTOs
    - Mapping domain errors to status codes

    Example:
        ```python
        handler = TranslationHandler(translation_service=service)

        @app.post("/api/v1/query", response_model=TranslateQueryResponse)
        async def translate(request: TranslateQueryRequest):
            return await handler.translate(request)
        ```
    """

    def __init__(self, translation_service: TranslationService) -> None:
        """Initialize the translation handler.

        Args:
            translation_service: The translation service for business logic (required).
        """
        self._service = translation_service

    async def translate(self, request: TranslateQueryRequest) -> TranslateQueryResponse:
        """Handle POST /api/v1/query requests.

        Raises:
            HTTPException: With the mapped status code and ``{"error": {...}}`` detail
        """
        try:
            result = await self._service.translate_query(
                request.query,
                UserContext(user_id=request.user_id, time_range=request.time_range, labels=dict(request.context)),
            )
        except QueryCacheError as e:
            raise to_http_exception(e) from e

        return TranslateQueryResponse(
            promql=result.promql,
            explanation=result.explanation,
            confidence=result.confidence,
            suggestions=result.suggestions,
            estimated_cost=result.estimated_cost,
            cache_hit=result.cache_hit,
            processing_time=result.processing_time_ms,
            cache_entry_id=result.cache_entry_id,
            intent_type=result.intent_type,
            service_name=result.service_name,
            validated=result.validated,
        )

    def list_services(self) -> list[ServiceResponse]:
        return [_service_response(s) for s in self._service.registry.list_services()]

    def search_services(self, term: str) -> list[ServiceResponse]:
        if not term.strip():
            raise to_http_exception(ValidationError("Search term must not be empty"))
        return [_service_response(s) for s in self._service.registry.search_services(term.strip())]

    def get_service(self, name: str, namespace: str = "default") -> ServiceResponse:
        return _service_response(self._find_service(name, namespace))

    def get_service_metrics(self, name: str, namespace: str = "default") -> list[MetricResponse]:
        service = self._find_service(name, namespace)
        return [_metric_response(m) for m in self._service.registry.get_metrics(service.id)]

    def _find_service(self, name: str, namespace: str) -> ServiceEntity:
        service = self._service.registry.get_service(name, namespace)
        if service is None:
            raise to_http_exception(
                EntryNotFound(
                    "Service not found",
                    details=f"{namespace}/{name}",
                    suggestion="List known services with GET /api/v1/services.",
                )
            )
        return service

    def get_history(self, limit: int = 50, user_id: str | None = None) -> HistoryResponse:
        history = self._service.feedback.history_store
        try:
            records = history.recent(limit=limit, user_id=user_id)
            total = history.count()
        except Exception as e:
            logger.error("Failed to read query history: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to read history: {e}",
            ) from e
        return HistoryResponse(items=[_history_item(r) for r in records], total=total)

    def get_stats(self) -> StatsResponse:
        """Handle GET /api/v1/stats requests.

        Raises:
            HTTPException: If an error occurs while fetching stats
        """
        try:
            cache_stats = self._service.get_stats()
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to get stats: {e}",
            ) from e
        return StatsResponse(
            cache=cache_stats,
            performance=self._service.metrics.to_dict(),
            pending_feedback=self._service.feedback.pending,
        )

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        health = await self._service.is_healthy()
        return HealthCheckResponse(
            status="healthy" if health["cache_healthy"] else "unhealthy",
            cache_healthy=health["cache_healthy"],
            embedding_healthy=health["embedding_healthy"],
        )
