"""Error types raised by the PromQL cache.

Every error carries a stable ``code`` plus optional ``details`` and a
``suggestion`` for the caller. Handlers map these to HTTP status codes;
services raise them and never return error values.
"""

from typing import Any


class QueryCacheError(Exception):
    """Base class for all PromQL cache errors."""

    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.suggestion = suggestion

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.details:
            text += f": {self.details}"
        return text

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for an API response body."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        return payload


class ValidationError(QueryCacheError):
    """Malformed query or context, rejected before any external call."""

    code = "INVALID_INPUT"


class UpstreamUnavailable(QueryCacheError):
    """An external capability (embedder, generator, executor) is unreachable.

    ``transient`` marks failures worth another attempt (connection errors,
    429 and 5xx answers). A missing model or a malformed answer is not.
    """

    code = "UPSTREAM_UNAVAILABLE"

    def __init__(
        self,
        message: str,
        details: str | None = None,
        suggestion: str | None = None,
        transient: bool = True,
    ) -> None:
        super().__init__(message, details=details, suggestion=suggestion)
        self.transient = transient


class EmbedderUnavailable(UpstreamUnavailable):
    code = "EMBEDDER_UNAVAILABLE"


class GeneratorUnavailable(UpstreamUnavailable):
    code = "GENERATOR_UNAVAILABLE"


class ExecutorUnavailable(UpstreamUnavailable):
    code = "EXECUTOR_UNAVAILABLE"


class RateLimited(UpstreamUnavailable):
    """The upstream answered but refused the request for rate reasons."""

    code = "RATE_LIMITED"


class InvalidGenerationRequest(QueryCacheError):
    """The generator rejected the request or returned no usable PromQL."""

    code = "GENERATION_REJECTED"


class SafetyViolation(QueryCacheError):
    code = "SAFETY_VALIDATION_FAILED"


class RequestTimeout(QueryCacheError):
    code = "REQUEST_TIMEOUT"


class DuplicateKey(QueryCacheError):
    """A unique key (canonical query text or index entry) already exists."""

    code = "DUPLICATE_CACHE_ENTRY"

    def __init__(self, message: str, existing_id: str | None = None) -> None:
        super().__init__(message)
        self.existing_id = existing_id


class EntryNotFound(QueryCacheError):
    code = "CACHE_ENTRY_NOT_FOUND"


class StatisticsUpdateConflict(QueryCacheError):
    """Optimistic statistic update kept losing races until retries ran out."""

    code = "STATISTICS_UPDATE_CONFLICT"


class DimensionMismatch(QueryCacheError):
    code = "EMBEDDING_DIMENSION_MISMATCH"
