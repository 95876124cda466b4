"""Entities exchanged along the translation path."""

from dataclasses import dataclass, field

from .service import MetricEntity, ServiceEntity


@dataclass(frozen=True)
class UserContext:
    """Per-request context supplied by the caller.

    Attributes:
        user_id: Optional id of the requesting user
        time_range: Optional range such as ``5m`` or ``24h``
        labels: Placeholder values (``service``, ``namespace``, ``job``, ...)
    """

    user_id: str | None = None
    time_range: str | None = None
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class QueryIntent:
    type: str = "metrics"
    action: str = "show"
    service: str | None = None
    metric: str | None = None
    time_range: str | None = None
    aggregation: str | None = None


@dataclass(frozen=True)
class QueryExample:
    """A previously cached query offered to the generator as a few-shot example."""

    query_text: str
    promql: str
    similarity: float


@dataclass(frozen=True)
class GenerationContext:
    """Everything the generator gets to see for one query."""

    query: str
    intent: QueryIntent
    service: ServiceEntity | None = None
    metrics: list[MetricEntity] = field(default_factory=list)
    known_services: list[str] = field(default_factory=list)
    time_range: str | None = None
    examples: list[QueryExample] = field(default_factory=list)


@dataclass(frozen=True)
class GeneratedQuery:
    promql: str
    confidence: float | None = None
    explanation: str = ""


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    execution_time_ms: float
    error: str | None = None


@dataclass(frozen=True)
class TranslationResult:
    """Outcome of a single translate_query call."""

    promql: str
    confidence: float
    cache_hit: bool
    explanation: str
    estimated_cost: int
    processing_time_ms: float
    suggestions: list[str] = field(default_factory=list)
    cache_entry_id: str | None = None
    intent_type: str | None = None
    service_name: str | None = None
    validated: bool = False
