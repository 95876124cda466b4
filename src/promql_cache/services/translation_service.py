"""Translation service: natural language in, PromQL out.

This service orchestrates a single query end to end by coordinating the
embedding provider, the vector index, the cache entry store, the
generator, the executor and the feedback recorder:

    canonicalize -> embed -> search -> decide -> resolve or generate
                 -> safety check -> validate -> record
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from promql_cache.config import VALIDATION_POLICIES, settings
from promql_cache.entities import (
    CacheEntryEntity,
    CacheMatchEntity,
    ExecutionResult,
    GeneratedQuery,
    GenerationContext,
    HistoryRecordEntity,
    QueryExample,
    QueryIntent,
    ServiceEntity,
    TranslationResult,
    UserContext,
)
from promql_cache.errors import (
    DimensionMismatch,
    DuplicateKey,
    EntryNotFound,
    QueryCacheError,
    RequestTimeout,
    UpstreamUnavailable,
    ValidationError,
)
from promql_cache.metrics import PerformanceMetrics
from promql_cache.protocols import (
    CacheEntryStore,
    EmbeddingProvider,
    QueryExecutor,
    QueryGenerator,
    ServiceRegistry,
    VectorIndex,
)
from promql_cache.scoring import confidence as derived_confidence
from promql_cache.services.feedback_recorder import FeedbackRecorder, OutcomeUpdate
from promql_cache.services.intent import IntentClassifier
from promql_cache.services.safety import SafetyChecker, estimate_cost
from promql_cache.templates import canonicalize, resolve, templatize

logger = logging.getLogger(__name__)


def _pick(value, default):
    return default if value is None else value


@dataclass(frozen=True)
class _Candidate:
    entry: CacheEntryEntity
    similarity: float
    confidence: float


@dataclass
class _Attempt:
    """Mutable progress of one request, used to write the history record."""

    natural_query: str
    user_context: UserContext
    canonical: str = ""
    intent: QueryIntent | None = None
    promql: str = ""
    confidence: float = 0.0
    cache_hit: bool = False
    entry_id: str | None = None
    rejected_ids: set[str] = field(default_factory=set)


class TranslationService:
    """Semantic cache front of the PromQL generator.

    This service depends on PROTOCOLS, not concrete implementations, so
    every collaborator can be swapped (Redis or in-memory storage, Ollama or
    any other generator, Prometheus or no executor at all).

    Example:
        ```python
        service = TranslationService.create(
            embedding_provider=OllamaEmbeddingProvider.create(),
            index=RedisVectorIndex.create(),
            entry_store=RedisCacheEntryStore.create(),
            generator=OllamaQueryGenerator.create(),
            feedback=FeedbackRecorder(RedisHistoryStore.create(), entry_store),
            registry=InMemoryServiceRegistry(),
        )
        result = await service.translate_query("error rate for checkout-service")
        ```
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        index: VectorIndex,
        entry_store: CacheEntryStore,
        generator: QueryGenerator,
        feedback: FeedbackRecorder,
        registry: ServiceRegistry,
        executor: QueryExecutor | None = None,
        similarity_threshold: float | None = None,
        confidence_threshold: float | None = None,
        neighbor_count: int | None = None,
        prior_successes: float | None = None,
        prior_failures: float | None = None,
        default_generation_confidence: float | None = None,
        validation_policy: str | None = None,
        validation_penalty: float | None = None,
        request_timeout: float | None = None,
        max_query_length: int | None = None,
        default_time_range: str | None = None,
        safety_checker: SafetyChecker | None = None,
        intent_classifier: IntentClassifier | None = None,
    ) -> None:
        """Initialize the translation service.

        Args:
            embedding_provider: Embedder for canonical query text (required).
            index: Nearest-neighbour index over entry embeddings (required).
            entry_store: Durable cache entry storage (required).
            generator: PromQL generator used on cache misses (required).
            feedback: Recorder for history and statistic updates (required).
            registry: Service/metric registry for placeholder resolution (required).
            executor: Optional validation oracle. None disables validation.
            similarity_threshold: Minimum cosine similarity of a neighbour (T_sim).
            confidence_threshold: Derived confidence a hit must exceed (T_conf).
            neighbor_count: Neighbours fetched per lookup (k).
            prior_successes: Laplace prior added to successes.
            prior_failures: Laplace prior added to failures.
            default_generation_confidence: Used when the generator gives none.
            validation_policy: "always", "on_miss" or "never".
            validation_penalty: Confidence multiplier after a failed validation.
            request_timeout: Per-request timeout in seconds.
            max_query_length: Longest accepted natural-language query.
            default_time_range: Fallback for the ``{{time_range}}`` placeholder.

        All numeric and policy arguments default to settings.
        """
        self._embeddings = embedding_provider
        self._index = index
        self._entries = entry_store
        self._generator = generator
        self._feedback = feedback
        self._registry = registry
        self._executor = executor
        self._similarity_threshold = _pick(similarity_threshold, settings.similarity_threshold)
        self._confidence_threshold = _pick(confidence_threshold, settings.confidence_threshold)
        self._k = _pick(neighbor_count, settings.neighbor_count)
        self._prior_successes = _pick(prior_successes, settings.prior_successes)
        self._prior_failures = _pick(prior_failures, settings.prior_failures)
        self._default_confidence = _pick(default_generation_confidence, settings.default_generation_confidence)
        self._validation_policy = _pick(validation_policy, settings.validation_policy)
        self._validation_penalty = _pick(validation_penalty, settings.validation_penalty)
        self._timeout = _pick(request_timeout, settings.request_timeout_seconds)
        self._max_query_length = _pick(max_query_length, settings.max_query_length)
        self._default_time_range = _pick(default_time_range, settings.default_time_range)
        self._safety = safety_checker or SafetyChecker()
        self._intents = intent_classifier or IntentClassifier()
        self._metrics = PerformanceMetrics()

        if self._validation_policy not in VALIDATION_POLICIES:
            raise ValueError(f"validation_policy must be one of {list(VALIDATION_POLICIES)}")

    @classmethod
    def create(
        cls,
        embedding_provider: EmbeddingProvider,
        index: VectorIndex,
        entry_store: CacheEntryStore,
        generator: QueryGenerator,
        feedback: FeedbackRecorder,
        registry: ServiceRegistry,
        executor: QueryExecutor | None = None,
        **overrides,
    ) -> "TranslationService":
        """Factory method to create TranslationService with settings defaults.

        Args:
            embedding_provider: Embedder (required).
            index: Vector index (required).
            entry_store: Cache entry store (required).
            generator: PromQL generator (required).
            feedback: Feedback recorder (required).
            registry: Service registry (required).
            executor: Optional validation oracle.
            **overrides: Any keyword accepted by ``__init__``.

        Returns:
            Configured TranslationService instance
        """
        return cls(
            embedding_provider=embedding_provider,
            index=index,
            entry_store=entry_store,
            generator=generator,
            feedback=feedback,
            registry=registry,
            executor=executor,
            **overrides,
        )

    async def translate_query(
        self,
        natural_query: str,
        user_context: UserContext | None = None,
    ) -> TranslationResult:
        """Translate a natural-language question into PromQL.

        Args:
            natural_query: The user's question
            user_context: Optional user id, time range and placeholder labels

        Returns:
            TranslationResult with the PromQL, confidence and cache decision

        Raises:
            ValidationError: Malformed query or context (nothing is recorded)
            UpstreamUnavailable: Embedder or generator unreachable
            InvalidGenerationRequest: Generator returned nothing usable
            SafetyViolation: The resulting PromQL is unsafe to run
            RequestTimeout: The request exceeded the configured timeout
        """
        user_context = user_context or UserContext()
        self._validate_request(natural_query, user_context)

        start = time.perf_counter()
        attempt = _Attempt(natural_query=natural_query, user_context=user_context)
        try:
            return await asyncio.wait_for(self._translate(attempt, start), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._metrics.record_error()
            error = RequestTimeout(
                "Request timed out",
                details=f"no answer within {self._timeout:g}s",
                suggestion="Try again; the answer may already be cached.",
            )
            logger.error("Translation of %r timed out after %.1fs", natural_query, self._timeout)
            await self._record_failure(attempt, error)
            raise error from None
        except QueryCacheError as e:
            self._metrics.record_error()
            logger.error("Translation of %r failed: %s", natural_query, e)
            await self._record_failure(attempt, e)
            raise
        except Exception as e:
            self._metrics.record_error()
            logger.exception("Translation of %r failed unexpectedly", natural_query)
            await self._record_failure(attempt, e)
            raise

    def _validate_request(self, natural_query: str, user_context: UserContext) -> None:
        if not isinstance(natural_query, str) or not natural_query.strip():
            raise ValidationError("Query must not be empty", suggestion="Ask a question about a metric.")
        if len(natural_query) > self._max_query_length:
            raise ValidationError(
                "Query is too long",
                details=f"{len(natural_query)} characters, maximum allowed: {self._max_query_length}",
            )
        for key, value in user_context.labels.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise ValidationError("Context labels must map strings to strings", details=f"{key!r}: {value!r}")
            if not key.isidentifier():
                raise ValidationError("Context label names must be identifiers", details=repr(key))
        if user_context.time_range is not None:
            self._safety.validate_time_range(user_context.time_range)

    async def _translate(self, attempt: _Attempt, start: float) -> TranslationResult:
        attempt.canonical = canonicalize(attempt.natural_query)
        known_services = [s.name for s in self._registry.list_services()]
        attempt.intent = self._intents.classify(attempt.canonical, known_services)

        vector = await self._embed(attempt.canonical)
        neighbors = self._index.nearest_neighbors(vector, self._k, self._similarity_threshold)
        candidates = self._rank(neighbors)
        lookup_ms = (time.perf_counter() - start) * 1000

        values = self._resolution_values(attempt)
        explanation = ""
        best = candidates[0] if candidates else None
        for candidate in self._trusted(attempt.canonical, candidates):
            promql = resolve(candidate.entry.promql_template, values)
            if promql is None:
                logger.info("Cache entry %s has unresolved placeholders", candidate.entry.id)
                continue
            attempt.promql = promql
            attempt.confidence = candidate.confidence
            attempt.cache_hit = True
            attempt.entry_id = candidate.entry.id
            explanation = (
                f"Reused cached PromQL for the similar question '{candidate.entry.query_text}' "
                f"(similarity {candidate.similarity:.2f}, {candidate.entry.success_count}/"
                f"{candidate.entry.total_executions} successful runs)."
            )
            break

        attempt.rejected_ids = {c.entry.id for c in candidates if c.entry.id != attempt.entry_id}

        if attempt.cache_hit:
            self._metrics.record_hit(lookup_ms)
            logger.info(
                "Cache hit for %r -> entry %s (confidence %.3f)",
                attempt.canonical,
                attempt.entry_id,
                attempt.confidence,
            )
            self._safety.validate_query(attempt.promql)
        else:
            self._metrics.record_miss(lookup_ms)
            logger.info(
                "Cache miss for %r (best confidence %s)",
                attempt.canonical,
                f"{best.confidence:.3f}" if best else "n/a",
            )
            explanation = await self._generate_and_store(attempt, vector, values, candidates)

        execution, validation_error = await self._validate(attempt)
        if validation_error:
            attempt.confidence *= self._validation_penalty
            explanation = f"{explanation} Validation failed: {validation_error}".strip()

        suggestions = [c.entry.query_text for c in candidates if c.entry.id in attempt.rejected_ids][:3]
        result = TranslationResult(
            promql=attempt.promql,
            confidence=attempt.confidence,
            cache_hit=attempt.cache_hit,
            explanation=explanation,
            estimated_cost=estimate_cost(attempt.promql),
            processing_time_ms=(time.perf_counter() - start) * 1000,
            suggestions=suggestions,
            cache_entry_id=attempt.entry_id,
            intent_type=attempt.intent.type,
            service_name=attempt.intent.service,
            validated=execution is not None,
        )

        record = self._history_record(
            attempt,
            success=validation_error is None,
            execution_time_ms=execution.execution_time_ms if execution else None,
            error_message=validation_error,
        )
        outcome = None
        if execution is not None and attempt.entry_id is not None:
            outcome = OutcomeUpdate(attempt.entry_id, execution.success, execution.execution_time_ms)
        await self._send_feedback(record, outcome)
        return result

    async def _embed(self, canonical: str) -> list[float]:
        """Embed the canonical text; any embedder failure is fatal for the request."""
        vector = await self._embeddings.encode(canonical)
        if len(vector) != self._index.dimension:
            raise DimensionMismatch(
                "Embedder returned a vector of the wrong dimension",
                details=f"index expects {self._index.dimension}, got {len(vector)}",
            )
        return vector

    def _rank(self, neighbors: list[CacheMatchEntity]) -> list[_Candidate]:
        """Attach entries and derived confidence, most trustworthy first."""
        candidates = []
        for match in neighbors:
            try:
                entry = self._entries.get_by_id(match.entry_id)
            except EntryNotFound:
                logger.warning("Index returned entry %s which is not in the store", match.entry_id)
                continue
            score = derived_confidence(
                match.similarity,
                entry.success_count,
                entry.failure_count,
                self._prior_successes,
                self._prior_failures,
            )
            candidates.append(_Candidate(entry=entry, similarity=match.similarity, confidence=score))
        candidates.sort(key=lambda c: (c.confidence, c.similarity), reverse=True)
        return candidates

    def _trusted(self, canonical: str, candidates: list[_Candidate]) -> list[_Candidate]:
        """Entries allowed to answer without generation, most preferred first.

        The most confident neighbour qualifies when it clears the confidence
        threshold. The entry stored for exactly this canonical text qualifies
        until it records a failure, whatever its statistics say, so a repeated
        question is served while its entry is cold or its outcomes are still
        being written.
        """
        trusted = []
        if candidates and candidates[0].confidence > self._confidence_threshold:
            trusted.append(candidates[0])
        exact = self._exact_match(canonical, candidates)
        if exact is not None and exact.entry.failure_count == 0:
            if all(c.entry.id != exact.entry.id for c in trusted):
                trusted.append(exact)
        return trusted

    def _exact_match(self, canonical: str, candidates: list[_Candidate]) -> _Candidate | None:
        for candidate in candidates:
            if candidate.entry.query_text == canonical:
                return candidate
        # Stored but not (yet) indexed, or pushed out of the top k
        try:
            entry = self._entries.get(canonical)
        except EntryNotFound:
            return None
        score = derived_confidence(
            1.0,
            entry.success_count,
            entry.failure_count,
            self._prior_successes,
            self._prior_failures,
        )
        return _Candidate(entry=entry, similarity=1.0, confidence=score)

    def _lookup_service(self, name: str | None) -> ServiceEntity | None:
        if not name:
            return None
        found = self._registry.lookup(name)
        return found if isinstance(found, ServiceEntity) else None

    def _resolution_values(self, attempt: _Attempt) -> dict[str, str]:
        """Placeholder values: request context first, then registry, then defaults."""
        ctx = attempt.user_context
        values = dict(ctx.labels)
        if attempt.intent.service:
            values.setdefault("service", attempt.intent.service)
        service = self._lookup_service(values.get("service"))
        if service is not None:
            values.setdefault("namespace", service.namespace)
            for key, value in service.labels.items():
                values.setdefault(key, value)
        values.setdefault("time_range", ctx.time_range or attempt.intent.time_range or self._default_time_range)
        return values

    async def _generate_and_store(
        self,
        attempt: _Attempt,
        vector: list[float],
        values: dict[str, str],
        candidates: list[_Candidate],
    ) -> str:
        """Cache-miss path: generate, safety-check, then persist a new entry."""
        service = self._lookup_service(attempt.intent.service or attempt.user_context.labels.get("service"))
        context = GenerationContext(
            query=attempt.natural_query,
            intent=attempt.intent,
            service=service,
            metrics=self._registry.get_metrics(service.id) if service else [],
            known_services=[s.name for s in self._registry.list_services()],
            time_range=values.get("time_range"),
            examples=[
                QueryExample(c.entry.query_text, c.entry.promql_template, c.similarity) for c in candidates
            ],
        )

        started = time.perf_counter()
        generated: GeneratedQuery = await self._generator.generate(context)
        self._metrics.record_generation((time.perf_counter() - started) * 1000)

        attempt.promql = generated.promql.strip()
        attempt.confidence = _pick(generated.confidence, self._default_confidence)
        self._safety.validate_query(attempt.promql)

        labels = dict(attempt.user_context.labels)
        if attempt.intent.service:
            labels.setdefault("service", attempt.intent.service)
        template = templatize(attempt.promql, labels, values.get("time_range"))
        self._persist(attempt, vector, template, values)
        return generated.explanation or "Generated new PromQL for this question."

    def _persist(self, attempt: _Attempt, vector: list[float], template: str, values: dict[str, str]) -> None:
        """Store the new entry; on a lost race converge on the winner's template."""
        entry = CacheEntryEntity.new(attempt.canonical, vector, template)
        try:
            self._entries.put(entry)
        except DuplicateKey:
            winner = self._entries.get(attempt.canonical)
            self._ensure_indexed(winner)
            if winner.id not in attempt.rejected_ids:
                # Created concurrently by another request for the same query
                converged = resolve(winner.promql_template, values)
                if converged is not None:
                    attempt.promql = converged
                attempt.entry_id = winner.id
                logger.info("Converged on concurrently created entry %s for %r", winner.id, attempt.canonical)
            elif winner.promql_template == template:
                attempt.entry_id = winner.id
            else:
                # An existing entry was judged untrustworthy; its stats must not
                # absorb the outcome of a different query.
                logger.debug("Regenerated PromQL differs from distrusted entry %s", winner.id)
            return

        attempt.entry_id = entry.id
        self._ensure_indexed(entry)
        logger.info("Stored new cache entry %s for %r", entry.id, attempt.canonical)

    def _ensure_indexed(self, entry: CacheEntryEntity) -> None:
        try:
            self._index.insert(entry.id, entry.embedding)
        except DuplicateKey:
            pass

    def _should_validate(self, cache_hit: bool) -> bool:
        if self._executor is None or self._validation_policy == "never":
            return False
        return self._validation_policy == "always" or not cache_hit

    async def _validate(self, attempt: _Attempt) -> tuple[ExecutionResult | None, str | None]:
        """Run the PromQL through the executor; failures only lower confidence."""
        if not self._should_validate(attempt.cache_hit):
            return None, None
        try:
            execution = await self._executor.execute(attempt.promql)
        except UpstreamUnavailable as e:
            logger.warning("Validation skipped, executor unavailable: %s", e)
            self._metrics.record_validation_failure()
            return None, str(e)
        if not execution.success:
            self._metrics.record_validation_failure()
            return execution, execution.error or "query execution failed"
        return execution, None

    def _history_record(
        self,
        attempt: _Attempt,
        success: bool,
        execution_time_ms: float | None = None,
        error_message: str | None = None,
    ) -> HistoryRecordEntity:
        return HistoryRecordEntity(
            natural_query=attempt.natural_query,
            generated_promql=attempt.promql,
            success=success,
            confidence_score=attempt.confidence,
            user_id=attempt.user_context.user_id,
            intent_type=attempt.intent.type if attempt.intent else None,
            service_name=attempt.intent.service if attempt.intent else None,
            execution_time_ms=execution_time_ms,
            error_message=error_message,
            cache_hit=attempt.cache_hit,
            cache_entry_id=attempt.entry_id,
        )

    async def _send_feedback(self, record: HistoryRecordEntity, outcome: OutcomeUpdate | None) -> None:
        if self._feedback.deferred:
            self._feedback.submit(record, outcome)
        else:
            await self._feedback.flush(record, outcome)

    async def _record_failure(self, attempt: _Attempt, error: Exception) -> None:
        message = str(error) if isinstance(error, QueryCacheError) else f"{type(error).__name__}: {error}"
        record = self._history_record(attempt, success=False, error_message=message)
        await self._send_feedback(record, None)

    async def is_healthy(self) -> dict[str, bool]:
        """Check the store and embedder."""
        return {
            "cache_healthy": self._entries.health_check(),
            "embedding_healthy": await self._embeddings.is_available(),
        }

    def get_stats(self) -> dict:
        stats = self._entries.get_stats()
        stats["indexed_vectors"] = self._index.count()
        stats["similarity_threshold"] = self._similarity_threshold
        stats["confidence_threshold"] = self._confidence_threshold
        stats["neighbor_count"] = self._k
        stats["validation_policy"] = self._validation_policy
        stats["embedding_model"] = self._embeddings.model_name
        stats["embedding_dimension"] = self._index.dimension
        return stats

    @property
    def metrics(self) -> PerformanceMetrics:
        return self._metrics

    @property
    def feedback(self) -> FeedbackRecorder:
        return self._feedback

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        return self._embeddings

    @property
    def generator(self) -> QueryGenerator:
        return self._generator

    @property
    def executor(self) -> QueryExecutor | None:
        return self._executor

    @property
    def entry_store(self) -> CacheEntryStore:
        """Get the underlying entry store (for testing)."""
        return self._entries

    @property
    def index(self) -> VectorIndex:
        """Get the underlying vector index (for testing)."""
        return self._index
