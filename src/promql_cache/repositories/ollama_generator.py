"""Ollama-based PromQL generator.

Builds a few-shot prompt from the registry context and similar cached
queries, asks a local Ollama model for PromQL, and pulls the query out of
the free-text answer.
"""

import logging
import re

import httpx

from promql_cache.config import settings
from promql_cache.entities import GeneratedQuery, GenerationContext
from promql_cache.errors import GeneratorUnavailable, InvalidGenerationRequest, RateLimited
from promql_cache.repositories.retry import upstream_retrying

logger = logging.getLogger(__name__)

_CODE_BLOCK = re.compile(r"```(?:promql)?\s*\n?(.*?)\n?```", re.DOTALL)
_FUNCTION_CALL = re.compile(
    r"\b(?:rate|irate|sum|avg|max|min|count|increase|histogram_quantile|topk|bottomk)\s*\(",
    re.IGNORECASE,
)
_SELECTOR = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*\{[^}]*\}(?:\[[^\]]+\])?")

PROMQL_KEYWORDS = ("rate(", "sum(", "avg(", "histogram_quantile(", "by (", "without (")
UNCERTAINTY_PHRASES = ("not sure", "might be", "could be", "i think", "perhaps")


def looks_like_promql(line: str) -> bool:
    """Heuristic: a line that contains a selector or a PromQL function call."""
    return bool(_SELECTOR.search(line) or _FUNCTION_CALL.search(line))


def estimate_confidence(full_text: str, promql: str) -> float:
    """Score how sure the model sounded, clamped to [0, 1]."""
    score = 0.5
    if promql:
        score += 0.3
    lowered = full_text.lower()
    score += 0.05 * sum(1 for keyword in PROMQL_KEYWORDS if keyword in lowered)
    score -= 0.1 * sum(1 for phrase in UNCERTAINTY_PHRASES if phrase in lowered)
    return min(1.0, max(0.0, score))


def _explanation_without(full_text: str, promql: str) -> str:
    text = _CODE_BLOCK.sub("", full_text).replace(promql, "")
    return " ".join(text.split())


def parse_generation(text: str) -> GeneratedQuery:
    """Extract PromQL, an explanation and a confidence from model output.

    Fenced code blocks win; otherwise the first run of PromQL-looking lines
    is taken; as a last resort the first substantial line, with low confidence.
    """
    text = text.strip()
    if not text:
        return GeneratedQuery(promql="", confidence=0.0)

    match = _CODE_BLOCK.search(text)
    if match and match.group(1).strip():
        promql = " ".join(match.group(1).split())
        return GeneratedQuery(
            promql=promql,
            confidence=estimate_confidence(text, promql),
            explanation=_explanation_without(text, match.group(1)),
        )

    promql_lines: list[str] = []
    for line in (raw.strip() for raw in text.splitlines()):
        if not line or line.startswith(("#", "//")):
            continue
        if looks_like_promql(line):
            promql_lines.append(line)
        elif promql_lines:
            break

    if promql_lines:
        promql = " ".join(promql_lines)
        return GeneratedQuery(
            promql=promql,
            confidence=estimate_confidence(text, promql),
            explanation=_explanation_without(text, promql),
        )

    for line in (raw.strip() for raw in text.splitlines()):
        if len(line) > 10 and "here" not in line.lower() and "query" not in line.lower():
            return GeneratedQuery(promql=line, confidence=0.3, explanation=_explanation_without(text, line))

    return GeneratedQuery(promql=text, confidence=0.1)


def build_prompt(context: GenerationContext) -> str:
    """Render the generation prompt for one query."""
    parts = [
        "You are a PromQL expert. Convert the natural language query to PromQL.",
        "IMPORTANT: Return ONLY the PromQL query in a ```promql code block.",
        "",
    ]

    if context.service is not None:
        metric_names = ", ".join(m.name for m in context.metrics) or ", ".join(sorted(context.service.metric_names))
        parts += [
            "Service Context:",
            f"- Name: {context.service.name}",
            f"- Namespace: {context.service.namespace}",
            f"- Available metrics: {metric_names or 'unknown'}",
            "",
        ]
    elif context.known_services:
        parts += [f"Known services: {', '.join(context.known_services)}", ""]

    if context.examples:
        parts.append("Examples:")
        for example in context.examples[:3]:
            parts += [f"Query: {example.query_text}", f"PromQL: {example.promql}", ""]

    parts.append(f"Query: {context.query}")
    parts.append(f"Intent: {context.intent.type}")
    if context.intent.service:
        parts.append(f"Target Service: {context.intent.service}")
    if context.time_range:
        parts.append(f"Time Range: {context.time_range}")

    parts.append("")
    parts.append("Return only the PromQL query:")
    return "\n".join(parts)


class OllamaQueryGenerator:
    """QueryGenerator backed by Ollama's /api/generate endpoint.

    Connection failures, 429 and 5xx answers are retried with backoff
    before the error reaches the caller.
    """

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
        max_attempts: int | None = None,
        backoff_min: float | None = None,
        backoff_max: float | None = None,
    ) -> None:
        self._model_name = model_name or settings.generator_model
        self._base_url = base_url or settings.ollama_base_url
        self._timeout = timeout
        self._client = client
        self._retry = {"max_attempts": max_attempts, "backoff_min": backoff_min, "backoff_max": backoff_max}

    @classmethod
    def create(cls, model_name: str | None = None, base_url: str | None = None) -> "OllamaQueryGenerator":
        return cls(model_name=model_name, base_url=base_url)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def generate(self, context: GenerationContext) -> GeneratedQuery:
        payload = {
            "model": self._model_name,
            "prompt": build_prompt(context),
            "stream": False,
            "options": {"temperature": 0},
        }
        return await upstream_retrying(**self._retry)(self._generate_once, payload)

    async def _generate_once(self, payload: dict) -> GeneratedQuery:
        try:
            response = await self.client.post(f"{self._base_url}/api/generate", json=payload)
        except httpx.HTTPError as e:
            logger.error("Ollama generate request failed: %s", e)
            raise GeneratorUnavailable("Generator unavailable", details=str(e)) from e

        if response.status_code == 429:
            raise RateLimited("Generator is rate limiting requests", suggestion="Retry shortly.")
        if response.status_code >= 500:
            raise GeneratorUnavailable("Generator unavailable", details=f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise InvalidGenerationRequest("Generator rejected the request", details=response.text[:200])

        try:
            body = response.json()
        except ValueError as e:
            raise InvalidGenerationRequest("Generator returned malformed JSON", details=response.text[:200]) from e
        if not isinstance(body, dict):
            raise InvalidGenerationRequest("Generator returned an unexpected answer", details=str(body)[:200])

        generated = parse_generation(str(body.get("response") or ""))
        if not generated.promql:
            raise InvalidGenerationRequest(
                "Generator returned no PromQL",
                suggestion="Rephrase the question or name the service and metric explicitly.",
            )
        return generated

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
