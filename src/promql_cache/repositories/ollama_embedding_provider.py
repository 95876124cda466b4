"""Ollama-based embedding provider.

Natural-language questions are embedded through Ollama's ``/api/embed``
endpoint. The vector space of every cached entry depends on the model, so
the model name and its dimension are reported with the cache stats.

Requirements:
    - Ollama installed: https://ollama.com
    - Model pulled: `ollama pull nomic-embed-text`
"""

import logging
import math

import httpx

from promql_cache.config import settings
from promql_cache.errors import EmbedderUnavailable, RateLimited
from promql_cache.repositories.retry import upstream_retrying

logger = logging.getLogger(__name__)

# Published output sizes; anything else falls back to EMBEDDING_DIMENSION
MODEL_DIMENSIONS = {
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
    "all-minilm": 384,
    "snowflake-arctic-embed": 1024,
}


def _as_vector(data: dict) -> list[float]:
    vectors = data.get("embeddings") if isinstance(data, dict) else None
    if not isinstance(vectors, list) or not vectors or not vectors[0]:
        raise EmbedderUnavailable("Embedder unavailable", details="Ollama returned no embedding", transient=False)
    try:
        vector = [float(x) for x in vectors[0]]
    except (TypeError, ValueError) as e:
        raise EmbedderUnavailable(
            "Embedder unavailable", details=f"Non-numeric embedding: {e}", transient=False
        ) from e
    if not all(math.isfinite(x) for x in vector):
        raise EmbedderUnavailable(
            "Embedder unavailable", details="Ollama returned a non-finite embedding", transient=False
        )
    return vector


class OllamaEmbeddingProvider:
    """EmbeddingProvider backed by a local Ollama server.

    Status handling:
        429 -> RateLimited (retried)
        5xx, connection failures -> EmbedderUnavailable (retried)
        404 -> EmbedderUnavailable (model not pulled, not retried)
    """

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        max_attempts: int | None = None,
        backoff_min: float | None = None,
        backoff_max: float | None = None,
    ) -> None:
        self._model_name = model_name or settings.embedding_model
        self._base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self._timeout = timeout
        self._client = client
        self._dimension = MODEL_DIMENSIONS.get(self._model_name.split(":")[0], settings.embedding_dimension)
        self._retry = {"max_attempts": max_attempts, "backoff_min": backoff_min, "backoff_max": backoff_max}

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    @classmethod
    def create(cls, model_name: str | None = None, base_url: str | None = None) -> "OllamaEmbeddingProvider":
        return cls(model_name=model_name, base_url=base_url)

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name

    async def encode(self, text: str) -> list[float]:
        """Embed one question.

        Raises:
            RateLimited: If Ollama keeps answering 429
            EmbedderUnavailable: If Ollama cannot be reached, does not have
                the model, or answers with something that is not a vector
        """
        return await upstream_retrying(**self._retry)(self._encode_once, text)

    async def _encode_once(self, text: str) -> list[float]:
        try:
            response = await self.client.post(
                f"{self._base_url}/api/embed",
                json={"model": self._model_name, "input": text},
            )
        except httpx.HTTPError as e:
            logger.error("Ollama embedding request failed: %s", e)
            raise EmbedderUnavailable(
                "Embedder unavailable",
                details=str(e),
                suggestion="Is Ollama running? Try: ollama serve",
            ) from e

        if response.status_code == 429:
            raise RateLimited("Embedding service is rate limiting requests", suggestion="Retry shortly.")
        if response.status_code == 404:
            raise EmbedderUnavailable(
                "Embedder unavailable",
                details=f"Model {self._model_name} not found",
                suggestion=f"Try: ollama pull {self._model_name}",
                transient=False,
            )
        if response.is_error:
            logger.error("Ollama embedding returned HTTP %d", response.status_code)
            raise EmbedderUnavailable(
                "Embedder unavailable",
                details=f"HTTP {response.status_code}",
                transient=response.status_code >= 500,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise EmbedderUnavailable("Embedder unavailable", details="Malformed JSON", transient=False) from e
        return _as_vector(data)

    async def is_available(self) -> bool:
        try:
            await self._encode_once("up")
            return True
        except (EmbedderUnavailable, RateLimited):
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
