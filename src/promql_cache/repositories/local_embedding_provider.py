"""In-process sentence-transformers embedder.

Selected with ``EMBEDDING_PROVIDER=local``. The model loads on first use and
encoding runs in a worker thread, keeping the event loop free for other
requests while a question is embedded.
"""

import asyncio
import logging
import threading
import time

import numpy as np
from sentence_transformers import SentenceTransformer

from promql_cache.config import settings
from promql_cache.errors import EmbedderUnavailable

logger = logging.getLogger(__name__)


class LocalEmbeddingProvider:
    """EmbeddingProvider running a sentence-transformers model locally.

    Vectors are L2-normalised so cosine similarity against stored entries
    is a plain dot product.
    """

    def __init__(self, model_name: str | None = None) -> None:
        self._model_name = model_name or settings.embedding_model
        self._model: SentenceTransformer | None = None
        self._load_lock = threading.Lock()

    @classmethod
    def create(cls, model_name: str | None = None) -> "LocalEmbeddingProvider":
        return cls(model_name=model_name)

    def _load(self) -> SentenceTransformer:
        with self._load_lock:
            if self._model is None:
                logger.info("Loading sentence-transformers model %s", self._model_name)
                started = time.perf_counter()
                try:
                    self._model = SentenceTransformer(self._model_name)
                except (OSError, ValueError) as e:
                    raise EmbedderUnavailable(
                        "Embedder unavailable",
                        details=str(e),
                        suggestion=f"Check that {self._model_name} is a sentence-transformers model.",
                    ) from e
                logger.info("Model %s loaded in %.2fs", self._model_name, time.perf_counter() - started)
            return self._model

    @property
    def dimension(self) -> int:
        size = self._load().get_sentence_embedding_dimension()
        return int(size) if size else settings.embedding_dimension

    @property
    def model_name(self) -> str:
        return self._model_name

    def _encode_sync(self, text: str) -> list[float]:
        vector = np.asarray(self._load().encode(text, normalize_embeddings=True, show_progress_bar=False))
        return vector.reshape(-1).astype(float).tolist()

    async def encode(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._encode_sync, text)

    async def is_available(self) -> bool:
        try:
            await asyncio.to_thread(self._load)
            return True
        except EmbedderUnavailable:
            return False
