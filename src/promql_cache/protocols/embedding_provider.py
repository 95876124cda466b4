"""Embedding provider protocol.

Turns a natural-language question into the vector the embedding index is
searched with. All vectors stored in one index must come from the same
model, so the provider reports both its model name and its dimension.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for question embedders.

    Implementations raise ``EmbedderUnavailable`` when the backend cannot be
    reached and ``RateLimited`` when it refuses the request for rate reasons.
    """

    @property
    def dimension(self) -> int:
        """Length of every vector ``encode`` returns."""
        ...

    @property
    def model_name(self) -> str:
        ...

    async def encode(self, text: str) -> list[float]:
        """Embed a single question."""
        ...

    async def is_available(self) -> bool:
        """Check whether the backend answers; never raises."""
        ...
