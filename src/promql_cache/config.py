import logging
import os
from dataclasses import dataclass
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()

VALIDATION_POLICIES = ("always", "on_miss", "never")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Storage
    storage_backend: str = os.getenv("STORAGE_BACKEND", "redis")  # "redis" or "memory"
    cache_index_name: str = os.getenv("CACHE_INDEX_NAME", "promql_cache")
    history_stream_maxlen: int = int(os.getenv("HISTORY_STREAM_MAXLEN", "100000"))

    # Embedding
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "ollama")  # "ollama" or "local"
    embedding_model: str = os.getenv("EMBEDDING_MODEL", "nomic-embed-text")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "768"))

    # Ollama (embeddings and PromQL generation)
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    generator_model: str = os.getenv("GENERATOR_MODEL", "llama3.1")

    # Prometheus / Mimir validation
    prometheus_url: str | None = os.getenv("PROMETHEUS_URL")
    executor_timeout_seconds: float = float(os.getenv("EXECUTOR_TIMEOUT_SECONDS", "10"))

    # Retries for transient embedder / generator / executor failures
    upstream_max_attempts: int = int(os.getenv("UPSTREAM_MAX_ATTEMPTS", "3"))
    upstream_backoff_min: float = float(os.getenv("UPSTREAM_BACKOFF_MIN", "0.5"))
    upstream_backoff_max: float = float(os.getenv("UPSTREAM_BACKOFF_MAX", "8"))

    # Cache decision
    similarity_threshold: float = float(os.getenv("SIMILARITY_THRESHOLD", "0.85"))
    confidence_threshold: float = float(os.getenv("CONFIDENCE_THRESHOLD", "0.6"))
    neighbor_count: int = int(os.getenv("NEIGHBOR_COUNT", "3"))
    prior_successes: float = float(os.getenv("PRIOR_SUCCESSES", "1.0"))
    prior_failures: float = float(os.getenv("PRIOR_FAILURES", "1.0"))
    default_generation_confidence: float = float(os.getenv("DEFAULT_GENERATION_CONFIDENCE", "0.5"))

    # Validation via executor
    validation_policy: str = os.getenv("VALIDATION_POLICY", "always")
    validation_penalty: float = float(os.getenv("VALIDATION_PENALTY", "0.5"))

    # Request handling
    request_timeout_seconds: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
    max_query_length: int = int(os.getenv("MAX_QUERY_LENGTH", "500"))
    default_time_range: str = os.getenv("DEFAULT_TIME_RANGE", "5m")

    # Statistics updates (optimistic retry)
    stats_max_attempts: int = int(os.getenv("STATS_MAX_ATTEMPTS", "5"))
    stats_backoff_min: float = float(os.getenv("STATS_BACKOFF_MIN", "0.01"))
    stats_backoff_max: float = float(os.getenv("STATS_BACKOFF_MAX", "0.5"))

    # Registry snapshot (JSON file written by the discovery crawler)
    registry_snapshot_path: str | None = os.getenv("REGISTRY_SNAPSHOT_PATH")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "false").lower() == "true"

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if not 0 <= self.similarity_threshold <= 1:
            raise ValueError("SIMILARITY_THRESHOLD must be between 0 and 1 for cosine similarity")

        if not 0 <= self.confidence_threshold <= 1:
            raise ValueError("CONFIDENCE_THRESHOLD must be between 0 and 1")

        if self.neighbor_count < 1:
            raise ValueError("NEIGHBOR_COUNT must be at least 1")

        if self.prior_successes <= 0 or self.prior_failures <= 0:
            raise ValueError("PRIOR_SUCCESSES and PRIOR_FAILURES must be positive")

        if self.validation_policy not in VALIDATION_POLICIES:
            raise ValueError(
                f"VALIDATION_POLICY must be one of {list(VALIDATION_POLICIES)}, "
                f"got {self.validation_policy!r}"
            )

        if not 0 <= self.validation_penalty <= 1:
            raise ValueError("VALIDATION_PENALTY must be between 0 and 1")

        if self.storage_backend not in ("redis", "memory"):
            raise ValueError(f"STORAGE_BACKEND must be 'redis' or 'memory', got {self.storage_backend!r}")

        if self.embedding_provider not in ("ollama", "local"):
            raise ValueError(
                f"EMBEDDING_PROVIDER must be 'ollama' or 'local', got {self.embedding_provider!r}"
            )

        if self.stats_max_attempts < 1:
            raise ValueError("STATS_MAX_ATTEMPTS must be at least 1")

        if self.upstream_max_attempts < 1:
            raise ValueError("UPSTREAM_MAX_ATTEMPTS must be at least 1")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create a Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=False,
    )


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the service process."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
