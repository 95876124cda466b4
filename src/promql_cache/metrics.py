from dataclasses import dataclass


@dataclass
class PerformanceMetrics:
    """Track in-process counters for translation requests."""

    total_queries: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0
    total_lookup_time_ms: float = 0.0
    total_generation_time_ms: float = 0.0
    generations: int = 0
    validation_failures: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        if self.total_queries == 0:
            return 0.0
        return self.cache_hits / self.total_queries

    @property
    def avg_lookup_time_ms(self) -> float:
        """Calculate average lookup time."""
        if self.total_queries == 0:
            return 0.0
        return self.total_lookup_time_ms / self.total_queries

    @property
    def avg_generation_time_ms(self) -> float:
        if self.generations == 0:
            return 0.0
        return self.total_generation_time_ms / self.generations

    def record_hit(self, lookup_time_ms: float) -> None:
        """Record a cache hit."""
        self.total_queries += 1
        self.cache_hits += 1
        self.total_lookup_time_ms += lookup_time_ms

    def record_miss(self, lookup_time_ms: float) -> None:
        """Record a cache miss."""
        self.total_queries += 1
        self.cache_misses += 1
        self.total_lookup_time_ms += lookup_time_ms

    def record_generation(self, duration_ms: float) -> None:
        """Record a generator call."""
        self.generations += 1
        self.total_generation_time_ms += duration_ms

    def record_validation_failure(self) -> None:
        self.validation_failures += 1

    def record_error(self) -> None:
        self.errors += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "total_queries": self.total_queries,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": self.hit_rate,
            "errors": self.errors,
            "avg_lookup_time_ms": self.avg_lookup_time_ms,
            "generations": self.generations,
            "avg_generation_time_ms": self.avg_generation_time_ms,
            "validation_failures": self.validation_failures,
        }
