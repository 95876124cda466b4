"""Similarity and confidence scoring."""

import numpy as np


def cosine_similarity(a: list[float] | np.ndarray, b: list[float] | np.ndarray) -> float:
    """Cosine similarity dot(a, b) / (|a| |b|). Zero vectors score 0."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def historical_accuracy(
    success_count: int,
    failure_count: int,
    prior_successes: float = 1.0,
    prior_failures: float = 1.0,
) -> float:
    """Laplace-smoothed success rate.

    A cold entry (0/0) scores prior_successes / (prior_successes + prior_failures),
    0.5 with the default priors.
    """
    return (success_count + prior_successes) / (
        success_count + failure_count + prior_successes + prior_failures
    )


def confidence(
    similarity: float,
    success_count: int,
    failure_count: int,
    prior_successes: float = 1.0,
    prior_failures: float = 1.0,
) -> float:
    """Retrieval similarity weighted by smoothed historical accuracy.

    At equal similarity, more recorded successes always give a strictly
    higher score.
    """
    similarity = max(0.0, similarity)
    return similarity * historical_accuracy(success_count, failure_count, prior_successes, prior_failures)
