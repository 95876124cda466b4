"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from promql_cache.services import FeedbackRecorder, TranslationService

    feedback = FeedbackRecorder(history_store, entry_store)
    service = TranslationService.create(
        embedding_provider=embedder,
        index=index,
        entry_store=entry_store,
        generator=generator,
        feedback=feedback,
        registry=registry,
    )
    ```
"""

from .feedback_recorder import FeedbackRecorder, OutcomeUpdate
from .intent import IntentClassifier
from .safety import SafetyChecker, estimate_cost
from .translation_service import TranslationService

__all__ = [
    "TranslationService",
    "FeedbackRecorder",
    "OutcomeUpdate",
    "IntentClassifier",
    "SafetyChecker",
    "estimate_cost",
]
