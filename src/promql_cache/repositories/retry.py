"""Retry policy shared by the embedder, generator and executor clients.

Transient upstream failures are retried with jittered exponential backoff;
everything else fails on the first attempt. The last error is re-raised
unchanged once attempts run out.
"""

import logging

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from promql_cache.config import settings
from promql_cache.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, UpstreamUnavailable) and exc.transient


def upstream_retrying(
    max_attempts: int | None = None,
    backoff_min: float | None = None,
    backoff_max: float | None = None,
) -> AsyncRetrying:
    """Build a fresh retry controller for one upstream call.

    Example:
        ```python
        return await upstream_retrying()(self._encode_once, text)
        ```
    """
    initial = settings.upstream_backoff_min if backoff_min is None else backoff_min
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts or settings.upstream_max_attempts),
        wait=wait_exponential_jitter(
            initial=initial,
            max=settings.upstream_backoff_max if backoff_max is None else backoff_max,
            jitter=initial,
        ),
        retry=retry_if_exception(is_transient),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
