"""Prometheus/Mimir HTTP API executor used as a validation oracle."""

import logging
import time

import httpx

from promql_cache.config import settings
from promql_cache.entities import ExecutionResult
from promql_cache.errors import ExecutorUnavailable
from promql_cache.repositories.retry import upstream_retrying

logger = logging.getLogger(__name__)


class PrometheusExecutor:
    """Runs instant queries against ``{base_url}/api/v1/query``.

    A query the backend rejects (bad syntax, unknown function) is a failed
    ExecutionResult. Only transport problems and 5xx answers raise, after
    the retries for transient failures are used up.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        tenant_id: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_attempts: int | None = None,
        backoff_min: float | None = None,
        backoff_max: float | None = None,
    ) -> None:
        self._base_url = (base_url or settings.prometheus_url or "http://localhost:9090").rstrip("/")
        self._timeout = timeout or settings.executor_timeout_seconds
        self._headers = {"X-Scope-OrgID": tenant_id} if tenant_id else {}
        self._client = client
        self._retry = {"max_attempts": max_attempts, "backoff_min": backoff_min, "backoff_max": backoff_max}

    @classmethod
    def create(cls, base_url: str | None = None) -> "PrometheusExecutor":
        return cls(base_url=base_url)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, headers=self._headers)
        return self._client

    async def execute(self, promql: str) -> ExecutionResult:
        return await upstream_retrying(**self._retry)(self._execute_once, promql)

    async def _execute_once(self, promql: str) -> ExecutionResult:
        start = time.perf_counter()
        try:
            response = await self.client.get(f"{self._base_url}/api/v1/query", params={"query": promql})
        except httpx.HTTPError as e:
            logger.warning("Prometheus query failed to send: %s", e)
            raise ExecutorUnavailable("Executor unavailable", details=str(e)) from e
        elapsed_ms = (time.perf_counter() - start) * 1000

        if response.status_code >= 500:
            raise ExecutorUnavailable("Executor unavailable", details=f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            return ExecutionResult(success=False, execution_time_ms=elapsed_ms, error=response.text[:200])

        if response.status_code >= 400 or body.get("status") != "success":
            error = body.get("error") or f"HTTP {response.status_code}"
            return ExecutionResult(success=False, execution_time_ms=elapsed_ms, error=error)

        return ExecutionResult(success=True, execution_time_ms=elapsed_ms)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
