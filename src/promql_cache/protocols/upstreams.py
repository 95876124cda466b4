"""Protocols for the pluggable upstream capabilities.

The cache never decides how PromQL is synthesised or executed; it only
talks to these interfaces.
"""

from typing import Protocol, runtime_checkable

from promql_cache.entities import ExecutionResult, GeneratedQuery, GenerationContext


@runtime_checkable
class QueryGenerator(Protocol):
    """Turns a natural-language query plus registry context into PromQL.

    Implementations raise ``GeneratorUnavailable`` when unreachable and
    ``InvalidGenerationRequest`` when the request is rejected.
    """

    async def generate(self, context: GenerationContext) -> GeneratedQuery:
        ...


@runtime_checkable
class QueryExecutor(Protocol):
    """Validation oracle that runs PromQL against a metrics backend.

    Query-level failures are reported in the returned ``ExecutionResult``;
    ``ExecutorUnavailable`` is raised only when the backend cannot be reached.
    """

    async def execute(self, promql: str) -> ExecutionResult:
        ...
