"""Service/metric registry protocol."""

from typing import Protocol, runtime_checkable

from promql_cache.entities import MetricEntity, ServiceEntity


@runtime_checkable
class ServiceRegistry(Protocol):
    """Read side of the service/metric registry used while translating.

    The registry is populated by an external discovery process; the core only
    reads a locally held, boundedly stale copy.
    """

    def lookup(self, name: str) -> ServiceEntity | MetricEntity | None:
        """Resolve a name to a service (preferred) or metric, or None if unknown."""
        ...

    def list_services(self) -> list[ServiceEntity]:
        ...

    def get_metrics(self, service_id: str) -> list[MetricEntity]:
        ...

    def get_service(self, name: str, namespace: str = "default") -> ServiceEntity | None:
        ...

    def search_services(self, term: str) -> list[ServiceEntity]:
        """Services whose name or description contains ``term`` (case-insensitive)."""
        ...
