"""In-memory service/metric registry.

Holds the locally cached copy of the registry that the discovery process
owns. Reads are lock-free over immutable entities; writes and snapshot
replacement take a reentrant lock.
"""

import json
import logging
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from promql_cache.entities import MetricEntity, MetricType, ServiceEntity
from promql_cache.entities.cache_entry import utcnow
from promql_cache.errors import DuplicateKey, EntryNotFound, ValidationError

logger = logging.getLogger(__name__)


class InMemoryServiceRegistry:
    """Registry of services and their metrics.

    This class satisfies the ServiceRegistry protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self) -> None:
        self._services: dict[str, ServiceEntity] = {}
        self._metrics: dict[str, dict[str, MetricEntity]] = {}
        self._lock = threading.RLock()
        self.refreshed_at: datetime = utcnow()

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> "InMemoryServiceRegistry":
        """Build a registry from a JSON-compatible snapshot.

        Expected shape::

            {"services": [{"name": "checkout", "namespace": "shop",
                           "description": "...", "labels": {...},
                           "metrics": [{"name": "http_requests_total",
                                        "type": "counter"}]}]}
        """
        registry = cls()
        for item in snapshot.get("services", []):
            service = registry.register_service(
                name=item["name"],
                namespace=item.get("namespace", "default"),
                description=item.get("description", ""),
                labels=item.get("labels", {}),
            )
            for metric in item.get("metrics", []):
                registry.add_metric(
                    service_id=service.id,
                    name=metric["name"],
                    metric_type=metric.get("type", "gauge"),
                    description=metric.get("description", ""),
                    labels=metric.get("labels", {}),
                )
        return registry

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryServiceRegistry":
        registry = cls.from_snapshot(json.loads(Path(path).read_text()))
        logger.info("Loaded registry snapshot from %s (%d services)", path, len(registry.list_services()))
        return registry

    def replace_snapshot(self, other: "InMemoryServiceRegistry") -> None:
        """Swap in a freshly discovered registry in one step."""
        with self._lock:
            self._services = dict(other._services)
            self._metrics = {sid: dict(metrics) for sid, metrics in other._metrics.items()}
            self.refreshed_at = utcnow()

    @property
    def staleness_seconds(self) -> float:
        return (utcnow() - self.refreshed_at).total_seconds()

    def register_service(
        self,
        name: str,
        namespace: str = "default",
        description: str = "",
        labels: dict[str, str] | None = None,
    ) -> ServiceEntity:
        with self._lock:
            if self.get_service(name, namespace) is not None:
                raise DuplicateKey(f"Service {namespace}/{name} already exists")
            service = ServiceEntity(
                name=name,
                namespace=namespace,
                description=description,
                labels=dict(labels or {}),
            )
            self._services[service.id] = service
            self._metrics[service.id] = {}
            return service

    def add_metric(
        self,
        service_id: str,
        name: str,
        metric_type: str | MetricType,
        description: str = "",
        labels: dict[str, str] | None = None,
    ) -> MetricEntity:
        try:
            kind = MetricType(metric_type)
        except ValueError:
            raise ValidationError(
                f"Unknown metric type {metric_type!r}",
                suggestion="Use one of: counter, gauge, histogram, summary",
            ) from None

        with self._lock:
            service = self._services.get(service_id)
            if service is None:
                raise EntryNotFound(f"No service with id {service_id}")
            if name in self._metrics[service_id]:
                raise DuplicateKey(f"Metric {name} already exists for service {service.name}")
            metric = MetricEntity(
                name=name,
                type=kind,
                service_id=service_id,
                description=description,
                labels=dict(labels or {}),
            )
            self._metrics[service_id][name] = metric
            self._services[service_id] = replace(
                service,
                metric_names=service.metric_names | {name},
                updated_at=utcnow(),
            )
            return metric

    def delete_service(self, service_id: str) -> None:
        """Remove a service together with all of its metrics."""
        with self._lock:
            if self._services.pop(service_id, None) is None:
                raise EntryNotFound(f"No service with id {service_id}")
            self._metrics.pop(service_id, None)

    def get_service(self, name: str, namespace: str = "default") -> ServiceEntity | None:
        for service in list(self._services.values()):
            if service.name == name and service.namespace == namespace:
                return service
        return None

    def lookup(self, name: str) -> ServiceEntity | MetricEntity | None:
        services = [s for s in list(self._services.values()) if s.name == name]
        if services:
            # Prefer the default namespace when a name is ambiguous
            services.sort(key=lambda s: (s.namespace != "default", s.namespace))
            return services[0]
        for metrics in list(self._metrics.values()):
            if name in metrics:
                return metrics[name]
        return None

    def list_services(self) -> list[ServiceEntity]:
        return sorted(self._services.values(), key=lambda s: (s.name, s.namespace))

    def search_services(self, term: str) -> list[ServiceEntity]:
        term = term.lower()
        return [
            s
            for s in self.list_services()
            if term in s.name.lower() or term in s.description.lower()
        ]

    def get_metrics(self, service_id: str) -> list[MetricEntity]:
        return sorted(self._metrics.get(service_id, {}).values(), key=lambda m: m.name)
