"""Service and metric registry entities."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .cache_entry import utcnow


class MetricType(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    SUMMARY = "summary"


@dataclass(frozen=True)
class ServiceEntity:
    """A monitored service. ``(name, namespace)`` is unique."""

    name: str
    namespace: str = "default"
    description: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    metric_names: frozenset[str] = field(default_factory=frozenset)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class MetricEntity:
    """A metric owned by exactly one service. ``name`` is unique per service."""

    name: str
    type: MetricType
    service_id: str
    description: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
