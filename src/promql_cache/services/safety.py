"""Safety checks applied to PromQL before it is returned or executed."""

import re
from dataclasses import dataclass, field

from promql_cache.errors import SafetyViolation, ValidationError

_TIME_RANGE = re.compile(r"^(\d+)([mhdw])$")
_UNIT_SECONDS = {"m": 60, "h": 3600, "d": 86400, "w": 604800}


@dataclass
class SafetyChecker:
    """Rejects PromQL that leaks secrets or is likely to overload the backend."""

    max_query_range_seconds: int = 7 * 86400
    max_promql_length: int = 500
    max_nesting: int = 3
    forbidden_metrics: list[str] = field(
        default_factory=lambda: [".*_secret.*", ".*_password.*", ".*_token.*", ".*_key.*"]
    )
    forbidden_patterns: list[str] = field(default_factory=list)
    dangerous_ranges: tuple[str, ...] = ("365d", "1y", "52w", "8760h")
    expensive_operations: tuple[str, ...] = ("group_left", "group_right", "or vector", "absent(")

    def validate_query(self, promql: str) -> None:
        """Raise SafetyViolation if the PromQL must not be run."""
        if self.max_promql_length and len(promql) > self.max_promql_length:
            raise SafetyViolation(
                "Query exceeds maximum length",
                details=f"{len(promql)} characters, maximum allowed: {self.max_promql_length}",
                suggestion="Please simplify your query or break it into smaller queries.",
            )

        lowered = promql.lower()
        for pattern in self.forbidden_metrics:
            if re.search(pattern.lower(), lowered):
                raise SafetyViolation(
                    "Query references a forbidden metric",
                    details=f"Forbidden metric pattern: {pattern}",
                    suggestion="Metrics that may expose credentials cannot be queried.",
                )

        for pattern in self.forbidden_patterns:
            if re.search(pattern.lower(), lowered):
                raise SafetyViolation(
                    "Query contains forbidden pattern",
                    details=f"Forbidden pattern: {pattern}",
                    suggestion="Modify your query to avoid using this pattern.",
                )

        if "[" in promql:
            for dangerous in self.dangerous_ranges:
                if dangerous in promql:
                    raise SafetyViolation(
                        "Query time range is too long",
                        details=f"Range {dangerous} exceeds the maximum of {self.max_query_range_seconds // 86400}d",
                        suggestion="Use a shorter range such as 1h, 24h or 7d.",
                    )

        if "by ()" in promql or "without ()" in promql:
            raise SafetyViolation(
                "Query would return high-cardinality results",
                suggestion="Aggregate by specific labels instead of an empty grouping.",
            )

        for op in self.expensive_operations:
            if op in lowered:
                raise SafetyViolation(
                    "Query uses an expensive operation",
                    details=f"Operation: {op}",
                    suggestion="Try a simpler formulation without this operator.",
                )

        # Grouping clauses such as "by (le)" are not nesting
        nesting = len(re.findall(r"(?<!by )(?<!without )\(", promql))
        if nesting > self.max_nesting:
            raise SafetyViolation(
                "Query contains too many nested operations",
                details=f"{nesting} levels of nesting, maximum allowed is {self.max_nesting}",
                suggestion="Break down complex queries into simpler parts.",
            )

    def validate_time_range(self, time_range: str) -> None:
        """Raise ValidationError for malformed or overly long ranges like ``30d``."""
        match = _TIME_RANGE.match(time_range)
        if match is None:
            raise ValidationError(
                "Invalid time range format",
                details=f"Time range: {time_range}",
                suggestion="Use valid time range formats like: 5m, 1h, 24h, 7d, 1w",
            )
        seconds = int(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        if seconds > self.max_query_range_seconds:
            raise ValidationError(
                "Time range is too long",
                details=f"{time_range} exceeds the maximum of {self.max_query_range_seconds // 86400}d",
            )


def estimate_cost(promql: str) -> int:
    """Rough relative cost of running a query."""
    cost = 1
    if "sum" in promql or "avg" in promql:
        cost += 2
    if "rate" in promql or "increase" in promql:
        cost += 3
    if "=~" in promql:
        cost += 5
    return cost
