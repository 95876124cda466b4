"""Regex-based intent classification for natural-language metric questions."""

import re

from promql_cache.entities import QueryIntent

_PATTERNS = {
    "error_rate": re.compile(r"\b(error|errors|fail|failures?|5xx|4xx)\b.*\b(rate|percent|percentage|ratio)\b", re.I),
    "latency": re.compile(r"\b(latency|response time|slow|duration|p\d{2})\b", re.I),
    "throughput": re.compile(r"\b(requests|throughput|qps|rps|traffic)\b", re.I),
    "availability": re.compile(r"\b(uptime|availability|down|up)\b", re.I),
    "comparison": re.compile(r"\b(compare|vs|versus|against)\b", re.I),
    "resource": re.compile(r"\b(cpu|memory|mem|disk|network)\b", re.I),
}
_SERVICE_PREFIXED = re.compile(r"\b(?:service|app|application)\s+([a-z0-9][\w-]*)", re.I)
_SERVICE_SUFFIXED = re.compile(r"\b([a-z0-9][\w-]*-(?:service|svc|api))\b", re.I)
_TIME_RANGE = re.compile(r"\b(?:last|past|in the)\s+(\d+)\s*(minute|hour|day|week)s?\b", re.I)
_UNIT = {"minute": "m", "hour": "h", "day": "d", "week": "w"}


class IntentClassifier:
    """Extracts intent type, target service and time range from a query."""

    def classify(self, query: str, known_services: list[str] | None = None) -> QueryIntent:
        service = self._extract_service(query, known_services or [])

        time_range = None
        if match := _TIME_RANGE.search(query):
            time_range = f"{match.group(1)}{_UNIT[match.group(2).lower()]}"

        if _PATTERNS["error_rate"].search(query):
            kind, metric, aggregation = "errors", "error_rate", "rate"
        elif _PATTERNS["latency"].search(query):
            kind, metric, aggregation = "performance", "latency", "avg"
        elif _PATTERNS["throughput"].search(query):
            kind, metric, aggregation = "performance", "throughput", "rate"
        elif _PATTERNS["comparison"].search(query):
            kind, metric, aggregation = "comparison", None, None
        elif _PATTERNS["availability"].search(query):
            kind, metric, aggregation = "availability", "up", "avg"
        elif match := _PATTERNS["resource"].search(query):
            kind, metric, aggregation = "metrics", match.group(1).lower(), "rate"
        else:
            kind, metric, aggregation = "metrics", None, None

        return QueryIntent(
            type=kind,
            action="compare" if kind == "comparison" else "show",
            service=service,
            metric=metric,
            time_range=time_range,
            aggregation=aggregation,
        )

    @staticmethod
    def _extract_service(query: str, known_services: list[str]) -> str | None:
        lowered = query.lower()
        # Registry names win over pattern guesses; longest first
        for name in sorted(known_services, key=len, reverse=True):
            if re.search(rf"(?<![\w-]){re.escape(name.lower())}(?![\w-])", lowered):
                return name
        if match := _SERVICE_SUFFIXED.search(query):
            return match.group(1)
        if match := _SERVICE_PREFIXED.search(query):
            return match.group(1)
        return None
