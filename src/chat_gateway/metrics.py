"""Метрики Prometheus (локальный registry)."""

from prometheus_client import CollectorRegistry, Counter

registry = CollectorRegistry()

requests_total = Counter(
    "requests_total",
    "Total number of gateway calls",
    ["mode", "status"],
    registry=registry,
)

retries_total = Counter(
    "retries_total",
    "Total retries of provider calls",
    ["kind"],
    registry=registry,
)

json_objects_total = Counter(
    "json_objects_total",
    "Total JSON objects extracted from streams",
    ["status"],
    registry=registry,
)

tokens_total = Counter(
    "tokens_total",
    "Total tokens (estimated or reported)",
    ["model", "kind"],
    registry=registry,
)
