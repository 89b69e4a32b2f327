"""Prometheus metrics for lifecycle changes, rejected updates and backend health"""

from prometheus_client import Counter, Histogram

# Lifecycle metrics
transition_counter = Counter(
    "warrantyhub_transitions_total",
    "Persisted status changes",
    ["kind", "to_state"],
)

rejected_update_counter = Counter(
    "warrantyhub_rejected_updates_total",
    "Updates rejected by the lifecycle rules",
    ["kind", "reason"],  # not_found | locked | invalid_transition | validation
)

# Embedded store read-path recovery
dropped_records_counter = Counter(
    "warrantyhub_dropped_records_total",
    "Malformed embedded records excluded from reads",
    ["kind"],
)

# Remote backend metrics
backend_failure_counter = Counter(
    "warrantyhub_backend_failures_total",
    "Failed remote backend calls",
    ["table"],
)

backend_fallback_counter = Counter(
    "warrantyhub_backend_fallbacks_total",
    "Extended writes retried with the base column set",
    ["table", "operation"],  # insert | update
)

backend_latency_histogram = Histogram(
    "warrantyhub_backend_latency_seconds",
    "Remote backend response time",
    ["table", "method"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


def record_transition(kind: str, to_state: str) -> None:
    transition_counter.labels(kind=kind, to_state=to_state).inc()


def record_rejection(kind: str, reason: str) -> None:
    rejected_update_counter.labels(kind=kind, reason=reason).inc()
