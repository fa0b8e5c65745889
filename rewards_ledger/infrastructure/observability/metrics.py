"""Prometheus metrics for ledger event flow, clamping and rebuild health"""

from prometheus_client import Counter, Histogram, Gauge

# Event metrics
events_counter = Counter(
    "rewards_ledger_events_total",
    "Mutation events received by the ledger",
    ["event_type", "outcome"],  # applied | duplicate | rejected
)

clamped_fields_counter = Counter(
    "rewards_ledger_clamped_fields_total",
    "Ledger fields clamped at zero instead of going negative",
    ["field"],
)

transient_errors_counter = Counter(
    "rewards_ledger_transient_errors_total",
    "Store contention or timeouts surfaced to event producers",
)

# Rebuild metrics
rebuild_duration_histogram = Histogram(
    "rewards_ledger_rebuild_seconds",
    "Full ledger rebuild duration",
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)

rebuild_skipped_rows_counter = Counter(
    "rewards_ledger_rebuild_skipped_rows_total",
    "Historical rows excluded from a rebuild",
    ["kind"],  # report | resolver
)

rebuild_drifted_keys_gauge = Gauge(
    "rewards_ledger_rebuild_drifted_keys",
    "Ledger keys whose incremental value differed from the last recomputation",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_event(event_type: str, outcome: str) -> None:
    events_counter.labels(event_type=event_type, outcome=outcome).inc()


def record_clamped(fields) -> None:
    for name in fields:
        clamped_fields_counter.labels(field=name).inc()
