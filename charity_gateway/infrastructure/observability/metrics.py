"""Prometheus metrics for moderation outcomes, batch sizes and side-effect failures"""

from prometheus_client import Counter, Histogram

# Moderation metrics
moderation_counter = Counter(
    "charity_moderation_total",
    "Contribution moderation transitions",
    ["action", "outcome"],  # approve | reject | resubmit | acknowledge, success | failure
)

batch_size_histogram = Histogram(
    "charity_batch_size",
    "Contributions resolved per batch operation",
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000],
)

# Side effects
notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
    ["kind"],
)

ledger_update_failure_counter = Counter(
    "ledger_update_failures_total",
    "Case ledger updates that failed and were skipped",
)

listing_fallback_counter = Counter(
    "contribution_search_fallback_total",
    "Listing searches served by the in-process fallback",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_moderation(action: str, succeeded: bool, count: int = 1) -> None:
    """Record moderation outcomes for monitoring approval and failure rates"""
    if count <= 0:
        return
    outcome = "success" if succeeded else "failure"
    moderation_counter.labels(action=action, outcome=outcome).inc(count)
