"""Prometheus metrics for transfer flow, compliance gating, rates and partner calls"""

from prometheus_client import Counter, Histogram

# Transfer metrics
transfer_initiated_counter = Counter(
    "remit_transfers_initiated_total",
    "Transfers created",
    ["corridor"],
)

transfer_transition_counter = Counter(
    "remit_transfer_transitions_total",
    "Transfer status transitions",
    ["to_status"],
)

# Compliance metrics
manual_review_counter = Counter(
    "remit_manual_reviews_total",
    "Transfers held in compliance_check for manual review",
    ["corridor"],
)

compliance_check_timeout_counter = Counter(
    "remit_compliance_check_timeouts_total",
    "Screening checks that timed out or errored",
    ["check_type"],
)

# Exchange rate metrics
rate_cache_hits_counter = Counter(
    "remit_rate_cache_hits_total",
    "Exchange rate reads served from cache",
)

rate_cache_misses_counter = Counter(
    "remit_rate_cache_misses_total",
    "Exchange rate reads that required a provider fetch",
)

rate_fetch_failures_counter = Counter(
    "remit_rate_fetch_failures_total",
    "Failed rate provider fetches",
    ["pair"],
)

# Partner metrics
partner_dispatch_latency_histogram = Histogram(
    "remit_partner_dispatch_latency_seconds",
    "Partner send call response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0],
)

partner_failure_counter = Counter(
    "remit_partner_failures_total",
    "Failed or timed out partner calls",
    ["partner", "reason"],  # rejected | error | timeout | no_partner
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(to_status: str) -> None:
    transfer_transition_counter.labels(to_status=to_status).inc()
