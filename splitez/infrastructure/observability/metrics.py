"""Prometheus metrics for expense, settlement, membership and webhook activity"""

from prometheus_client import Counter, Histogram

# Ledger metrics
expense_counter = Counter(
    "splitez_expenses_recorded_total",
    "Expenses recorded",
    ["split_type"],  # equal | custom
)

settlement_created_counter = Counter(
    "splitez_settlements_created_total",
    "Directed settlements written",
)

settlement_paid_counter = Counter(
    "splitez_settlements_paid_total",
    "Settlements transitioned to paid",
    ["channel"],  # debtor | expense | payment_callback
)

partial_failure_counter = Counter(
    "splitez_partial_failures_total",
    "Multi-step operations that stopped after some writes",
    ["operation"],
)

# Membership metrics
membership_promotion_counter = Counter(
    "splitez_membership_promotions_total",
    "Pending invitations promoted to confirmed members",
)

membership_lookup_failure_counter = Counter(
    "splitez_membership_lookup_failures_total",
    "Account lookups that failed during membership resolution",
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "gamification_webhook_latency_seconds",
    "Gamification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "gamification_webhook_failures_total",
    "Failed gamification webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_expense(split_type: str, settlements_created: int) -> None:
    """Record expense and derived settlement counts"""
    expense_counter.labels(split_type=split_type).inc()
    if settlements_created:
        settlement_created_counter.inc(settlements_created)
