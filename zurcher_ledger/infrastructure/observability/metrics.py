"""Prometheus metrics for monitoring payments, reversals, allocations and attachment storage"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Fixed-expense payment metrics
payment_counter = Counter(
    "zurcher_payments_recorded_total",
    "Fixed-expense payment attempts",
    ["outcome"],  # recorded | rejected_amount | rejected_duplicate | rejected_funds | failed
)

payment_amount_histogram = Histogram(
    "zurcher_payment_amount_dollars",
    "Recorded fixed-expense payment amounts",
    buckets=[50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

reversal_counter = Counter(
    "zurcher_payment_reversals_total",
    "Compensating rollbacks of recorded payments",
    ["kind"],  # fixed_expense | credit_account
)

paid_amount_clamp_counter = Counter(
    "zurcher_paid_amount_clamped_total",
    "Reversals that would have driven paid_amount below zero",
)

# Revolving-account metrics
credit_posting_counter = Counter(
    "zurcher_credit_postings_total",
    "Postings on revolving accounts",
    ["transaction_type"],  # charge | payment | interest | reversal
)

allocation_charges_histogram = Histogram(
    "zurcher_allocation_charges_touched",
    "Charges touched by a single revolving-account payment",
    buckets=[1, 2, 3, 5, 10, 25, 50],
)

# Attachment storage metrics
attachment_latency_histogram = Histogram(
    "attachment_storage_latency_seconds",
    "Attachment storage response time",
    ["operation"],  # upload | delete
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

attachment_failure_counter = Counter(
    "attachment_storage_failures_total",
    "Failed attachment storage calls",
    ["operation"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(outcome: str, amount: Decimal | None = None) -> None:
    """Record payment outcome; amounts are observed only for recorded payments"""
    payment_counter.labels(outcome=outcome).inc()
    if outcome == "recorded" and amount is not None:
        payment_amount_histogram.observe(float(amount))


def record_allocation(charges_touched: int) -> None:
    allocation_charges_histogram.observe(charges_touched)
