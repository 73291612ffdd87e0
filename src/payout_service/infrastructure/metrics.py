from prometheus_client import Counter, Gauge, Histogram


PAYOUT_REQUESTS_TOTAL = Counter(
    "payout_requests_total",
    "Total number of payout submissions by outcome",
    ["outcome"],
)

PAYOUT_REQUESTED_AMOUNT = Histogram(
    "payout_requested_amount",
    "Amount of accepted payout requests",
    ["currency"],
    buckets=[10, 50, 100, 500, 1000, 5000, 10000, 50000, 100000],
)

PAYOUT_APPROVALS_TOTAL = Counter(
    "payout_approvals_total",
    "Total number of admin payout approvals by outcome",
    ["outcome"],
)

LEDGER_ENTRIES_TOTAL = Counter(
    "ledger_entries_total",
    "Total ledger entries appended",
    ["entry_type"],
)

RATE_LIMIT_EXCEEDED_TOTAL = Counter(
    "rate_limit_exceeded_total",
    "Total number of rate limited requests",
    ["identifier_type"],
)

OUTBOX_EVENTS_PUBLISHED = Counter(
    "outbox_events_published_total",
    "Total outbox events published",
    ["event_type"],
)

OUTBOX_EVENTS_FAILED = Counter(
    "outbox_events_failed_total",
    "Total outbox events that failed to publish",
    ["event_type"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    ["method", "route", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "route", "status_code"],
)

OUTBOX_BACKLOG = Gauge(
    "outbox_backlog_events",
    "Outbox events not yet published",
)
