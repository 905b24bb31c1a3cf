"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
ledger_operations_total = Counter(
    "ledger_operations_total",
    "Total credit ledger operations",
    ["operation"],  # signup, charge, credit, debit
)

ledger_credit_failures_total = Counter(
    "ledger_credit_failures_total",
    "Payments recorded without a matching account to credit (needs manual reconciliation)",
)

sweeper_runs_total = Counter(
    "sweeper_runs_total",
    "Reconciliation sweeper runs",
    ["status"],  # noop, deleted, failed
)

sweeper_deleted_blobs_total = Counter(
    "sweeper_deleted_blobs_total",
    "Orphaned blobs deleted by the reconciliation sweeper",
)

webhook_events_total = Counter(
    "webhook_events_total",
    "Webhook deliveries by source and outcome",
    ["source", "event_type", "status"],
)

blob_storage_requests_total = Counter(
    "blob_storage_requests_total",
    "Total blob storage provider requests",
    ["method", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
blob_storage_request_duration_seconds = Histogram(
    "blob_storage_request_duration_seconds",
    "Blob storage provider request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)


router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
