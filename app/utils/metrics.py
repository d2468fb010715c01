"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
purchases_initiated_total = Counter(
    "purchases_initiated_total",
    "Total purchase attempts opened (pending records created)",
)

purchases_completed_total = Counter(
    "purchases_completed_total",
    "Total purchases moved to completed",
    ["method"],  # gateway, subscription_entitlement
)

purchases_failed_total = Counter(
    "purchases_failed_total",
    "Total purchases moved to failed",
    ["reason"],  # verification_failed, gateway_unavailable, gateway_reported, abandoned
)

purchases_refunded_total = Counter(
    "purchases_refunded_total",
    "Total purchases refunded by admins",
)

purchases_expired_swept_total = Counter(
    "purchases_expired_swept_total",
    "Total completed purchases relabelled as expired by the sweep",
)

access_checks_total = Counter(
    "access_checks_total",
    "Total access decisions",
    ["granted", "reason"],
)

payment_gateway_requests_total = Counter(
    "payment_gateway_requests_total",
    "Total payment gateway API requests",
    ["operation", "status"],
)

webhook_events_total = Counter(
    "webhook_events_total",
    "Total payment gateway webhook deliveries",
    ["event", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
payment_gateway_request_duration_seconds = Histogram(
    "payment_gateway_request_duration_seconds",
    "Payment gateway API request duration",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1, 2, 5, 10],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
