"""Prometheus metric definitions shared across the service."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
payment_events_total = Counter(
    "payment_events_total",
    "Payment webhook events by result",
    ["service", "result"],
)
deliveries_total = Counter(
    "deliveries_total",
    "Delivery attempts by source and outcome",
    ["service", "source", "outcome"],
)
delivery_step_failures_total = Counter(
    "delivery_step_failures_total",
    "Failed delivery steps",
    ["service", "step"],
)
delivery_latency_seconds = Histogram(
    "delivery_latency_seconds",
    "Delivery orchestration latency seconds",
    ["service", "source"],
)
duplicate_deliveries_skipped_total = Counter(
    "duplicate_deliveries_skipped_total",
    "Deliveries skipped because the receipt or claim already exists",
    ["service", "source"],
)
ownership_checks_total = Counter(
    "ownership_checks_total",
    "Inventory ownership queries by result",
    ["service", "result"],
)
store_flush_total = Counter(
    "store_flush_total",
    "Record store flushes by result",
    ["service", "result"],
)
retries_total = Counter("retries_total", "Retry count", ["service", "dependency"])


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
