"""Prometheus metric definitions shared across services."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


checkout_requests_total = Counter(
    "checkout_requests_total",
    "Checkout initiation requests by outcome",
    ["service", "mode", "outcome"],
)
callback_outcomes_total = Counter(
    "callback_outcomes_total",
    "Reconciliation outcomes by terminal state and reason code",
    ["service", "source", "state", "code"],
)
gateway_request_duration_seconds = Histogram(
    "gateway_request_duration_seconds",
    "Processor API call duration seconds",
    ["service", "operation"],
)
gateway_errors_total = Counter(
    "gateway_errors_total",
    "Processor API calls that ended in a typed failure",
    ["service", "operation", "error_type"],
)
retries_total = Counter("retries_total", "Retry count", ["service", "dependency"])
duplicate_callbacks_skipped_total = Counter(
    "duplicate_callbacks_skipped_total",
    "Callbacks short-circuited because the intent was already committed",
    ["service", "source"],
)
webhook_signature_rejected_total = Counter(
    "webhook_signature_rejected_total",
    "Webhook deliveries rejected by signature verification",
    ["service"],
)
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


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
