"""
Prometheus metrics for the admin service.

This module provides:
- HTTP request counter (method, path, status)
- Request latency histogram (method, path)
- Webhook per-message outcome counter (result)
- Outbound message counter (source, result)

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

# result: stored, store_failed, ignored, auto_replied, reply_failed
webhook_messages_total = Counter(
    "webhook_messages_total",
    "Inbound webhook messages by processing outcome",
    labelnames=["result"]
)

# source: ai, manual; result: sent, failed
outbound_messages_total = Counter(
    "outbound_messages_total",
    "Outbound WhatsApp messages",
    labelnames=["source", "result"]
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)


# =============================================================================
# Helper Functions
# =============================================================================

def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    normalized_path = path.split("?")[0]

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_webhook_message(result: str) -> None:
    webhook_messages_total.labels(result=result).inc()


def record_outbound_message(source: str, result: str) -> None:
    outbound_messages_total.labels(source=source, result=result).inc()


def get_metrics() -> bytes:
    """Generate Prometheus exposition format metrics."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
