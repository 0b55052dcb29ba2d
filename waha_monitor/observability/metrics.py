"""Prometheus metrics for the gateway monitor.

Defines counters and histograms and provides a helper to start the metrics
HTTP server when enabled via configuration.
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)


# Note: Keep label cardinality low. Never label by session, chat or contact id.
gateway_requests_total = Counter(
    "waha_gateway_requests_total",
    "Gateway HTTP calls by method and outcome",
    labelnames=("method", "outcome"),
)

gateway_request_duration_seconds = Histogram(
    "waha_gateway_request_duration_seconds",
    "Duration of gateway HTTP calls",
    labelnames=("method",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 15, 30),
)

probe_attempts_total = Counter(
    "waha_probe_attempts_total",
    "Endpoint template probes by operation and result",
    labelnames=("operation", "result"),
)

session_sync_attempts_total = Counter(
    "waha_session_sync_attempts_total",
    "Chat-list probes made by the session synchronization loop",
    labelnames=("outcome",),
)

avatar_lookups_total = Counter(
    "waha_avatar_lookups_total",
    "Avatar resolutions by result",
    labelnames=("result",),
)


_server_started: bool = False


def ensure_metrics_server(port: int) -> None:
    """Start Prometheus metrics HTTP server once per process.

    Args:
        port: Port to bind the metrics endpoint to.
    """
    global _server_started
    if _server_started:
        return
    try:
        start_http_server(port)
        _server_started = True
        logger.info("Prometheus metrics server started", extra={"port": port})
    except OSError as e:
        # Don't fail the service if metrics cannot be started
        logger.warning("Failed to start metrics server: %s", e, exc_info=True)
