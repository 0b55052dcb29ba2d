"""Metrics Adapter abstraction to decouple Prometheus from services.

Provides a minimal interface with a Prometheus-backed implementation and a
no-op fallback, so services and tests never touch prometheus_client directly.
"""

from __future__ import annotations

import logging
from typing import Protocol

from waha_monitor.observability.metrics import (
    avatar_lookups_total,
    gateway_request_duration_seconds,
    gateway_requests_total,
    probe_attempts_total,
    session_sync_attempts_total,
)

logger = logging.getLogger(__name__)


class MetricsAdapter(Protocol):
    """Abstract metrics interface used by the gateway components."""

    def observe_request(self, method: str, outcome: str, duration: float) -> None:
        """Record one gateway HTTP call."""

    def inc_probe(self, operation: str, result: str) -> None:
        """Record one template probe (hit, miss, not_found, abort)."""

    def inc_sync_attempt(self, outcome: str) -> None:
        """Record one session synchronization attempt."""

    def inc_avatar_lookup(self, result: str) -> None:
        """Record one avatar resolution (found, missing)."""


class PrometheusMetricsAdapter:
    """Prometheus-backed metrics adapter.

    Handles exceptions internally to avoid impacting the main workflow.
    """

    def observe_request(self, method: str, outcome: str, duration: float) -> None:
        try:
            gateway_requests_total.labels(method=method, outcome=outcome).inc()
            gateway_request_duration_seconds.labels(method=method).observe(duration)
        except Exception:
            logger.debug(
                "Prometheus observe_request failed (non-fatal)",
                extra={"method": method, "outcome": outcome},
                exc_info=True,
            )

    def inc_probe(self, operation: str, result: str) -> None:
        try:
            probe_attempts_total.labels(operation=operation, result=result).inc()
        except Exception:
            logger.debug(
                "Prometheus inc_probe failed (non-fatal)",
                extra={"operation": operation, "result": result},
                exc_info=True,
            )

    def inc_sync_attempt(self, outcome: str) -> None:
        try:
            session_sync_attempts_total.labels(outcome=outcome).inc()
        except Exception:
            logger.debug(
                "Prometheus inc_sync_attempt failed (non-fatal)",
                extra={"outcome": outcome},
                exc_info=True,
            )

    def inc_avatar_lookup(self, result: str) -> None:
        try:
            avatar_lookups_total.labels(result=result).inc()
        except Exception:
            logger.debug(
                "Prometheus inc_avatar_lookup failed (non-fatal)",
                extra={"result": result},
                exc_info=True,
            )


class NoopMetricsAdapter:
    """No-op metrics adapter (for tests or when metrics are disabled)."""

    def observe_request(self, method: str, outcome: str, duration: float) -> None:
        return None

    def inc_probe(self, operation: str, result: str) -> None:
        return None

    def inc_sync_attempt(self, outcome: str) -> None:
        return None

    def inc_avatar_lookup(self, result: str) -> None:
        return None
