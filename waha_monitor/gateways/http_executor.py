"""HTTP executor for the WhatsApp gateway.

Issues a single authenticated request with a timeout and folds every outcome
(configuration problem, timeout, DNS/connection failure, HTTP status, JSON or
binary body) into a ``GatewayEnvelope``. Only caller cancellation escapes as
an exception.
"""

from __future__ import annotations

import asyncio
import json
import logging
import socket
import time
from typing import Any, Optional

import httpx

from waha_monitor.core.cancellation import CancellationToken, check_cancelled
from waha_monitor.core.config import MonitorConfig
from waha_monitor.core.exceptions import (
    ConfigurationError,
    GatewayPermissionError,
    NetworkError,
    OperationCancelled,
    PayloadParseError,
    kind_for_status,
)
from waha_monitor.models.results import GatewayEnvelope
from waha_monitor.observability.metrics_adapter import (
    MetricsAdapter,
    NoopMetricsAdapter,
)

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Api-Key"
BINARY_CONTENT_TYPES = ("application/octet-stream",)

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)
_REFUSED_MARKERS = ("connection refused", "actively refused")


def _is_binary(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return content_type.startswith("image/") or content_type in BINARY_CONTENT_TYPES


def _exception_chain(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: Optional[BaseException] = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def classify_network_error(exc: BaseException, timeout_seconds: float) -> str:
    """Operator-facing hint for a transport-level failure."""
    if isinstance(exc, httpx.TimeoutException):
        return timeout_hint(timeout_seconds)
    chain = _exception_chain(exc)
    text = " ".join(str(e) for e in chain).lower()
    if any(isinstance(e, socket.gaierror) for e in chain) or any(
        marker in text for marker in _DNS_MARKERS
    ):
        return (
            "Gateway host could not be resolved. Make sure the hostname in "
            "WAHA_INTERNAL_URL is correct."
        )
    if any(isinstance(e, ConnectionRefusedError) for e in chain) or any(
        marker in text for marker in _REFUSED_MARKERS
    ):
        return (
            "Connection refused. Make sure the gateway service is running at the "
            "configured address."
        )
    return f"Network error while contacting the gateway: {type(exc).__name__}."


def timeout_hint(timeout_seconds: float) -> str:
    return (
        f"Gateway request exceeded the {timeout_seconds:g} second timeout. "
        "Make sure the service is reachable."
    )


class GatewayRequestExecutor:
    """Single-call HTTP client for the gateway.

    A fresh ``httpx.AsyncClient`` is used per call so that concurrent
    invocations share no state. Tests inject an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        config: MonitorConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsAdapter] = None,
    ) -> None:
        self._timeout = config.request_timeout_seconds
        self._transport = transport
        self._metrics: MetricsAdapter = metrics or NoopMetricsAdapter()
        self._base_url: Optional[str] = None
        self._api_key: Optional[str] = None
        self._configuration_error: Optional[ConfigurationError] = None
        try:
            self._base_url, self._api_key = config.require_gateway()
        except ConfigurationError as e:
            self._configuration_error = e
            logger.error("Gateway is not configured", extra={"error_kind": e.kind})

    @property
    def configuration_error(self) -> Optional[ConfigurationError]:
        return self._configuration_error

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def build_url(self, path: str) -> str:
        """Join the base URL and ``path`` with exactly one slash."""
        return f"{self._base_url}/{path.lstrip('/')}"

    async def execute(
        self,
        path: str,
        method: str = "GET",
        body: Optional[dict[str, Any]] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
        hint: Optional[str] = None,
    ) -> GatewayEnvelope:
        """Perform one gateway call.

        Args:
            path: Path relative to the gateway base URL (query string allowed)
            method: HTTP method
            body: Optional JSON body
            cancel_token: Checked before the call and raced against it
            hint: Initial diagnostic hint carried by a successful envelope

        Returns:
            Envelope describing the outcome

        Raises:
            OperationCancelled: If the caller cancelled before or during the call
        """
        if self._configuration_error is not None:
            self._metrics.observe_request(method, "configuration", 0.0)
            return GatewayEnvelope.failure(
                http_status=500,
                target_endpoint="N/A",
                error_kind=ConfigurationError.kind,
                hint=str(self._configuration_error),
            )

        check_cancelled(cancel_token)
        target = self.build_url(path)
        started = time.monotonic()

        request_task = asyncio.ensure_future(self._send(method, target, body))
        waiters: set[asyncio.Future[Any]] = {request_task}
        cancel_task: Optional[asyncio.Future[Any]] = None
        if cancel_token is not None:
            cancel_task = asyncio.ensure_future(cancel_token.wait())
            waiters.add(cancel_task)
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=self._timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if cancel_task is not None:
                cancel_task.cancel()
            if not request_task.done():
                request_task.cancel()
                await asyncio.gather(request_task, return_exceptions=True)

        duration = time.monotonic() - started
        if request_task not in done:
            if cancel_token is not None and cancel_token.cancelled:
                self._metrics.observe_request(method, "cancelled", duration)
                raise OperationCancelled(cancel_token.reason or "cancelled")
            self._metrics.observe_request(method, "timeout", duration)
            logger.warning(
                "Gateway request timed out",
                extra={"method": method, "target": target, "timeout": self._timeout},
            )
            return GatewayEnvelope.failure(
                http_status=500,
                target_endpoint=target,
                error_kind=NetworkError.kind,
                hint=timeout_hint(self._timeout),
            )

        try:
            response: httpx.Response = request_task.result()
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            outcome = "timeout" if isinstance(e, httpx.TimeoutException) else "network"
            self._metrics.observe_request(method, outcome, duration)
            logger.warning(
                "Gateway request failed at network level",
                extra={"method": method, "target": target, "error_class": type(e).__name__},
            )
            return GatewayEnvelope.failure(
                http_status=500,
                target_endpoint=target,
                error_kind=NetworkError.kind,
                hint=classify_network_error(e, self._timeout),
            )

        envelope = self._to_envelope(response, target, hint)
        self._metrics.observe_request(
            method, "ok" if envelope.success else "http_error", duration
        )
        logger.debug(
            "Gateway call completed",
            extra={
                "method": method,
                "target": target,
                "status": envelope.http_status,
                "duration_ms": round(duration * 1000, 1),
            },
        )
        return envelope

    async def _send(
        self, method: str, url: str, body: Optional[dict[str, Any]]
    ) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, image/*;q=0.9, */*;q=0.5",
            API_KEY_HEADER: self._api_key or "",
        }
        async with httpx.AsyncClient(
            transport=self._transport, timeout=httpx.Timeout(self._timeout)
        ) as client:
            return await client.request(method, url, json=body, headers=headers)

    def _to_envelope(
        self, response: httpx.Response, target: str, hint: Optional[str]
    ) -> GatewayEnvelope:
        status = response.status_code
        raw_content_type = response.headers.get("content-type", "")
        content_type = raw_content_type.split(";")[0].strip().lower() or None
        error_kind = kind_for_status(status)
        success = error_kind is None

        if _is_binary(content_type):
            return GatewayEnvelope(
                success=success,
                http_status=status,
                target_endpoint=target,
                diagnostic_hint=hint if success else self._status_hint(status),
                error_kind=error_kind,
                content_type=content_type,
                binary_body=response.content,
            )

        payload: Any = None
        if response.content.strip():
            try:
                payload = json.loads(response.content)
            except ValueError:
                payload = None
                if success:
                    error_kind = PayloadParseError.kind
                    hint = (
                        f"Gateway answered {status} from {target} but the body is not "
                        "valid JSON (successful transport, unparseable body)."
                    )

        return GatewayEnvelope(
            success=success,
            http_status=status,
            target_endpoint=target,
            raw_payload=payload,
            diagnostic_hint=hint if success else self._status_hint(status),
            error_kind=error_kind,
            content_type=content_type,
        )

    @staticmethod
    def _status_hint(status: int) -> str:
        if kind_for_status(status) == GatewayPermissionError.kind:
            return (
                f"Gateway rejected the request with HTTP {status}. "
                "Check WAHA_API_KEY."
            )
        return f"Gateway answered with HTTP {status}."
