"""Multi-path prober.

Given a logical operation, tries an ordered list of endpoint templates until
one both succeeds and yields data the normalizer recognizes. Success
short-circuits the remaining templates; a not-found miss or an unrecognized
payload moves on; any other failure aborts the loop.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Sequence

from waha_monitor.core.cancellation import CancellationToken
from waha_monitor.core.exceptions import PayloadParseError, ProviderShapeError
from waha_monitor.gateways.protocols import GatewayExecutorProtocol
from waha_monitor.models.results import GatewayEnvelope
from waha_monitor.observability.metrics_adapter import (
    MetricsAdapter,
    NoopMetricsAdapter,
)
from waha_monitor.services.normalizers.payloads import (
    extract_avatar,
    normalize_chats,
    normalize_contact_record,
    normalize_messages,
)
from waha_monitor.services.probing.templates import ProbeOperation, render_template

logger = logging.getLogger(__name__)

Recognizer = Callable[[GatewayEnvelope], Optional[Any]]


def _health_payload(envelope: GatewayEnvelope) -> Any:
    # Any 2xx answer is healthy; the body is passed through as-is.
    return envelope.raw_payload if envelope.raw_payload is not None else {}


RECOGNIZERS: Mapping[ProbeOperation, Recognizer] = {
    ProbeOperation.LIST_CHATS: lambda env: normalize_chats(env.raw_payload),
    ProbeOperation.LIST_MESSAGES: lambda env: normalize_messages(env.raw_payload),
    ProbeOperation.GET_CONTACT: lambda env: normalize_contact_record(env.raw_payload),
    ProbeOperation.GET_AVATAR: extract_avatar,
    ProbeOperation.HEALTH: _health_payload,
}


class PathResolver:
    """Sequential template prober on top of a gateway executor."""

    def __init__(
        self,
        executor: GatewayExecutorProtocol,
        *,
        recognizers: Optional[Mapping[ProbeOperation, Recognizer]] = None,
        metrics: Optional[MetricsAdapter] = None,
    ) -> None:
        self._executor = executor
        self._recognizers = dict(RECOGNIZERS)
        if recognizers:
            self._recognizers.update(recognizers)
        self._metrics: MetricsAdapter = metrics or NoopMetricsAdapter()

    async def probe(
        self,
        operation: ProbeOperation,
        templates: Sequence[str],
        args: Mapping[str, object],
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GatewayEnvelope:
        """Probe ``templates`` in order for ``operation``.

        Returns:
            The first recognized envelope (canonical value in ``data``), the
            first aborting failure, or the last envelope with an aggregated hint

        Raises:
            OperationCancelled: If the caller cancelled between or during calls
        """
        recognize = self._recognizers[operation]
        last: Optional[GatewayEnvelope] = None

        for template in templates:
            path = render_template(template, args)
            envelope = await self._executor.execute(
                path, cancel_token=cancel_token, hint=f"Attempted path: {path}."
            )

            if envelope.success:
                data = recognize(envelope)
                if data is not None:
                    self._metrics.inc_probe(operation.value, "hit")
                    logger.debug(
                        "Probe matched",
                        extra={"operation": operation.value, "path": path},
                    )
                    return envelope.with_data(data)
                self._metrics.inc_probe(operation.value, "miss")
                if envelope.error_kind == PayloadParseError.kind:
                    last = envelope.as_failure(
                        PayloadParseError.kind, envelope.diagnostic_hint or ""
                    )
                else:
                    last = envelope.as_failure(
                        ProviderShapeError.kind,
                        f"Gateway response from {path} was successful but the "
                        "data format was not recognized.",
                    )
                continue

            if envelope.is_not_found:
                self._metrics.inc_probe(operation.value, "not_found")
                last = envelope
                continue

            self._metrics.inc_probe(operation.value, "abort")
            logger.info(
                "Probe aborted by non-recoverable gateway answer",
                extra={
                    "operation": operation.value,
                    "path": path,
                    "status": envelope.http_status,
                    "error_kind": envelope.error_kind,
                },
            )
            return envelope

        if last is None:
            return GatewayEnvelope.failure(
                http_status=500,
                target_endpoint="N/A",
                error_kind=ProviderShapeError.kind,
                hint=f"No endpoint templates configured for {operation.value}.",
            )

        summary = (
            f"All {len(templates)} candidate endpoints for {operation.value} failed. "
            f"Last attempt on {last.target_endpoint} returned status {last.http_status}."
        )
        if last.diagnostic_hint:
            summary = f"{summary} {last.diagnostic_hint}"
        return last.with_hint(summary)
