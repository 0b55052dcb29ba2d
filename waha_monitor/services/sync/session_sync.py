"""Session synchronization retry loop.

A freshly started gateway session answers "not found" on its chat endpoints
until the chat list is populated. The loop re-probes the chat list a bounded
number of times with a fixed delay between attempts.

States::

    Probing -> Success
    Probing -> WaitingRetry -> Probing      (not found, attempts left)
    Probing -> Failed                       (not found on last attempt, or other failure)
    any     -> Cancelled
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, Sequence

from waha_monitor.core.cancellation import (
    CancellationToken,
    cancellable_sleep,
    check_cancelled,
)
from waha_monitor.core.exceptions import OperationCancelled
from waha_monitor.models.results import GatewayEnvelope, SyncOutcome, SyncState
from waha_monitor.observability.metrics_adapter import (
    MetricsAdapter,
    NoopMetricsAdapter,
)
from waha_monitor.services.probing.path_resolver import PathResolver
from waha_monitor.services.probing.templates import DEFAULT_TEMPLATES, ProbeOperation

logger = logging.getLogger(__name__)

Sleeper = Callable[[float, Optional[CancellationToken]], Awaitable[None]]
ProgressCallback = Callable[[str], None]


class SessionSyncRetryLoop:
    """Re-probes the chat list while the gateway session synchronizes."""

    def __init__(
        self,
        resolver: PathResolver,
        *,
        max_attempts: int = 5,
        retry_delay: float = 4.0,
        templates: Sequence[str] = DEFAULT_TEMPLATES[ProbeOperation.LIST_CHATS],
        sleeper: Sleeper = cancellable_sleep,
        on_progress: Optional[ProgressCallback] = None,
        metrics: Optional[MetricsAdapter] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._resolver = resolver
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._templates = tuple(templates)
        self._sleeper = sleeper
        self._on_progress = on_progress
        self._metrics: MetricsAdapter = metrics or NoopMetricsAdapter()

    async def run(
        self, session: str, *, cancel_token: Optional[CancellationToken] = None
    ) -> SyncOutcome:
        """Drive the loop to a terminal state.

        Returns:
            SyncOutcome in Success, Failed or Cancelled state. A cancelled run
            carries no envelope.
        """
        state = SyncState.PROBING
        attempt = 0
        envelope: Optional[GatewayEnvelope] = None

        try:
            while True:
                if state is SyncState.PROBING:
                    check_cancelled(cancel_token)
                    attempt += 1
                    envelope = await self._resolver.probe(
                        ProbeOperation.LIST_CHATS,
                        self._templates,
                        {"session": session},
                        cancel_token=cancel_token,
                    )
                    if envelope.success:
                        state = SyncState.SUCCESS
                    elif envelope.is_not_found and attempt < self._max_attempts:
                        state = SyncState.WAITING_RETRY
                    else:
                        state = SyncState.FAILED
                    self._metrics.inc_sync_attempt(state.value)

                elif state is SyncState.WAITING_RETRY:
                    self._report(
                        f"Session {session} is still synchronizing "
                        f"(attempt {attempt}/{self._max_attempts}); retrying in "
                        f"{self._retry_delay:g}s."
                    )
                    await self._sleeper(self._retry_delay, cancel_token)
                    state = SyncState.PROBING

                elif state is SyncState.SUCCESS:
                    logger.info(
                        "Session chat list available",
                        extra={"session": session, "attempts": attempt},
                    )
                    return SyncOutcome(state, attempt, envelope)

                else:
                    return self._failed(session, attempt, envelope)
        except OperationCancelled as e:
            logger.info(
                "Session sync cancelled",
                extra={"session": session, "attempts": attempt, "reason": str(e)},
            )
            self._metrics.inc_sync_attempt(SyncState.CANCELLED.value)
            return SyncOutcome(SyncState.CANCELLED, attempt, None, str(e))

    def _failed(
        self, session: str, attempt: int, envelope: Optional[GatewayEnvelope]
    ) -> SyncOutcome:
        if envelope is not None and envelope.is_not_found:
            message = (
                f"Session {session} did not finish synchronizing after "
                f"{attempt} attempts. Try again in a moment."
            )
            envelope = envelope.with_hint(f"{message} {envelope.diagnostic_hint or ''}".strip())
        else:
            message = (
                f"Chat list for session {session} failed on attempt {attempt}."
            )
        logger.warning(
            message,
            extra={
                "session": session,
                "attempts": attempt,
                "status": envelope.http_status if envelope else None,
                "error_kind": envelope.error_kind if envelope else None,
            },
        )
        return SyncOutcome(SyncState.FAILED, attempt, envelope, message)

    def _report(self, message: str) -> None:
        logger.info(message)
        if self._on_progress is not None:
            self._on_progress(message)
