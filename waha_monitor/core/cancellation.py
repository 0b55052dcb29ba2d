"""Cooperative cancellation for gateway operations.

A ``CancellationToken`` is threaded explicitly through every call chain. It is
checked immediately before each network call and while sleeping between
retries. Signal handlers (SIGINT/SIGTERM) can be bound to a token so that the
CLI abandons an in-flight operation cleanly.
"""

import asyncio
import logging
import signal
import sys
from types import FrameType
from typing import Optional

from waha_monitor.core.exceptions import OperationCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cancellation signal shared by one unit of work."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Request cancellation. Idempotent."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            logger.debug("Cancellation requested", extra={"reason": reason})

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if cancellation has been requested."""
        if self._event.is_set():
            raise OperationCancelled(self._reason or "cancelled")

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds unless cancelled first.

        Raises:
            OperationCancelled: If cancellation happens before or during the sleep
        """
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise OperationCancelled(self._reason or "cancelled")


async def cancellable_sleep(
    delay: float, cancel_token: Optional[CancellationToken] = None
) -> None:
    """Default sleeper used by retry loops; honours an optional token."""
    if cancel_token is None:
        await asyncio.sleep(delay)
        return
    await cancel_token.sleep(delay)


def check_cancelled(cancel_token: Optional[CancellationToken]) -> None:
    """Raise OperationCancelled when ``cancel_token`` is set."""
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()


def bind_signals(cancel_token: CancellationToken) -> None:
    """Cancel ``cancel_token`` on SIGTERM (Docker stop) and SIGINT (Ctrl+C).

    Must be called from a running event loop. Windows doesn't support loop
    signal handlers, so plain ``signal.signal`` is used there for SIGINT.
    """

    def _handler(signal_name: str) -> None:
        logger.info(
            f"Received {signal_name}, cancelling current operation",
            extra={"signal": signal_name},
        )
        cancel_token.cancel(f"received {signal_name}")

    if sys.platform == "win32":

        def _sync_handler(signum: int, frame: Optional[FrameType]) -> None:
            _handler(signal.Signals(signum).name)

        signal.signal(signal.SIGINT, _sync_handler)
        return

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _handler, sig.name)
