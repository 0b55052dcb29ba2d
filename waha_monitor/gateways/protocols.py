"""Gateway executor protocol (port).

Defines the minimal operation the probing and resolution services need from
the HTTP layer. ``GatewayRequestExecutor`` satisfies it; tests use scripted
fakes.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from waha_monitor.core.cancellation import CancellationToken
from waha_monitor.core.exceptions import ConfigurationError
from waha_monitor.models.results import GatewayEnvelope


class GatewayExecutorProtocol(Protocol):
    """Port for single authenticated gateway calls."""

    @property
    def configuration_error(self) -> Optional[ConfigurationError]:
        """The configuration problem detected at construction, if any."""
        ...

    async def execute(
        self,
        path: str,
        method: str = "GET",
        body: Optional[dict[str, Any]] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
        hint: Optional[str] = None,
    ) -> GatewayEnvelope:
        """Perform one call and return its envelope; must not raise for
        transport problems. May raise OperationCancelled."""
        ...
