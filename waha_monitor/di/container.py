"""Application DI container.

Builds the gateway adapter components from configuration and provides them
to the HTTP boundary and the CLI.
"""

from __future__ import annotations

from contextlib import suppress
from typing import Callable, Optional

import httpx

from waha_monitor.core.config import MonitorConfig
from waha_monitor.gateways.http_executor import GatewayRequestExecutor
from waha_monitor.observability.metrics import ensure_metrics_server
from waha_monitor.observability.metrics_adapter import (
    MetricsAdapter,
    NoopMetricsAdapter,
    PrometheusMetricsAdapter,
)
from waha_monitor.services.avatar.avatar_resolver import AvatarResolver
from waha_monitor.services.identity.contact_resolver import ContactIdentityResolver
from waha_monitor.services.monitor_service import MonitorService
from waha_monitor.services.probing.path_resolver import PathResolver
from waha_monitor.services.sync.session_sync import SessionSyncRetryLoop


class Container:
    """Container building all primary services for the monitor app."""

    def __init__(
        self,
        *,
        config: MonitorConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> None:
        """Build and wire core components from configuration.

        Args:
            config: Validated MonitorConfig instance
            transport: Optional httpx transport (tests use MockTransport)
            on_progress: Receives session sync progress messages
        """
        self._config = config

        self._metrics: MetricsAdapter = (
            PrometheusMetricsAdapter() if config.enable_metrics else NoopMetricsAdapter()
        )

        self._executor = GatewayRequestExecutor(
            config, transport=transport, metrics=self._metrics
        )
        self._resolver = PathResolver(self._executor, metrics=self._metrics)
        self._avatar_resolver = AvatarResolver(self._resolver, metrics=self._metrics)
        self._contact_resolver = ContactIdentityResolver(
            self._resolver, self._avatar_resolver
        )
        self._sync_loop = SessionSyncRetryLoop(
            self._resolver,
            max_attempts=config.sync_max_attempts,
            retry_delay=config.sync_retry_delay_seconds,
            on_progress=on_progress,
            metrics=self._metrics,
        )
        self._service = MonitorService(
            config,
            self._executor,
            self._resolver,
            self._contact_resolver,
            self._sync_loop,
        )

    def initialize_runtime(self) -> None:
        """Perform side-effectful initialization (metrics server)."""
        if self._config.enable_metrics:
            with suppress(Exception):
                ensure_metrics_server(self._config.metrics_port)

    @property
    def config(self) -> MonitorConfig:
        return self._config

    def provide_metrics(self) -> MetricsAdapter:
        """Provide metrics adapter instance."""
        return self._metrics

    def provide_executor(self) -> GatewayRequestExecutor:
        """Provide gateway request executor."""
        return self._executor

    def provide_path_resolver(self) -> PathResolver:
        """Provide multi-path prober."""
        return self._resolver

    def provide_avatar_resolver(self) -> AvatarResolver:
        """Provide avatar resolver."""
        return self._avatar_resolver

    def provide_contact_resolver(self) -> ContactIdentityResolver:
        """Provide contact identity resolver."""
        return self._contact_resolver

    def provide_sync_loop(self) -> SessionSyncRetryLoop:
        """Provide session sync retry loop."""
        return self._sync_loop

    def provide_monitor_service(self) -> MonitorService:
        """Provide the monitor service facade."""
        return self._service
