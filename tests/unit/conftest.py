"""Pytest configuration for unit tests."""

from typing import Any, Callable

import pytest
from fakes import GatewayStub, make_config

from waha_monitor.core.config import MonitorConfig
from waha_monitor.di.container import Container

_ENV_VARS = (
    "WAHA_INTERNAL_URL",
    "WAHA_API_KEY",
    "WAHA_TIMEOUT_MS",
    "ENVIRONMENT",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "ENABLE_METRICS",
    "SYNC_MAX_ATTEMPTS",
    "SYNC_RETRY_DELAY_SECONDS",
    "MESSAGES_PAGE_SIZE",
    "SESSION_NAME_PREFIX",
)


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch):
    """Keep host environment variables out of configuration."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def config() -> MonitorConfig:
    return make_config()


@pytest.fixture
def gateway_stub() -> GatewayStub:
    return GatewayStub()


@pytest.fixture
def container_factory(gateway_stub: GatewayStub) -> Callable[..., Container]:
    """Build a Container whose executor talks to ``gateway_stub``."""

    def _build(**overrides: Any) -> Container:
        return Container(
            config=make_config(**overrides), transport=gateway_stub.transport()
        )

    return _build
