"""Configuration management using Pydantic BaseSettings.

This module provides strongly-typed configuration with automatic validation
and environment variable loading. The gateway URL and API key are optional at
load time so that the service can start and report a setup hint; every
gateway operation checks them through ``require_gateway()``.
"""

from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from waha_monitor.core.exceptions import ConfigurationError

CLOUD_WORKSTATIONS_MARKER = "cloudworkstations.dev"


class MonitorConfig(BaseSettings):
    """Gateway monitor configuration with Pydantic validation.

    All settings are loaded from environment variables with type validation.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # === Gateway ===
    waha_internal_url: Optional[str] = Field(
        default=None,
        description="Base URL of the WhatsApp HTTP gateway (e.g. http://waha:3000)",
    )
    waha_api_key: Optional[SecretStr] = Field(
        default=None, description="API key sent to the gateway as X-Api-Key"
    )
    waha_timeout_ms: int = Field(
        default=15000,
        ge=100,
        le=300000,
        description="Per-request timeout in milliseconds",
    )

    # === Session sync retry ===
    sync_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum chat-list probes while a session is synchronizing",
    )
    sync_retry_delay_seconds: float = Field(
        default=4.0,
        ge=0.0,
        le=120.0,
        description="Delay between synchronization probes",
    )

    # === Operations ===
    messages_page_size: int = Field(
        default=50, ge=1, le=1000, description="Default page size for message lists"
    )
    session_name_prefix: str = Field(
        default="session-",
        min_length=1,
        description="Prefix used to derive a session name from a user id on start",
    )

    # === Environment ===
    environment: str = Field(
        default="development",
        pattern=r"^(development|staging|production)$",
        description="Deployment environment, changes configuration hints",
    )

    # === Logging ===
    log_level: str = Field(
        default="INFO",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level",
    )
    log_format: str = Field(
        default="json",
        pattern=r"^(json|text)$",
        description="Log output format: json or text",
    )
    service_name: str = Field(
        default="waha-monitor",
        description="Service name to include in logs and metrics",
    )
    loki_url: Optional[str] = Field(
        default=None, description="Loki URL for log shipping (e.g., http://loki:3100)"
    )

    # === Observability ===
    enable_metrics: bool = Field(
        default=False, description="Enable Prometheus metrics export"
    )
    metrics_port: int = Field(
        default=9090, ge=1024, le=65535, description="Port for metrics HTTP server"
    )

    # === HTTP boundary ===
    api_host: str = Field(default="0.0.0.0", description="Bind address for serve")
    api_port: int = Field(
        default=8000, ge=1, le=65535, description="Bind port for serve"
    )

    @field_validator("waha_internal_url", mode="before")
    @classmethod
    def blank_url_is_unset(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank strings as missing so the configuration check fails fast."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("waha_api_key", mode="before")
    @classmethod
    def blank_key_is_unset(cls, v: object) -> object:
        """Strip the key; a blank key counts as missing."""
        if isinstance(v, SecretStr):
            v = v.get_secret_value()
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @property
    def request_timeout_seconds(self) -> float:
        """Per-request timeout in seconds."""
        return self.waha_timeout_ms / 1000

    @property
    def is_gateway_configured(self) -> bool:
        """True when both the base URL and the API key are set."""
        return self.waha_internal_url is not None and self.waha_api_key is not None

    def configuration_hint(self) -> str:
        """Setup-oriented hint for a missing gateway configuration."""
        if self.environment == "production":
            return (
                "Server configuration error: WAHA_INTERNAL_URL or WAHA_API_KEY is "
                "not set in your hosting environment."
            )
        return (
            "Server configuration error: WAHA_INTERNAL_URL or WAHA_API_KEY is not "
            "set in your .env file."
        )

    def require_gateway(self) -> tuple[str, str]:
        """Return ``(base_url, api_key)`` for the gateway.

        Raises:
            ConfigurationError: If either value is missing
        """
        url, key = self.waha_internal_url, self.waha_api_key
        if url is None or key is None:
            raise ConfigurationError(self.configuration_hint(), status=500)
        return url.rstrip("/"), key.get_secret_value()

    def describe(self) -> dict[str, object]:
        """Report configuration status without leaking secret values."""
        url = self.waha_internal_url or ""
        key = self.waha_api_key.get_secret_value() if self.waha_api_key else ""
        info: dict[str, object] = {
            "configured": self.is_gateway_configured,
            "urlSet": bool(url),
            "keySet": bool(key),
            "keyLength": len(key),
        }
        if url and CLOUD_WORKSTATIONS_MARKER in url:
            info["warning"] = (
                "The configured URL is a Cloud Workstations preview address. "
                "Server-to-server calls to it often fail (for example with 401) "
                "because of network restrictions; use a stable address reachable "
                "from the server, such as an internal IP or service name."
            )
        return info
