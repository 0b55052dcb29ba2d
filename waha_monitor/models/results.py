"""Result models for gateway operations.

``GatewayEnvelope`` is the ephemeral, per-call result every component passes
around. ``ApiEnvelope`` is its public shape on the HTTP boundary and CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from waha_monitor.core.exceptions import (
    ERRORS_BY_KIND,
    EndpointNotFoundError,
    GatewayError,
)


@dataclass(frozen=True)
class GatewayEnvelope:
    """Uniform result of one gateway call (or of a probe over several calls).

    Attributes:
        success: True for a 2xx answer that was usable
        http_status: Gateway status, or 500 for local/network failures
        target_endpoint: Full URL called, ``"N/A"`` when nothing was called
        raw_payload: Parsed JSON body, None when absent or unparseable
        diagnostic_hint: Operator-facing explanation
        error_kind: ``GatewayError.kind`` of the failure, None on success
        content_type: Response media type without parameters
        binary_body: Raw body of image/octet-stream responses
        data: Canonical value attached by the path resolver
    """

    success: bool
    http_status: int
    target_endpoint: str
    raw_payload: Any = None
    diagnostic_hint: Optional[str] = None
    error_kind: Optional[str] = None
    content_type: Optional[str] = None
    binary_body: Optional[bytes] = field(default=None, repr=False)
    data: Any = None

    @property
    def is_not_found(self) -> bool:
        return not self.success and self.error_kind == EndpointNotFoundError.kind

    def with_hint(self, hint: Optional[str]) -> GatewayEnvelope:
        return replace(self, diagnostic_hint=hint)

    def with_data(self, data: Any) -> GatewayEnvelope:
        return replace(self, data=data)

    def as_failure(self, error_kind: str, hint: str) -> GatewayEnvelope:
        return replace(self, success=False, error_kind=error_kind, diagnostic_hint=hint)

    @classmethod
    def failure(
        cls,
        *,
        http_status: int,
        target_endpoint: str,
        error_kind: str,
        hint: str,
    ) -> GatewayEnvelope:
        return cls(
            success=False,
            http_status=http_status,
            target_endpoint=target_endpoint,
            diagnostic_hint=hint,
            error_kind=error_kind,
        )


class ApiEnvelope(BaseModel):
    """Public response shape: ``{ ok, status, targetUrl, data?, hint? }``."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = Field(..., description="True when the gateway call succeeded")
    status: int = Field(..., description="Gateway HTTP status or 500")
    target_url: str = Field(default="N/A", alias="targetUrl")
    data: Any = Field(default=None, description="Canonical data or passthrough")
    hint: Optional[str] = Field(default=None, description="Diagnostic hint")
    error_kind: Optional[str] = Field(default=None, exclude=True)

    @classmethod
    def from_gateway(
        cls, envelope: GatewayEnvelope, *, data: Any = None
    ) -> ApiEnvelope:
        """Build from a gateway envelope; ``data`` overrides the envelope value.

        Without an override, canonical ``data`` wins over ``raw_payload``.
        """
        if data is None:
            data = envelope.data if envelope.data is not None else envelope.raw_payload
        return cls(
            ok=envelope.success,
            status=envelope.http_status,
            target_url=envelope.target_endpoint,
            data=data,
            hint=envelope.diagnostic_hint,
            error_kind=envelope.error_kind if not envelope.success else None,
        )

    def raise_for_error(self) -> None:
        """Raise the typed GatewayError for a failed envelope; no-op when ok."""
        if self.ok:
            return
        error_cls = ERRORS_BY_KIND.get(self.error_kind or "", GatewayError)
        raise error_cls(
            self.hint or f"Gateway call failed with {self.status}",
            status=self.status,
            target=self.target_url,
        )

    @property
    def transport_status(self) -> int:
        """Status for the adapter's own caller: 500 only for internal errors."""
        return 500 if self.status == 500 else 200

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys; absent data and hint are dropped."""
        payload = self.model_dump(mode="json", by_alias=True)
        return {key: value for key, value in payload.items() if value is not None}


class SyncState(str, Enum):
    """States of the session synchronization loop."""

    PROBING = "Probing"
    WAITING_RETRY = "WaitingRetry"
    SUCCESS = "Success"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class SyncOutcome:
    """Terminal result of a session synchronization loop run."""

    state: SyncState
    attempts: int
    envelope: Optional[GatewayEnvelope] = None
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is SyncState.SUCCESS
