"""Custom exception types for gateway errors and their categorization.

Every failure class carries a short ``kind`` string. The gateway executor
never raises these for transport problems; it records the ``kind`` in the
result envelope instead, and callers that want exceptions (the CLI) convert
an envelope back with ``ApiEnvelope.raise_for_error()``.
"""

from typing import Optional


class GatewayError(Exception):
    """Base exception for all gateway-related errors."""

    kind = "gateway"

    def __init__(  # noqa: B042
        self,
        message: str,
        *,
        status: Optional[int] = None,
        target: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Initialize gateway error with message and optional request context."""
        super().__init__(message)
        self.status = status
        self.target = target
        self.correlation_id = correlation_id


class ConfigurationError(GatewayError):
    """Gateway base URL or API key is not configured.

    Fatal for every operation and never retried.
    """

    kind = "configuration"


class NetworkError(GatewayError):
    """Network-level failure talking to the gateway.

    Raised when:
    - Request exceeded the configured timeout
    - Connection refused
    - DNS resolution failed
    """

    kind = "network"


class GatewayHttpError(GatewayError):
    """Gateway answered with a non-success status not covered elsewhere."""

    kind = "gateway"


class EndpointNotFoundError(GatewayHttpError):
    """Gateway answered 404/405 for the endpoint.

    During probing this is a miss, the next candidate template is tried.
    """

    kind = "not_found"


class GatewayPermissionError(GatewayHttpError):
    """Gateway rejected the API key (401/403). Aborts probing."""

    kind = "permission"


class ProviderShapeError(GatewayError):
    """Gateway answered with success but the payload shape was not recognized."""

    kind = "provider_shape"


class PayloadParseError(GatewayError):
    """Gateway answered with success but the body was not valid JSON."""

    kind = "parse"


class OperationCancelled(Exception):
    """The caller abandoned the operation through its cancellation token.

    Deliberately not a GatewayError: it is never turned into an envelope.
    """


ERRORS_BY_KIND: dict[str, type[GatewayError]] = {
    cls.kind: cls
    for cls in (
        ConfigurationError,
        NetworkError,
        GatewayHttpError,
        EndpointNotFoundError,
        GatewayPermissionError,
        ProviderShapeError,
        PayloadParseError,
    )
}

NOT_FOUND_STATUSES = frozenset({404, 405})
PERMISSION_STATUSES = frozenset({401, 403})


def kind_for_status(status: int) -> Optional[str]:
    """Return the error kind for an HTTP status, or None for 2xx."""
    if 200 <= status < 300:
        return None
    if status in NOT_FOUND_STATUSES:
        return EndpointNotFoundError.kind
    if status in PERMISSION_STATUSES:
        return GatewayPermissionError.kind
    return GatewayHttpError.kind


class InvalidRequestError(ValueError):
    """Caller input is missing or invalid (e.g. unknown session action).

    Raised before any gateway call; the HTTP boundary answers 400.
    """
