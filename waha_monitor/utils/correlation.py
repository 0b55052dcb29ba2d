"""Correlation ID utilities for request tracing.

The HTTP boundary binds one id per inbound request; the logging context
filter copies it onto every record emitted while the request is handled.
"""

import contextvars
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

CORRELATION_ID_HEADER = "X-Correlation-ID"

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    """Return a new UUID4 correlation id."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """Current correlation id, or None outside a bound scope."""
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id (given or generated) for the enclosed block.

    Usage:
        with correlation_scope(request.headers.get(CORRELATION_ID_HEADER)) as cid:
            ...
    """
    cid = correlation_id or generate_correlation_id()
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)
