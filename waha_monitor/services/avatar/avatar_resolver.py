"""Profile picture resolution over the identifier x endpoint product."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from waha_monitor.core.cancellation import CancellationToken
from waha_monitor.observability.metrics_adapter import (
    MetricsAdapter,
    NoopMetricsAdapter,
)
from waha_monitor.services.identity.identifiers import (
    PERSONAL_SUFFIX,
    WHATSAPP_NET_SUFFIX,
)
from waha_monitor.services.probing.path_resolver import PathResolver
from waha_monitor.services.probing.templates import (
    DEFAULT_TEMPLATES,
    ProbeOperation,
)

logger = logging.getLogger(__name__)


def build_candidates(
    resolved_id: Optional[str],
    alternate_sender: Optional[str] = None,
    phone_number: Optional[str] = None,
) -> list[str]:
    """Ordered, de-duplicated identifiers worth asking for a picture.

    Order: resolved id, alternate sender id, then the phone number under both
    personal suffixes.
    """
    candidates: list[Optional[str]] = [resolved_id, alternate_sender]
    if phone_number:
        candidates.append(f"{phone_number}{PERSONAL_SUFFIX}")
        candidates.append(f"{phone_number}{WHATSAPP_NET_SUFFIX}")

    seen: set[str] = set()
    ordered: list[str] = []
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        ordered.append(candidate)
    return ordered


class AvatarResolver:
    """Finds a profile picture URL or inline data URI for a contact."""

    def __init__(
        self,
        resolver: PathResolver,
        *,
        templates: Sequence[str] = DEFAULT_TEMPLATES[ProbeOperation.GET_AVATAR],
        metrics: Optional[MetricsAdapter] = None,
    ) -> None:
        self._resolver = resolver
        self._templates = tuple(templates)
        self._metrics: MetricsAdapter = metrics or NoopMetricsAdapter()

    async def resolve(
        self,
        session: str,
        candidates: Sequence[str],
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[str]:
        """Return the first avatar found, or None when every lookup fails.

        Gateway failures never escape; only OperationCancelled propagates.
        """
        for contact_id in candidates:
            envelope = await self._resolver.probe(
                ProbeOperation.GET_AVATAR,
                self._templates,
                {"session": session, "contact_id": contact_id},
                cancel_token=cancel_token,
            )
            if envelope.success and envelope.data:
                self._metrics.inc_avatar_lookup("found")
                return str(envelope.data)
            logger.debug(
                "No avatar for identifier",
                extra={
                    "contact_id": contact_id,
                    "status": envelope.http_status,
                    "error_kind": envelope.error_kind,
                },
            )

        self._metrics.inc_avatar_lookup("missing")
        return None
