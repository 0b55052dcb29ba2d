"""Data models package.

Exports canonical record models and result envelopes.
"""

from waha_monitor.models.results import (
    ApiEnvelope,
    GatewayEnvelope,
    SyncOutcome,
    SyncState,
)
from waha_monitor.models.schemas import (
    ActionRequest,
    Chat,
    ContactMetadata,
    MediaKind,
    Message,
    MessageDirection,
    SessionAction,
)

__all__ = [
    "ActionRequest",
    "ApiEnvelope",
    "Chat",
    "ContactMetadata",
    "GatewayEnvelope",
    "MediaKind",
    "Message",
    "MessageDirection",
    "SessionAction",
    "SyncOutcome",
    "SyncState",
]
