"""Pydantic models for canonical gateway records.

Canonical records never carry provider-specific field names. They are
serialized with camelCase keys for the HTTP boundary (``model_dump(by_alias=True)``)
while Python code uses snake_case attributes.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MessageDirection(str, Enum):
    """Who sent a message, relative to the monitored account."""

    FROM_ME = "FromMe"
    FROM_THEM = "FromThem"


class MediaKind(str, Enum):
    """Coarse media classification of a message attachment."""

    IMAGE = "Image"
    VIDEO = "Video"
    AUDIO = "Audio"
    DOCUMENT = "Document"
    NONE = "None"


class _CanonicalModel(BaseModel):
    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )


class Chat(_CanonicalModel):
    """Canonical chat summary.

    Attributes:
        id: Opaque chat identifier (e.g. ``628123@c.us``)
        display_name: Contact name or group subject, never empty
        is_group: True for group chats
        last_activity_timestamp: Seconds since epoch, 0 when unknown
        avatar_url: Profile picture URL if the gateway supplied one
        last_message_preview: Body of the last message if available
    """

    id: str = Field(..., description="Chat identifier")
    display_name: str = Field(..., min_length=1, description="Display name")
    is_group: bool = Field(default=False, description="Group chat flag")
    last_activity_timestamp: int = Field(
        default=0, ge=0, description="Last activity, seconds since epoch"
    )
    avatar_url: Optional[str] = Field(default=None, description="Avatar URL")
    last_message_preview: Optional[str] = Field(
        default=None, description="Last message body"
    )


class Message(_CanonicalModel):
    """Canonical chat message."""

    id: str = Field(..., description="Message identifier")
    body: str = Field(default="", description="Message text")
    direction: MessageDirection = Field(..., description="FromMe or FromThem")
    timestamp: int = Field(default=0, ge=0, description="Seconds since epoch")
    has_media: bool = Field(default=False, description="Attachment present")
    media_kind: MediaKind = Field(default=MediaKind.NONE, description="Media kind")
    media_file_name: Optional[str] = Field(
        default=None, description="Attachment file name"
    )


class ContactMetadata(_CanonicalModel):
    """Resolved display identity of a chat counterpart."""

    display_name: str = Field(..., min_length=1, description="Display name")
    phone_number: Optional[str] = Field(default=None, description="Digits only")
    avatar_url: Optional[str] = Field(
        default=None, description="Avatar URL or inline data URI"
    )
    resolved_identifier: str = Field(
        ..., min_length=1, description="Canonicalized input identifier"
    )


class SessionAction(str, Enum):
    """Session lifecycle actions forwarded to the gateway."""

    START = "start"
    STOP = "stop"
    LOGOUT = "logout"


class ActionRequest(BaseModel):
    """Body of a session action request: ``{action, userId?, sessionName?}``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action: SessionAction
    user_id: Optional[str] = Field(default=None, description="Used by start")
    session_name: Optional[str] = Field(
        default=None, description="Required by stop and logout"
    )
