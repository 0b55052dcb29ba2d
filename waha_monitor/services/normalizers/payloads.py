"""Payload normalizers: heterogeneous gateway JSON to canonical records.

Pure functions, one per entity kind. Each returns the canonical value, or
None when the payload shape is not recognized (a probing miss).
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Optional

from waha_monitor.models.results import GatewayEnvelope
from waha_monitor.models.schemas import Chat, MediaKind, Message, MessageDirection
from waha_monitor.services.normalizers.fields import (
    ALTERNATE_SENDER_ALIASES,
    AVATAR_FIELD_ALIASES,
    AVATAR_URL_ALIASES,
    CHAT_GROUP_ALIASES,
    CHAT_ID_ALIASES,
    CHAT_NAME_ALIASES,
    CHAT_PREVIEW_ALIASES,
    CHAT_TIMESTAMP_ALIASES,
    CONTACT_NAME_ALIASES,
    CONTACT_NUMBER_ALIASES,
    MESSAGE_BODY_ALIASES,
    MESSAGE_FILENAME_ALIASES,
    MESSAGE_FROM_ME_ALIASES,
    MESSAGE_HAS_MEDIA_ALIASES,
    MESSAGE_ID_ALIASES,
    MESSAGE_METADATA_KEYS,
    MESSAGE_MIMETYPE_ALIASES,
    MESSAGE_TIMESTAMP_ALIASES,
    MESSAGE_TYPE_ALIASES,
    PUSH_NAME_ALIASES,
    bool_value,
    epoch_seconds,
    first_match,
    text_value,
)

UNKNOWN_NAME = "Unknown"
GROUP_SUFFIX = "@g.us"

CHAT_COLLECTION_KEYS = ("data", "chats", "result", "response")
MESSAGE_COLLECTION_KEYS = ("data", "messages", "result", "response")
OBJECT_ENVELOPE_KEYS = ("data", "response")

_TYPE_TO_KIND = {
    "image": MediaKind.IMAGE,
    "sticker": MediaKind.IMAGE,
    "video": MediaKind.VIDEO,
    "gif": MediaKind.VIDEO,
    "audio": MediaKind.AUDIO,
    "ptt": MediaKind.AUDIO,
    "voice": MediaKind.AUDIO,
    "document": MediaKind.DOCUMENT,
}


@dataclass(frozen=True)
class ContactRecord:
    """Fields pulled from a contact-info payload."""

    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class MessageMetadata:
    """Enrichment fields pulled from a raw message's metadata envelope."""

    push_name: Optional[str] = None
    alternate_sender: Optional[str] = None
    from_me: bool = False


def unwrap_collection(payload: Any, keys: tuple[str, ...]) -> Optional[list[Any]]:
    """Find the record list: the payload itself, then ``keys`` in order."""
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None
    for key in keys:
        candidate = payload.get(key)
        if isinstance(candidate, list):
            return candidate
    return None


def unwrap_object(payload: Any) -> Optional[dict[str, Any]]:
    """Find the record object: ``.data``, then ``.response``, then the payload."""
    if not isinstance(payload, dict):
        return None
    for key in OBJECT_ENVELOPE_KEYS:
        candidate = payload.get(key)
        if isinstance(candidate, dict):
            return candidate
    return payload


def extract_avatar_field(record: Any) -> Optional[str]:
    """Avatar URL carried inline by a chat or contact record."""
    return first_match(record, AVATAR_FIELD_ALIASES)


# === Chats ===


def _chat_display_name(record: dict[str, Any]) -> str:
    name = first_match(record, CHAT_NAME_ALIASES)
    if name is None:
        raw_id = record.get("id")
        if isinstance(raw_id, dict):
            name = text_value(raw_id.get("user")) or text_value(raw_id.get("_serialized"))
        else:
            name = text_value(raw_id)
    if name is None:
        return UNKNOWN_NAME
    # Raw ids such as 12345@c.us or 12345@lid
    name = name.split("@", 1)[0]
    return name or UNKNOWN_NAME


def normalize_chat(record: Any) -> Optional[Chat]:
    if not isinstance(record, dict):
        return None
    chat_id = first_match(record, CHAT_ID_ALIASES) or ""
    is_group = first_match(record, CHAT_GROUP_ALIASES, bool_value)
    if is_group is None:
        is_group = chat_id.endswith(GROUP_SUFFIX)
    return Chat(
        id=chat_id,
        display_name=_chat_display_name(record),
        is_group=is_group,
        last_activity_timestamp=first_match(record, CHAT_TIMESTAMP_ALIASES, epoch_seconds) or 0,
        avatar_url=extract_avatar_field(record),
        last_message_preview=first_match(record, CHAT_PREVIEW_ALIASES),
    )


def normalize_chats(payload: Any) -> Optional[list[Chat]]:
    """Canonical chat list, or None when no chat collection is recognized."""
    records = unwrap_collection(payload, CHAT_COLLECTION_KEYS)
    if records is None:
        return None
    return [chat for chat in map(normalize_chat, records) if chat is not None]


# === Messages ===


def _media_kind(mimetype: Optional[str], message_type: Optional[str]) -> MediaKind:
    if mimetype:
        major = mimetype.split("/", 1)[0].lower()
        if major == "image":
            return MediaKind.IMAGE
        if major == "video":
            return MediaKind.VIDEO
        if major == "audio":
            return MediaKind.AUDIO
        return MediaKind.DOCUMENT
    if message_type:
        return _TYPE_TO_KIND.get(message_type.lower(), MediaKind.DOCUMENT)
    return MediaKind.DOCUMENT


def normalize_message(record: Any) -> Optional[Message]:
    if not isinstance(record, dict):
        return None
    has_media = first_match(record, MESSAGE_HAS_MEDIA_ALIASES, bool_value)
    if has_media is None:
        has_media = isinstance(record.get("media"), dict)
    from_me = first_match(record, MESSAGE_FROM_ME_ALIASES, bool_value) or False

    media_kind = MediaKind.NONE
    media_file_name = None
    if has_media:
        media_kind = _media_kind(
            first_match(record, MESSAGE_MIMETYPE_ALIASES),
            first_match(record, MESSAGE_TYPE_ALIASES),
        )
        media_file_name = first_match(record, MESSAGE_FILENAME_ALIASES)

    return Message(
        id=first_match(record, MESSAGE_ID_ALIASES) or "",
        body=first_match(record, MESSAGE_BODY_ALIASES) or "",
        direction=MessageDirection.FROM_ME if from_me else MessageDirection.FROM_THEM,
        timestamp=first_match(record, MESSAGE_TIMESTAMP_ALIASES, epoch_seconds) or 0,
        has_media=has_media,
        media_kind=media_kind,
        media_file_name=media_file_name,
    )


def normalize_messages(payload: Any) -> Optional[list[Message]]:
    """Canonical message list in gateway order, or None when unrecognized."""
    records = unwrap_collection(payload, MESSAGE_COLLECTION_KEYS)
    if records is None:
        return None
    return [msg for msg in map(normalize_message, records) if msg is not None]


def extract_message_metadata(record: Any) -> MessageMetadata:
    """Pull push name and alternate sender from a raw message record."""
    if not isinstance(record, dict):
        return MessageMetadata()
    envelope: Any = None
    for key in MESSAGE_METADATA_KEYS:
        if isinstance(record.get(key), dict):
            envelope = record[key]
            break
    from_me = first_match(record, MESSAGE_FROM_ME_ALIASES, bool_value) or False
    if envelope is None:
        return MessageMetadata(from_me=from_me)
    return MessageMetadata(
        push_name=first_match(envelope, PUSH_NAME_ALIASES),
        alternate_sender=first_match(envelope, ALTERNATE_SENDER_ALIASES),
        from_me=from_me,
    )


# === Contacts and avatars ===


def normalize_contact_record(payload: Any) -> Optional[ContactRecord]:
    """Contact-info fields, or None when the payload is not an object."""
    record = unwrap_object(payload)
    if record is None:
        return None
    return ContactRecord(
        display_name=first_match(record, CONTACT_NAME_ALIASES),
        phone_number=first_match(record, CONTACT_NUMBER_ALIASES),
        avatar_url=extract_avatar_field(record),
    )


def to_data_uri(content_type: str, content: bytes) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def extract_avatar(envelope: GatewayEnvelope) -> Optional[str]:
    """Avatar from a picture endpoint: inline binary image or a url-like field."""
    if envelope.binary_body:
        return to_data_uri(envelope.content_type or "image/jpeg", envelope.binary_body)
    record = unwrap_object(envelope.raw_payload)
    if record is None:
        return None
    return first_match(record, AVATAR_URL_ALIASES)
