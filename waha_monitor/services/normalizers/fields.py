"""Ordered field-alias tables and the single first-match helper.

Every canonical field is resolved from an explicit tuple of dotted paths,
tried left to right; the first value the coercer accepts wins. Keeping the
precedence in data (not in chained ``or`` expressions) makes it testable.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Callable, Optional, Sequence, TypeVar

T = TypeVar("T")

# === Chats ===
CHAT_NAME_ALIASES = ("name", "pushname", "formattedName", "contact.name", "contact.pushname")
CHAT_ID_ALIASES = ("id._serialized", "id")
CHAT_GROUP_ALIASES = ("isGroup",)
CHAT_TIMESTAMP_ALIASES = ("timestamp", "conversationTimestamp", "lastMessage.timestamp")
CHAT_PREVIEW_ALIASES = ("lastMessage.body", "lastMessage.text")
AVATAR_FIELD_ALIASES = (
    "profilePicUrl",
    "picUrl",
    "avatar",
    "contact.profilePicUrl",
    "contact.avatar",
)

# === Messages ===
MESSAGE_ID_ALIASES = ("id._serialized", "id", "_id")
MESSAGE_BODY_ALIASES = ("body", "text")
MESSAGE_FROM_ME_ALIASES = ("fromMe", "isFromMe")
MESSAGE_TIMESTAMP_ALIASES = ("timestamp", "t", "messageTimestamp")
MESSAGE_HAS_MEDIA_ALIASES = ("hasMedia",)
MESSAGE_MIMETYPE_ALIASES = ("media.mimetype", "mimetype", "_data.mimetype")
MESSAGE_TYPE_ALIASES = ("type", "_data.type")
MESSAGE_FILENAME_ALIASES = ("media.filename", "filename", "_data.filename")

# === Contacts ===
CONTACT_NAME_ALIASES = ("name", "pushname", "shortName")
CONTACT_NUMBER_ALIASES = ("number",)

# === Avatar endpoints ===
AVATAR_URL_ALIASES = ("url", "picUrl", "profilePicUrl", "pictureUrl", "profilePictureURL")

# === Message metadata (enrichment) ===
MESSAGE_METADATA_KEYS = ("_data", "_Data")
PUSH_NAME_ALIASES = ("pushName", "notifyName")
ALTERNATE_SENDER_ALIASES = (
    "key.remoteJidAlt",
    "key.senderPn",
    "remoteJidAlt",
    "senderPn",
    "senderAlt",
)

# Values above this are epoch milliseconds
_MILLIS_THRESHOLD = 10**12


def get_path(record: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts; None when any step is missing."""
    current = record
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def text_value(value: Any) -> Optional[str]:
    """Accept non-blank strings and plain numbers (as strings)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else str(value)
    return None


def bool_value(value: Any) -> Optional[bool]:
    """Accept booleans and their string spellings; ``False`` counts as present."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def epoch_seconds(value: Any) -> Optional[int]:
    """Normalize a timestamp to whole seconds since epoch.

    Accepts seconds or milliseconds (int/float/numeric string) and ISO-8601
    strings. Non-positive, non-finite or unparseable values count as missing.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            value = float(stripped)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(stripped.replace("Z", "+00:00"))
            except ValueError:
                return None
            value = parsed.timestamp()
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value >= _MILLIS_THRESHOLD:
        value = value // 1000 if isinstance(value, int) else value / 1000
    seconds = int(value)
    return seconds if seconds > 0 else None


def first_match(
    record: Any,
    aliases: Sequence[str],
    coerce: Callable[[Any], Optional[T]] = text_value,  # type: ignore[assignment]
) -> Optional[T]:
    """Return the first alias value accepted by ``coerce``, or None."""
    for alias in aliases:
        value = coerce(get_path(record, alias))
        if value is not None:
            return value
    return None
