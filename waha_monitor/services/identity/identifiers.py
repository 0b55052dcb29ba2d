"""WhatsApp identifier helpers.

Identifiers look like ``<local>@<suffix>``: ``@c.us`` and ``@s.whatsapp.net``
carry a phone number, ``@g.us`` is a group, and ``@lid`` is an opaque
network-assigned id that does not reveal the number.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

GROUP_SUFFIX = "@g.us"
PERSONAL_SUFFIX = "@c.us"
WHATSAPP_NET_SUFFIX = "@s.whatsapp.net"
LINKED_SUFFIX = "@lid"
PHONE_SUFFIXES = (PERSONAL_SUFFIX, WHATSAPP_NET_SUFFIX)

_NON_DIGITS = re.compile(r"\D+")


class IdentifierKind(str, Enum):
    GROUP = "group"
    PERSONAL = "personal"
    LINKED = "linked"


def canonicalize_identifier(identifier: str) -> str:
    """Trim, lower-case the suffix, and give bare digit strings ``@c.us``."""
    identifier = identifier.strip()
    if "@" not in identifier:
        if identifier.isdigit():
            return f"{identifier}{PERSONAL_SUFFIX}"
        return identifier
    local, _, suffix = identifier.rpartition("@")
    return f"{local}@{suffix.lower()}"


def local_part(identifier: str) -> str:
    return identifier.split("@", 1)[0]


def classify_identifier(identifier: str) -> IdentifierKind:
    if identifier.endswith(GROUP_SUFFIX):
        return IdentifierKind.GROUP
    if identifier.endswith(LINKED_SUFFIX):
        return IdentifierKind.LINKED
    return IdentifierKind.PERSONAL


def normalize_digits(value: str) -> Optional[str]:
    """Cut at the first ``:`` or ``@`` and keep only the digits.

    ``"628123:12@s.whatsapp.net"`` becomes ``"628123"``. Returns None when no
    digits remain.
    """
    head = re.split(r"[:@]", value, maxsplit=1)[0]
    digits = _NON_DIGITS.sub("", head)
    return digits or None


def extract_phone_number(identifier: str) -> Optional[str]:
    """Phone digits of a ``@c.us`` / ``@s.whatsapp.net`` identifier, else None."""
    if not identifier.endswith(PHONE_SUFFIXES):
        return None
    return normalize_digits(identifier)
