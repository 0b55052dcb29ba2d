"""Logical gateway operations and their candidate endpoint templates.

Templates are listed in decreasing likelihood of being correct for the most
common deployment. Probing is sequential, so this order decides how many
calls a deployment costs.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping
from urllib.parse import quote


class ProbeOperation(str, Enum):
    LIST_CHATS = "list_chats"
    LIST_MESSAGES = "list_messages"
    GET_CONTACT = "get_contact"
    GET_AVATAR = "get_avatar"
    HEALTH = "health"


DEFAULT_TEMPLATES: Mapping[ProbeOperation, tuple[str, ...]] = {
    ProbeOperation.LIST_CHATS: (
        "/api/sessions/{session}/chats",
        "/api/chats/{session}",
        "/api/{session}/chats",
    ),
    ProbeOperation.LIST_MESSAGES: (
        "/api/sessions/{session}/chats/{chat_id}/messages?limit={limit}",
        "/api/sessions/{session}/messages?chatId={chat_id}&limit={limit}",
        "/api/{session}/chats/{chat_id}/messages?limit={limit}",
    ),
    ProbeOperation.GET_CONTACT: (
        "/api/{session}/contacts/{contact_id}",
        "/api/contacts?session={session}&contactId={contact_id}",
        "/api/sessions/{session}/contacts/{contact_id}",
    ),
    ProbeOperation.GET_AVATAR: (
        "/api/{session}/contacts/{contact_id}/picture",
        "/api/{session}/contacts/{contact_id}/profile-picture",
        "/api/contacts/profile-picture?session={session}&contactId={contact_id}",
    ),
    ProbeOperation.HEALTH: (
        "/api/health",
        "/health",
    ),
}


def render_template(template: str, args: Mapping[str, object]) -> str:
    """Fill ``template`` placeholders with URL-quoted argument values.

    Raises:
        KeyError: If the template names an argument that was not supplied
    """
    quoted = {key: quote(str(value), safe="@._-") for key, value in args.items()}
    return template.format(**quoted)
