"""Contact identity resolution.

Groups resolve locally. Personal identifiers get one contact lookup. Linked
identifiers (``@lid``) hide the phone number, so when the contact lookup is
incomplete the most recent message of the conversation is read for a push
name and an alternate sender id.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from waha_monitor.core.cancellation import CancellationToken
from waha_monitor.models.schemas import ContactMetadata
from waha_monitor.services.avatar.avatar_resolver import AvatarResolver, build_candidates
from waha_monitor.services.identity.identifiers import (
    PERSONAL_SUFFIX,
    IdentifierKind,
    canonicalize_identifier,
    classify_identifier,
    extract_phone_number,
    local_part,
    normalize_digits,
)
from waha_monitor.services.normalizers.payloads import (
    MESSAGE_COLLECTION_KEYS,
    ContactRecord,
    MessageMetadata,
    extract_message_metadata,
    unwrap_collection,
)
from waha_monitor.services.probing.path_resolver import PathResolver
from waha_monitor.services.probing.templates import DEFAULT_TEMPLATES, ProbeOperation

logger = logging.getLogger(__name__)

LINKED_FALLBACK_NAME = "Unknown LID Contact"


def alternate_sender_id(raw: str) -> Optional[str]:
    """Rebuild a clean identifier from an alternate sender value.

    ``"628123:4@s.whatsapp.net"`` becomes ``"628123@s.whatsapp.net"``; bare
    numbers get the personal suffix.
    """
    digits = normalize_digits(raw)
    if digits is None:
        return None
    if "@" not in raw:
        return f"{digits}{PERSONAL_SUFFIX}"
    suffix = raw.rpartition("@")[2].strip().lower()
    return f"{digits}@{suffix}"


class ContactIdentityResolver:
    """Resolves display name, phone number and avatar for one identifier."""

    def __init__(
        self,
        resolver: PathResolver,
        avatar_resolver: AvatarResolver,
        *,
        templates: Optional[Mapping[ProbeOperation, Sequence[str]]] = None,
    ) -> None:
        self._resolver = resolver
        self._avatars = avatar_resolver
        merged = dict(DEFAULT_TEMPLATES)
        if templates:
            merged.update(templates)
        self._contact_templates = tuple(merged[ProbeOperation.GET_CONTACT])
        self._message_templates = tuple(merged[ProbeOperation.LIST_MESSAGES])

    async def resolve(
        self,
        session: str,
        contact_id: str,
        *,
        chat_name: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ContactMetadata:
        """Resolve contact metadata.

        Gateway failures degrade to fallbacks; only OperationCancelled
        propagates.

        Args:
            session: Gateway session name
            contact_id: Raw identifier as sent by the caller
            chat_name: Chat display name, used for groups
            cancel_token: Optional cancellation token

        Returns:
            ContactMetadata with the canonical identifier
        """
        resolved_id = canonicalize_identifier(contact_id)
        kind = classify_identifier(resolved_id)

        if kind is IdentifierKind.GROUP:
            return ContactMetadata(
                display_name=chat_name or local_part(resolved_id) or resolved_id,
                phone_number=None,
                avatar_url=None,
                resolved_identifier=resolved_id,
            )

        fallback_name = (
            LINKED_FALLBACK_NAME
            if kind is IdentifierKind.LINKED
            else local_part(resolved_id) or resolved_id
        )

        record = await self._lookup_contact(session, resolved_id, cancel_token)
        primary_name = record.display_name
        phone = (
            normalize_digits(record.phone_number) if record.phone_number else None
        ) or extract_phone_number(resolved_id)

        display_name = primary_name or fallback_name
        alternate_id: Optional[str] = None

        if kind is IdentifierKind.LINKED and not (primary_name and phone):
            metadata = await self._latest_message_metadata(
                session, resolved_id, cancel_token
            )
            if metadata.push_name and not metadata.from_me:
                if primary_name is None or primary_name == fallback_name:
                    display_name = metadata.push_name
            if metadata.alternate_sender:
                alternate_id = alternate_sender_id(metadata.alternate_sender)
                if phone is None:
                    phone = normalize_digits(metadata.alternate_sender)

        avatar_url = record.avatar_url
        if avatar_url is None:
            avatar_url = await self._avatars.resolve(
                session,
                build_candidates(resolved_id, alternate_id, phone),
                cancel_token=cancel_token,
            )

        logger.debug(
            "Contact resolved",
            extra={
                "contact_id": resolved_id,
                "identifier_kind": kind.value,
                "has_phone": phone is not None,
                "has_avatar": avatar_url is not None,
            },
        )
        return ContactMetadata(
            display_name=display_name,
            phone_number=phone,
            avatar_url=avatar_url,
            resolved_identifier=resolved_id,
        )

    async def _lookup_contact(
        self,
        session: str,
        contact_id: str,
        cancel_token: Optional[CancellationToken],
    ) -> ContactRecord:
        envelope = await self._resolver.probe(
            ProbeOperation.GET_CONTACT,
            self._contact_templates,
            {"session": session, "contact_id": contact_id},
            cancel_token=cancel_token,
        )
        if envelope.success and isinstance(envelope.data, ContactRecord):
            return envelope.data
        logger.info(
            "Contact lookup failed, using fallbacks",
            extra={
                "contact_id": contact_id,
                "status": envelope.http_status,
                "error_kind": envelope.error_kind,
            },
        )
        return ContactRecord()

    async def _latest_message_metadata(
        self,
        session: str,
        chat_id: str,
        cancel_token: Optional[CancellationToken],
    ) -> MessageMetadata:
        envelope = await self._resolver.probe(
            ProbeOperation.LIST_MESSAGES,
            self._message_templates,
            {"session": session, "chat_id": chat_id, "limit": 1},
            cancel_token=cancel_token,
        )
        if not envelope.success:
            return MessageMetadata()
        records = unwrap_collection(envelope.raw_payload, MESSAGE_COLLECTION_KEYS)
        if not records:
            return MessageMetadata()
        return extract_message_metadata(records[0])
