"""Monitor service facade.

Runs the logical gateway operations (chat list, message list, contact
metadata, session actions, session list, health, configuration info) and
returns the public ``ApiEnvelope`` for each. Shared by the HTTP boundary and
the CLI.
"""

import logging
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import quote

from waha_monitor.core.cancellation import CancellationToken
from waha_monitor.core.config import MonitorConfig
from waha_monitor.core.exceptions import InvalidRequestError, OperationCancelled
from waha_monitor.gateways.protocols import GatewayExecutorProtocol
from waha_monitor.models.results import ApiEnvelope, GatewayEnvelope, SyncState
from waha_monitor.models.schemas import SessionAction
from waha_monitor.services.identity.contact_resolver import ContactIdentityResolver
from waha_monitor.services.probing.path_resolver import PathResolver
from waha_monitor.services.probing.templates import DEFAULT_TEMPLATES, ProbeOperation
from waha_monitor.services.sync.session_sync import SessionSyncRetryLoop

logger = logging.getLogger(__name__)

SESSIONS_PATH = "/api/sessions"
START_SESSION_PATH = "/api/sessions/start"


def _dump_records(records: Any) -> Any:
    """Serialize canonical models with camelCase keys."""
    if isinstance(records, list):
        return [_dump_records(item) for item in records]
    if hasattr(records, "model_dump"):
        return records.model_dump(mode="json", by_alias=True)
    return records


def _require(**params: Optional[str]) -> dict[str, str]:
    missing = [name for name, value in params.items() if not (value and value.strip())]
    if missing:
        raise InvalidRequestError(f"{' and '.join(missing)} required.")
    return {name: value.strip() for name, value in params.items() if value}


class MonitorService:
    """Facade over the gateway adapter components."""

    def __init__(
        self,
        config: MonitorConfig,
        executor: GatewayExecutorProtocol,
        resolver: PathResolver,
        contacts: ContactIdentityResolver,
        sync_loop: SessionSyncRetryLoop,
        *,
        templates: Optional[Mapping[ProbeOperation, Sequence[str]]] = None,
    ) -> None:
        self.config = config
        self._executor = executor
        self._resolver = resolver
        self._contacts = contacts
        self._sync = sync_loop
        self._templates = dict(DEFAULT_TEMPLATES)
        if templates:
            self._templates.update(templates)

    def _configuration_envelope(self) -> Optional[ApiEnvelope]:
        error = self._executor.configuration_error
        if error is None:
            return None
        return ApiEnvelope(
            ok=False,
            status=500,
            target_url="N/A",
            hint=str(error),
            error_kind=error.kind,
        )

    async def list_chats(
        self,
        session_name: Optional[str],
        *,
        wait_for_sync: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ApiEnvelope:
        """List canonical chats, optionally waiting for a fresh session to sync.

        Raises:
            InvalidRequestError: If ``session_name`` is missing
            OperationCancelled: If the caller cancelled
        """
        session = _require(sessionName=session_name)["sessionName"]
        not_configured = self._configuration_envelope()
        if not_configured is not None:
            return not_configured

        if wait_for_sync:
            outcome = await self._sync.run(session, cancel_token=cancel_token)
            if outcome.state is SyncState.CANCELLED or outcome.envelope is None:
                raise OperationCancelled(outcome.message or "cancelled")
            envelope = outcome.envelope
        else:
            envelope = await self._resolver.probe(
                ProbeOperation.LIST_CHATS,
                self._templates[ProbeOperation.LIST_CHATS],
                {"session": session},
                cancel_token=cancel_token,
            )
        return self._to_api(envelope)

    async def list_messages(
        self,
        session_name: Optional[str],
        chat_id: Optional[str],
        *,
        limit: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ApiEnvelope:
        """List canonical messages of a chat in gateway order (newest first).

        Raises:
            InvalidRequestError: If a required input is missing or ``limit`` < 1
        """
        params = _require(sessionName=session_name, chatId=chat_id)
        if limit is not None and limit < 1:
            raise InvalidRequestError("limit must be a positive integer.")
        not_configured = self._configuration_envelope()
        if not_configured is not None:
            return not_configured

        envelope = await self._resolver.probe(
            ProbeOperation.LIST_MESSAGES,
            self._templates[ProbeOperation.LIST_MESSAGES],
            {
                "session": params["sessionName"],
                "chat_id": params["chatId"],
                "limit": limit or self.config.messages_page_size,
            },
            cancel_token=cancel_token,
        )
        return self._to_api(envelope)

    async def get_contact_metadata(
        self,
        session_name: Optional[str],
        contact_id: Optional[str],
        *,
        chat_name: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ApiEnvelope:
        """Resolve display name, phone number and avatar of a chat counterpart."""
        params = _require(sessionName=session_name, contactId=contact_id)
        not_configured = self._configuration_envelope()
        if not_configured is not None:
            return not_configured

        metadata = await self._contacts.resolve(
            params["sessionName"],
            params["contactId"],
            chat_name=chat_name or None,
            cancel_token=cancel_token,
        )
        return ApiEnvelope(
            ok=True, status=200, target_url="N/A", data=_dump_records(metadata)
        )

    async def session_action(
        self,
        action: SessionAction,
        *,
        user_id: Optional[str] = None,
        session_name: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ApiEnvelope:
        """Forward a start/stop/logout action to the gateway.

        ``start`` derives the session name from ``user_id``; ``stop`` and
        ``logout`` need ``session_name``.

        Raises:
            InvalidRequestError: If the input needed by the action is missing
        """
        if action is SessionAction.START:
            user = _require(userId=user_id)["userId"]
            path, body = START_SESSION_PATH, {
                "name": f"{self.config.session_name_prefix}{user}"
            }
        else:
            session = _require(sessionName=session_name)["sessionName"]
            path = f"/api/sessions/{quote(session, safe='@._-')}/{action.value}"
            body = None

        not_configured = self._configuration_envelope()
        if not_configured is not None:
            return not_configured

        logger.info(
            "Forwarding session action",
            extra={"action": action.value, "path": path},
        )
        envelope = await self._executor.execute(
            path, "POST", body, cancel_token=cancel_token
        )
        return self._to_api(envelope)

    async def list_sessions(
        self, *, cancel_token: Optional[CancellationToken] = None
    ) -> ApiEnvelope:
        """Gateway session list, passed through unchanged."""
        not_configured = self._configuration_envelope()
        if not_configured is not None:
            return not_configured
        envelope = await self._executor.execute(SESSIONS_PATH, cancel_token=cancel_token)
        return self._to_api(envelope)

    async def health(
        self, *, cancel_token: Optional[CancellationToken] = None
    ) -> ApiEnvelope:
        """Gateway health check over the health endpoint candidates."""
        not_configured = self._configuration_envelope()
        if not_configured is not None:
            return not_configured
        envelope = await self._resolver.probe(
            ProbeOperation.HEALTH,
            self._templates[ProbeOperation.HEALTH],
            {},
            cancel_token=cancel_token,
        )
        return self._to_api(envelope)

    def info(self) -> dict[str, object]:
        """Configuration status without secret values; makes no gateway call."""
        return self.config.describe()

    @staticmethod
    def _to_api(envelope: GatewayEnvelope) -> ApiEnvelope:
        if envelope.success and envelope.data is not None:
            return ApiEnvelope.from_gateway(envelope, data=_dump_records(envelope.data))
        return ApiEnvelope.from_gateway(envelope)
