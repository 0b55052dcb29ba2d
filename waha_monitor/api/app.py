"""FastAPI application exposing the monitor operations.

All gateway-backed routes answer ``{ok, status, targetUrl, data?, hint?}``
with HTTP 200 unless the gateway status is 500.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from waha_monitor.core.cancellation import CancellationToken
from waha_monitor.core.config import MonitorConfig
from waha_monitor.core.exceptions import InvalidRequestError, OperationCancelled
from waha_monitor.di.container import Container
from waha_monitor.models.results import ApiEnvelope
from waha_monitor.models.schemas import ActionRequest, SessionAction
from waha_monitor.services.monitor_service import MonitorService
from waha_monitor.utils.correlation import CORRELATION_ID_HEADER, correlation_scope

logger = logging.getLogger(__name__)

API_PREFIX = "/api/integrations/waha"
DISCONNECT_POLL_SECONDS = 0.5

router = APIRouter(prefix=API_PREFIX, tags=["waha"])


def _get_service(request: Request) -> MonitorService:
    """Monitor service from the app container (overridable in tests)."""
    container: Container = request.app.state.container
    return container.provide_monitor_service()


async def watch_disconnect(
    request: Request,
    cancel_token: CancellationToken,
    interval: float = DISCONNECT_POLL_SECONDS,
) -> None:
    """Cancel ``cancel_token`` once the client has gone away."""
    while not cancel_token.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling request")
            cancel_token.cancel("client disconnected")
            return
        await asyncio.sleep(interval)


async def request_cancel_token(request: Request) -> AsyncIterator[CancellationToken]:
    """Per-request token, cancelled when the client disconnects."""
    cancel_token = CancellationToken()
    watcher = asyncio.create_task(watch_disconnect(request, cancel_token))
    try:
        yield cancel_token
    finally:
        watcher.cancel()


def _envelope_response(envelope: ApiEnvelope) -> JSONResponse:
    return JSONResponse(envelope.to_payload(), status_code=envelope.transport_status)


def _bad_request(hint: str) -> JSONResponse:
    return JSONResponse({"ok": False, "hint": hint}, status_code=400)


@router.get("/chats")
async def list_chats(
    session_name: Optional[str] = Query(None, alias="sessionName"),
    wait_for_sync: bool = Query(False, alias="waitForSync"),
    service: MonitorService = Depends(_get_service),
    cancel_token: CancellationToken = Depends(request_cancel_token),
) -> JSONResponse:
    """Canonical chat list for a session."""
    envelope = await service.list_chats(
        session_name, wait_for_sync=wait_for_sync, cancel_token=cancel_token
    )
    return _envelope_response(envelope)


@router.get("/messages")
async def list_messages(
    session_name: Optional[str] = Query(None, alias="sessionName"),
    chat_id: Optional[str] = Query(None, alias="chatId"),
    limit: Optional[int] = Query(None),
    service: MonitorService = Depends(_get_service),
    cancel_token: CancellationToken = Depends(request_cancel_token),
) -> JSONResponse:
    """Canonical messages of a chat, newest first as received."""
    envelope = await service.list_messages(
        session_name, chat_id, limit=limit, cancel_token=cancel_token
    )
    return _envelope_response(envelope)


@router.get("/contact-meta")
async def contact_meta(
    session_name: Optional[str] = Query(None, alias="sessionName"),
    contact_id: Optional[str] = Query(None, alias="contactId"),
    chat_name: Optional[str] = Query(None, alias="chatName"),
    service: MonitorService = Depends(_get_service),
    cancel_token: CancellationToken = Depends(request_cancel_token),
) -> JSONResponse:
    """Display name, phone number and avatar of a chat counterpart."""
    envelope = await service.get_contact_metadata(
        session_name, contact_id, chat_name=chat_name, cancel_token=cancel_token
    )
    return _envelope_response(envelope)


@router.post("/action")
async def session_action(
    request: Request, service: MonitorService = Depends(_get_service)
) -> JSONResponse:
    """Start, stop or log out a gateway session."""
    try:
        body: Any = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _bad_request("Invalid JSON body.")
    if not isinstance(body, dict) or not body.get("action"):
        return _bad_request("action is required.")

    allowed = {a.value for a in SessionAction}
    if body["action"] not in allowed:
        return _bad_request(f"Unknown action: {body['action']}")
    try:
        payload = ActionRequest.model_validate(body)
    except ValidationError as e:
        return _bad_request(f"Invalid action body: {e.errors()[0]['msg']}")

    envelope = await service.session_action(
        payload.action, user_id=payload.user_id, session_name=payload.session_name
    )
    return _envelope_response(envelope)


@router.get("/sessions")
async def list_sessions(
    service: MonitorService = Depends(_get_service),
    cancel_token: CancellationToken = Depends(request_cancel_token),
) -> JSONResponse:
    """Gateway session list passthrough."""
    return _envelope_response(await service.list_sessions(cancel_token=cancel_token))


@router.get("/health")
async def gateway_health(
    service: MonitorService = Depends(_get_service),
    cancel_token: CancellationToken = Depends(request_cancel_token),
) -> JSONResponse:
    """Gateway health check."""
    return _envelope_response(await service.health(cancel_token=cancel_token))


@router.get("/info")
def gateway_info(service: MonitorService = Depends(_get_service)) -> dict:
    """Configuration status; never exposes the key itself."""
    return service.info()


def create_app(
    config: Optional[MonitorConfig] = None, *, container: Optional[Container] = None
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        config: Configuration; loaded from the environment when omitted
        container: Pre-built container (tests inject one with a mock transport)

    Returns:
        Configured FastAPI application.
    """
    if container is None:
        container = Container(config=config or MonitorConfig())
        container.initialize_runtime()

    app = FastAPI(title="WAHA Monitor", docs_url=None, redoc_url=None)
    app.state.container = container

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        with correlation_scope(request.headers.get(CORRELATION_ID_HEADER)) as cid:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(
        request: Request, exc: InvalidRequestError
    ) -> JSONResponse:
        return _bad_request(str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        location = ".".join(str(part) for part in errors[0]["loc"]) if errors else ""
        return _bad_request(f"Invalid request parameter {location}".strip() + ".")

    @app.exception_handler(OperationCancelled)
    async def cancelled_handler(
        request: Request, exc: OperationCancelled
    ) -> JSONResponse:
        logger.info("Request cancelled", extra={"reason": str(exc)})
        return JSONResponse(
            {"ok": False, "status": 503, "targetUrl": "N/A", "hint": str(exc)},
            status_code=503,
        )

    app.include_router(router)
    return app
