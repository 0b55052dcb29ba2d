import json

import pytest
from fakes import respond

from waha_monitor.core.exceptions import InvalidRequestError
from waha_monitor.models.schemas import SessionAction


@pytest.mark.asyncio
async def test_list_chats_returns_camel_case_records(container_factory, gateway_stub):
    gateway_stub.routes["/api/sessions/s1/chats"] = respond(
        json=[{"id": {"_serialized": "628123@c.us", "user": "628123"}, "pushname": "Ani"}]
    )
    service = container_factory().provide_monitor_service()

    envelope = await service.list_chats("s1")

    assert envelope.ok is True
    assert envelope.status == 200
    assert envelope.target_url.endswith("/api/sessions/s1/chats")
    assert envelope.data == [
        {
            "id": "628123@c.us",
            "displayName": "Ani",
            "isGroup": False,
            "lastActivityTimestamp": 0,
            "avatarUrl": None,
            "lastMessagePreview": None,
        }
    ]


@pytest.mark.asyncio
async def test_list_chats_waits_for_sync(container_factory, gateway_stub):
    calls = {"n": 0}

    def chats(request):
        calls["n"] += 1
        if calls["n"] < 3:
            return respond(404)(request)
        return respond(json={"chats": []})(request)

    gateway_stub.routes["/api/sessions/s1/chats"] = chats
    service = container_factory(sync_retry_delay_seconds=0.0).provide_monitor_service()

    envelope = await service.list_chats("s1", wait_for_sync=True)

    assert envelope.ok is True
    assert envelope.data == []
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_missing_session_is_invalid(container_factory):
    service = container_factory().provide_monitor_service()
    with pytest.raises(InvalidRequestError, match="sessionName"):
        await service.list_chats("  ")


@pytest.mark.asyncio
async def test_unconfigured_gateway_short_circuits(container_factory, gateway_stub):
    service = container_factory(waha_internal_url=None).provide_monitor_service()

    envelope = await service.list_messages("s1", "628123@c.us")

    assert envelope.ok is False
    assert envelope.status == 500
    assert envelope.target_url == "N/A"
    assert envelope.error_kind == "configuration"
    assert gateway_stub.requests == []


@pytest.mark.asyncio
async def test_list_messages_uses_configured_page_size(container_factory, gateway_stub):
    path = "/api/sessions/s1/chats/628123@c.us/messages?limit=20"
    gateway_stub.routes[path] = respond(json={"messages": [{"id": "m1", "body": "hi"}]})
    service = container_factory(messages_page_size=20).provide_monitor_service()

    envelope = await service.list_messages("s1", "628123@c.us")

    assert envelope.ok is True
    assert envelope.data[0]["body"] == "hi"
    assert envelope.data[0]["direction"] == "FromThem"
    assert gateway_stub.paths == [path]


@pytest.mark.asyncio
async def test_invalid_limit_is_rejected(container_factory):
    service = container_factory().provide_monitor_service()
    with pytest.raises(InvalidRequestError):
        await service.list_messages("s1", "c@c.us", limit=0)


@pytest.mark.asyncio
async def test_start_action_derives_session_name(container_factory, gateway_stub):
    gateway_stub.routes["/api/sessions/start"] = respond(201, json={"name": "session-42"})
    service = container_factory().provide_monitor_service()

    envelope = await service.session_action(SessionAction.START, user_id="42")

    request = gateway_stub.requests[0]
    assert request.method == "POST"
    assert json.loads(request.content) == {"name": "session-42"}
    assert envelope.ok is True
    assert envelope.data == {"name": "session-42"}


@pytest.mark.asyncio
async def test_stop_action_requires_session_name(container_factory, gateway_stub):
    service = container_factory().provide_monitor_service()
    with pytest.raises(InvalidRequestError):
        await service.session_action(SessionAction.STOP)
    assert gateway_stub.requests == []


@pytest.mark.asyncio
async def test_logout_action_targets_session(container_factory, gateway_stub):
    gateway_stub.routes["/api/sessions/s1/logout"] = respond(200, json={})
    service = container_factory().provide_monitor_service()

    envelope = await service.session_action(SessionAction.LOGOUT, session_name="s1")

    assert envelope.ok is True
    assert gateway_stub.paths == ["/api/sessions/s1/logout"]


@pytest.mark.asyncio
async def test_health_falls_back_to_plain_path(container_factory, gateway_stub):
    gateway_stub.routes["/health"] = respond(json={"status": "ok"})
    service = container_factory().provide_monitor_service()

    envelope = await service.health()

    assert envelope.ok is True
    assert envelope.data == {"status": "ok"}
    assert gateway_stub.paths == ["/api/health", "/health"]


@pytest.mark.asyncio
async def test_sessions_are_passed_through(container_factory, gateway_stub):
    sessions = [{"name": "session-1", "status": "WORKING"}]
    gateway_stub.routes["/api/sessions"] = respond(json=sessions)
    envelope = await container_factory().provide_monitor_service().list_sessions()
    assert envelope.data == sessions


@pytest.mark.asyncio
async def test_contact_metadata_for_group(container_factory, gateway_stub):
    service = container_factory().provide_monitor_service()
    envelope = await service.get_contact_metadata("s1", "120363@g.us", chat_name="Team")
    assert envelope.ok is True
    assert envelope.data == {
        "displayName": "Team",
        "phoneNumber": None,
        "avatarUrl": None,
        "resolvedIdentifier": "120363@g.us",
    }
    assert gateway_stub.requests == []
