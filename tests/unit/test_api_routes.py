import asyncio

import pytest
from fakes import make_config, respond
from fastapi.testclient import TestClient

from waha_monitor.api.app import (
    API_PREFIX,
    create_app,
    request_cancel_token,
    watch_disconnect,
)
from waha_monitor.core.cancellation import CancellationToken
from waha_monitor.di.container import Container
from waha_monitor.utils.correlation import CORRELATION_ID_HEADER


@pytest.fixture
def client(container_factory) -> TestClient:
    return TestClient(create_app(container=container_factory()))


def test_chats_requires_session_name(client):
    response = client.get(f"{API_PREFIX}/chats")
    assert response.status_code == 400
    assert response.json()["ok"] is False
    assert "sessionName" in response.json()["hint"]


def test_chats_success_carries_correlation_id(client, gateway_stub):
    gateway_stub.routes["/api/sessions/s1/chats"] = respond(json={"data": []})
    response = client.get(
        f"{API_PREFIX}/chats",
        params={"sessionName": "s1"},
        headers={CORRELATION_ID_HEADER: "cid-123"},
    )
    assert response.status_code == 200
    assert response.headers[CORRELATION_ID_HEADER] == "cid-123"
    body = response.json()
    assert body["ok"] is True
    assert body["data"] == []
    assert body["targetUrl"].endswith("/api/sessions/s1/chats")


def test_correlation_id_is_generated_when_absent(client):
    response = client.get(f"{API_PREFIX}/info")
    assert response.headers.get(CORRELATION_ID_HEADER)


def test_gateway_error_status_is_reported_with_http_200(client, gateway_stub):
    gateway_stub.routes["/api/sessions/s1/chats"] = respond(401)
    response = client.get(f"{API_PREFIX}/chats", params={"sessionName": "s1"})
    assert response.status_code == 200
    assert response.json()["ok"] is False
    assert response.json()["status"] == 401


def test_gateway_500_is_reported_with_http_500(client, gateway_stub):
    gateway_stub.routes["/api/sessions/s1/chats"] = respond(500, json={"error": "boom"})
    response = client.get(f"{API_PREFIX}/chats", params={"sessionName": "s1"})
    assert response.status_code == 500
    assert response.json()["status"] == 500


def test_unconfigured_gateway_returns_500(gateway_stub):
    container = Container(
        config=make_config(waha_api_key=None), transport=gateway_stub.transport()
    )
    client = TestClient(create_app(container=container))
    response = client.get(f"{API_PREFIX}/sessions")
    assert response.status_code == 500
    assert response.json()["targetUrl"] == "N/A"
    assert gateway_stub.requests == []


def test_messages_rejects_non_integer_limit(client):
    response = client.get(
        f"{API_PREFIX}/messages",
        params={"sessionName": "s1", "chatId": "c@c.us", "limit": "abc"},
    )
    assert response.status_code == 400
    assert response.json()["ok"] is False


def test_contact_meta_requires_contact_id(client):
    response = client.get(f"{API_PREFIX}/contact-meta", params={"sessionName": "s1"})
    assert response.status_code == 400


def test_contact_meta_for_group(client):
    response = client.get(
        f"{API_PREFIX}/contact-meta",
        params={"sessionName": "s1", "contactId": "120363@g.us", "chatName": "Team"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["displayName"] == "Team"


def test_contact_meta_for_group_without_local_part(client):
    response = client.get(
        f"{API_PREFIX}/contact-meta", params={"sessionName": "s1", "contactId": "@g.us"}
    )
    assert response.status_code == 200
    assert response.json()["data"]["displayName"] == "@g.us"


def test_action_rejects_invalid_json(client):
    response = client.post(
        f"{API_PREFIX}/action",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["ok"] is False


@pytest.mark.parametrize(
    "body",
    [{}, {"action": "reboot"}, {"action": "start"}, {"action": "stop"}],
)
def test_action_rejects_incomplete_bodies(client, gateway_stub, body):
    response = client.post(f"{API_PREFIX}/action", json=body)
    assert response.status_code == 400
    assert response.json()["ok"] is False
    assert gateway_stub.requests == []


def test_action_start_forwards_to_gateway(client, gateway_stub):
    gateway_stub.routes["/api/sessions/start"] = respond(201, json={"name": "session-7"})
    response = client.post(f"{API_PREFIX}/action", json={"action": "start", "userId": "7"})
    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert response.json()["status"] == 201


def test_info_never_exposes_the_key(client):
    response = client.get(f"{API_PREFIX}/info")
    assert response.status_code == 200
    body = response.json()
    assert body["configured"] is True
    assert body["keyLength"] == len("secret-key-123")
    assert "secret-key-123" not in response.text


class _DisconnectingRequest:
    """Request stand-in that reports a disconnect on the n-th poll."""

    def __init__(self, disconnect_on: int) -> None:
        self.disconnect_on = disconnect_on
        self.polls = 0

    async def is_disconnected(self) -> bool:
        self.polls += 1
        return self.polls >= self.disconnect_on


@pytest.mark.asyncio
async def test_disconnect_watcher_cancels_token():
    token = CancellationToken()
    request = _DisconnectingRequest(disconnect_on=3)

    await asyncio.wait_for(watch_disconnect(request, token, interval=0), timeout=1)

    assert token.cancelled is True
    assert token.reason == "client disconnected"
    assert request.polls == 3


@pytest.mark.asyncio
async def test_disconnect_watcher_stops_once_token_is_cancelled():
    token = CancellationToken()
    token.cancel("done")
    request = _DisconnectingRequest(disconnect_on=1)

    await watch_disconnect(request, token, interval=0)

    assert request.polls == 0


async def _cancelled_token() -> CancellationToken:
    token = CancellationToken()
    token.cancel("client disconnected")
    return token


def test_cancelled_request_stops_waiting_for_sync(container_factory, gateway_stub):
    app = create_app(container=container_factory(sync_max_attempts=5))
    app.dependency_overrides[request_cancel_token] = _cancelled_token

    response = TestClient(app).get(
        f"{API_PREFIX}/chats", params={"sessionName": "s1", "waitForSync": "true"}
    )

    assert response.status_code == 503
    assert response.json()["ok"] is False
    assert gateway_stub.requests == []


def test_cancelled_request_makes_no_contact_calls(container_factory, gateway_stub):
    app = create_app(container=container_factory())
    app.dependency_overrides[request_cancel_token] = _cancelled_token

    response = TestClient(app).get(
        f"{API_PREFIX}/contact-meta", params={"sessionName": "s1", "contactId": "628123@c.us"}
    )

    assert response.status_code == 503
    assert gateway_stub.requests == []
