import asyncio
import json

import httpx
import pytest
from fakes import API_KEY, BASE_URL, RecordingMetrics, make_config

from waha_monitor.core.cancellation import CancellationToken
from waha_monitor.core.exceptions import OperationCancelled
from waha_monitor.gateways.http_executor import (
    GatewayRequestExecutor,
    classify_network_error,
)


def _executor(handler, **overrides) -> GatewayRequestExecutor:
    return GatewayRequestExecutor(
        make_config(**overrides), transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_sends_api_key_and_joins_url_with_single_slash():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    executor = _executor(handler, waha_internal_url=f"{BASE_URL}/")
    env = await executor.execute("/api/sessions")

    assert env.success is True
    assert env.http_status == 200
    assert env.target_endpoint == f"{BASE_URL}/api/sessions"
    assert env.raw_payload == {"ok": True}
    assert seen[0].headers["X-Api-Key"] == API_KEY
    assert seen[0].headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_post_body_is_sent_as_json():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"name": "session-1"})

    env = await _executor(handler).execute(
        "api/sessions/start", "POST", {"name": "session-1"}
    )
    assert env.success is True
    assert env.http_status == 201
    assert bodies == [{"name": "session-1"}]


@pytest.mark.asyncio
async def test_missing_configuration_makes_no_call():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    executor = _executor(handler, waha_api_key=None)
    env = await executor.execute("/api/sessions")

    assert executor.configuration_error is not None
    assert env.success is False
    assert env.http_status == 500
    assert env.target_endpoint == "N/A"
    assert env.error_kind == "configuration"
    assert "WAHA_API_KEY" in env.diagnostic_hint


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "code, kind",
    [(404, "not_found"), (405, "not_found"), (401, "permission"), (502, "gateway")],
)
async def test_non_success_status_sets_error_kind(code, kind):
    env = await _executor(lambda r: httpx.Response(code, json={"error": "x"})).execute(
        "/api/x"
    )
    assert env.success is False
    assert env.http_status == code
    assert env.error_kind == kind
    assert env.raw_payload == {"error": "x"}


@pytest.mark.asyncio
async def test_permission_hint_points_at_api_key():
    env = await _executor(lambda r: httpx.Response(403)).execute("/api/x")
    assert "WAHA_API_KEY" in env.diagnostic_hint


@pytest.mark.asyncio
async def test_malformed_json_on_success_is_a_parse_error():
    env = await _executor(
        lambda r: httpx.Response(
            200, content=b"<html>oops</html>", headers={"content-type": "text/html"}
        )
    ).execute("/api/x")
    assert env.success is True
    assert env.raw_payload is None
    assert env.error_kind == "parse"
    assert "unparseable" in env.diagnostic_hint


@pytest.mark.asyncio
async def test_image_body_is_kept_as_binary():
    env = await _executor(
        lambda r: httpx.Response(
            200, content=b"\x89PNG", headers={"content-type": "image/png"}
        )
    ).execute("/api/picture")
    assert env.success is True
    assert env.content_type == "image/png"
    assert env.binary_body == b"\x89PNG"
    assert env.raw_payload is None


@pytest.mark.asyncio
async def test_timeout_hint_names_configured_value():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.Event().wait()
        return httpx.Response(200)

    metrics = RecordingMetrics()
    executor = GatewayRequestExecutor(
        make_config(waha_timeout_ms=150),
        transport=httpx.MockTransport(handler),
        metrics=metrics,
    )
    env = await executor.execute("/api/slow")

    assert env.success is False
    assert env.http_status == 500
    assert env.error_kind == "network"
    assert "0.15 second" in env.diagnostic_hint
    assert metrics.requests == [("GET", "timeout")]


@pytest.mark.asyncio
async def test_connection_refused_is_classified():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    env = await _executor(handler).execute("/api/x")
    assert env.http_status == 500
    assert env.error_kind == "network"
    assert "Connection refused" in env.diagnostic_hint


@pytest.mark.asyncio
async def test_dns_failure_is_classified():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("[Errno -2] Name or service not known", request=request)

    env = await _executor(handler).execute("/api/x")
    assert env.error_kind == "network"
    assert "could not be resolved" in env.diagnostic_hint


def test_unknown_transport_error_names_its_class():
    hint = classify_network_error(httpx.ReadError("boom"), 15)
    assert "ReadError" in hint


@pytest.mark.asyncio
async def test_cancelled_token_prevents_the_call():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    token = CancellationToken()
    token.cancel("user left")
    with pytest.raises(OperationCancelled):
        await _executor(handler).execute("/api/x", cancel_token=token)


@pytest.mark.asyncio
async def test_cancellation_during_call_abandons_request():
    started = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        started.set()
        await asyncio.Event().wait()
        return httpx.Response(200)

    token = CancellationToken()
    executor = _executor(handler, waha_timeout_ms=10000)
    task = asyncio.ensure_future(executor.execute("/api/x", cancel_token=token))
    await started.wait()
    token.cancel()

    with pytest.raises(OperationCancelled):
        await asyncio.wait_for(task, timeout=2)
