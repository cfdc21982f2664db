from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import test_utils

from src.registry import SessionRegistry
from src.relay.server import create_control_app
from src.session.errors import SessionUnavailableError


def _session(**kwargs):
    session = MagicMock()
    session.send_message = AsyncMock(**kwargs)
    return session


async def _client(registry: SessionRegistry) -> test_utils.TestClient:
    client = test_utils.TestClient(test_utils.TestServer(create_control_app(registry)))
    await client.start_server()
    return client


@pytest.mark.asyncio
async def test_send_dispatches_to_active_session():
    registry = SessionRegistry()
    session = _session(return_value="id-1")
    registry.replace(session)
    client = await _client(registry)
    try:
        resp = await client.post("/send", json={"to": "123@s.us", "content": "hello"})
        assert resp.status == 200
        assert await resp.json() == {"ok": True}
    finally:
        await client.close()

    session.send_message.assert_awaited_once_with("123@s.us", "hello")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"to": "123@s.us"},
        {"content": "hello"},
        {"to": "", "content": "hello"},
        {"to": "123@s.us", "content": ""},
        {"to": 123, "content": "hello"},
        ["123@s.us", "hello"],
    ],
)
async def test_missing_fields_are_rejected(body):
    registry = SessionRegistry()
    session = _session()
    registry.replace(session)
    client = await _client(registry)
    try:
        resp = await client.post("/send", json=body)
        assert resp.status == 400
        assert await resp.json() == {"error": "Missing to or content"}
    finally:
        await client.close()

    session.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_invalid_json_is_a_client_error():
    registry = SessionRegistry()
    session = _session()
    registry.replace(session)
    client = await _client(registry)
    try:
        resp = await client.post(
            "/send", data=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status == 400
        assert "error" in await resp.json()
    finally:
        await client.close()

    session.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_session_is_rejected():
    client = await _client(SessionRegistry())
    try:
        resp = await client.post("/send", json={"to": "123@s.us", "content": "hello"})
        assert resp.status == 503
        assert await resp.json() == {"error": "Not connected"}
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_stale_session_is_rejected_gracefully():
    registry = SessionRegistry()
    registry.replace(_session(side_effect=SessionUnavailableError("Session is not connected")))
    client = await _client(registry)
    try:
        resp = await client.post("/send", json={"to": "123@s.us", "content": "hello"})
        assert resp.status == 503
        assert await resp.json() == {"error": "Session is not connected"}
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_send_failure_is_a_server_error():
    registry = SessionRegistry()
    registry.replace(_session(side_effect=RuntimeError("boom")))
    client = await _client(registry)
    try:
        resp = await client.post("/send", json={"to": "123@s.us", "content": "hello"})
        assert resp.status == 500
        assert await resp.json() == {"error": "boom"}

        # The server keeps serving after a failed send.
        resp = await client.post("/send", json={"to": "123@s.us"})
        assert resp.status == 400
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_duplicate_requests_send_twice():
    registry = SessionRegistry()
    session = _session()
    registry.replace(session)
    client = await _client(registry)
    try:
        for _ in range(2):
            resp = await client.post("/send", json={"to": "123@s.us", "content": "hello"})
            assert resp.status == 200
    finally:
        await client.close()

    assert session.send_message.await_count == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method,path",
    [("GET", "/send"), ("PUT", "/send"), ("POST", "/other"), ("GET", "/")],
)
async def test_unknown_routes_are_404(method, path):
    registry = SessionRegistry()
    session = _session()
    registry.replace(session)
    client = await _client(registry)
    try:
        resp = await client.request(method, path)
        assert resp.status == 404
    finally:
        await client.close()

    session.send_message.assert_not_awaited()
