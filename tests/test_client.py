import time

import pytest
from aiohttp import test_utils, web

from src.relay.client import BridgeClient, BridgeSendError


def _relay_app(received: list, *, status: int = 200) -> web.Application:
    async def send(request: web.Request) -> web.Response:
        received.append(await request.json())
        if status != 200:
            return web.json_response({"error": "Not connected"}, status=status)
        return web.json_response({"ok": True})

    app = web.Application()
    app.router.add_post("/send", send)
    return app


@pytest.mark.asyncio
async def test_send_posts_to_relay():
    received: list = []
    async with test_utils.TestServer(_relay_app(received)) as server:
        client = BridgeClient(str(server.make_url("/")), min_interval_s=0)
        try:
            assert await client.send("123@s.us", "hello") is True
        finally:
            await client.close()

    assert received == [{"to": "123@s.us", "content": "hello"}]


@pytest.mark.asyncio
async def test_empty_send_is_a_noop():
    client = BridgeClient("http://127.0.0.1:1")
    try:
        assert await client.send("", "hello") is False
        assert await client.send("123@s.us", "") is False
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_non_200_raises_with_status():
    received: list = []
    async with test_utils.TestServer(_relay_app(received, status=503)) as server:
        client = BridgeClient(str(server.make_url("/")), min_interval_s=0)
        try:
            with pytest.raises(BridgeSendError) as excinfo:
                await client.send("123@s.us", "hello")
        finally:
            await client.close()

    assert excinfo.value.status == 503
    assert "Not connected" in str(excinfo.value)


@pytest.mark.asyncio
async def test_sends_to_same_chat_are_spaced():
    received: list = []
    async with test_utils.TestServer(_relay_app(received)) as server:
        client = BridgeClient(str(server.make_url("/")), min_interval_s=0.3)
        try:
            await client.send("a@s.us", "one")
            started = time.monotonic()
            await client.send("b@s.us", "other chat")
            assert time.monotonic() - started < 0.25
            await client.send("a@s.us", "two")
            assert time.monotonic() - started >= 0.2
        finally:
            await client.close()

    assert [r["content"] for r in received] == ["one", "other chat", "two"]


def test_default_url():
    assert BridgeClient().base_url == "http://localhost:3002"
    assert BridgeClient("http://relay:4000/").base_url == "http://relay:4000"
