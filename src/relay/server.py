"""Control server: the core orchestrator POSTs outbound sends here."""

from __future__ import annotations

import asyncio
import json
import logging

from aiohttp import web

from src.registry import SessionRegistry
from src.session.errors import SessionUnavailableError

log = logging.getLogger("relay.server")

REGISTRY_KEY = web.AppKey("registry", SessionRegistry)


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def handle_send(request: web.Request) -> web.StreamResponse:
    if request.method != "POST":
        raise web.HTTPNotFound()

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(400, "Invalid JSON body")

    to = body.get("to") if isinstance(body, dict) else None
    content = body.get("content") if isinstance(body, dict) else None
    if not isinstance(to, str) or not to or not isinstance(content, str) or not content:
        return _error(400, "Missing to or content")

    session = request.app[REGISTRY_KEY].current()
    if session is None:
        return _error(503, "Not connected")

    try:
        await session.send_message(to, content)
    except asyncio.CancelledError:
        raise
    except SessionUnavailableError as e:
        log.warning(f"Send to {to} rejected: {e}")
        return _error(503, str(e))
    except Exception as e:
        log.exception(f"Send to {to} failed")
        return _error(500, str(e) or type(e).__name__)

    return web.json_response({"ok": True})


def create_control_app(registry: SessionRegistry) -> web.Application:
    app = web.Application()
    app[REGISTRY_KEY] = registry
    # Every method is routed so non-POST requests get 404 rather than 405.
    app.router.add_route("*", "/send", handle_send)
    return app


async def start_control_server(
    registry: SessionRegistry,
    *,
    host: str = "127.0.0.1",
    port: int = 3002,
) -> tuple[web.AppRunner, str, int]:
    """Start the control server. Exposes: POST /send"""
    app = create_control_app(registry)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    return runner, host, port
