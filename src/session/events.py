"""Per-session event emitter.

Handlers run in registration order. Coroutine handlers are awaited one after
another so a message batch is processed strictly in delivery order.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

log = logging.getLogger("relay.events")

Handler = Callable[[Any], "Awaitable[None] | None"]


class SessionEvents:
    def __init__(self, name: str = "session"):
        self.name = name
        self._handlers: dict[str, list[Handler]] = {}

    def on(self, event: str, handler: Handler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def remove_all(self) -> None:
        self._handlers.clear()

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    async def emit(self, event: str, payload: Any = None) -> None:
        # Copy so a handler may unsubscribe itself mid-dispatch.
        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception(f"{self.name}: {event} handler failed")
