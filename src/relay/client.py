"""Client for the relay's control server, used from the core side.

Sends are rate limited per chat (minimum interval between two messages to the
same destination) to avoid flooding a conversation.
"""

from __future__ import annotations

import asyncio
import logging
import time

import aiohttp

from src.session.errors import RelayError

log = logging.getLogger("relay.client")

DEFAULT_BRIDGE_URL = "http://localhost:3002"
DEFAULT_MIN_INTERVAL_S = 12.0


class BridgeSendError(RelayError):
    def __init__(self, status: int, detail: str | None = None):
        self.status = int(status)
        self.detail = detail
        super().__init__(self.__str__())

    def __str__(self) -> str:
        detail = (self.detail or "").strip()
        if detail:
            return f"Relay returned {self.status}: {detail}"
        return f"Relay returned {self.status}"


class BridgeClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        min_interval_s: float = DEFAULT_MIN_INTERVAL_S,
        timeout_s: float = 10.0,
    ):
        self.base_url = (base_url or "").rstrip("/") or DEFAULT_BRIDGE_URL
        self.min_interval_s = min_interval_s
        self.timeout_s = timeout_s
        self._last_sent: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._session: aiohttp.ClientSession | None = None

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_s)
            )
        return self._session

    def _wait_for(self, to: str) -> float:
        last = self._last_sent.get(to)
        if last is None:
            return 0.0
        return max(0.0, self.min_interval_s - (time.monotonic() - last))

    async def send(self, to: str, content: str) -> bool:
        """Send one message. Returns False when there was nothing to send."""
        if not to or not content:
            return False

        lock = self._locks.setdefault(to, asyncio.Lock())
        async with lock:
            wait = self._wait_for(to)
            if wait > 0:
                log.debug(f"Rate limiting send to {to}: waiting {wait:.1f}s")
                await asyncio.sleep(wait)
            await self._post(to, content)
            self._last_sent[to] = time.monotonic()
        return True

    async def _post(self, to: str, content: str) -> None:
        url = f"{self.base_url}/send"
        async with self._client().post(url, json={"to": to, "content": content}) as resp:
            if resp.status != 200:
                detail = (await resp.text()).strip() or resp.reason
                raise BridgeSendError(resp.status, detail)

    async def close(self) -> None:
        session = self._session
        self._session = None
        if session and not session.closed:
            await session.close()
