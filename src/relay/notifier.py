"""HTTP notifier for the core orchestrator's inbound callback."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

log = logging.getLogger("relay.notifier")


class CoreNotifier:
    """Best-effort delivery of inbound envelopes to the core.

    `notify()` never raises: failures are logged and reported as False. The
    message is not retried.
    """

    def __init__(self, callback_url: str, *, timeout_s: float = 10.0):
        self.callback_url = callback_url
        self.timeout_s = timeout_s
        self._session: aiohttp.ClientSession | None = None

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_s)
            )
        return self._session

    async def notify(self, payload: dict) -> bool:
        try:
            async with self._client().post(self.callback_url, json=payload) as resp:
                if resp.status >= 400:
                    detail = (await resp.text()).strip() or resp.reason
                    log.warning(
                        f"Core callback HTTP {resp.status} for {payload.get('chat_id')}: {detail}"
                    )
                    return False
                return True
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            log.warning(
                f"Core callback timed out after {self.timeout_s}s ({self.callback_url})"
            )
        except Exception as e:
            log.error(f"Failed to send to core: {type(e).__name__}: {e}")
        return False

    async def close(self) -> None:
        session = self._session
        self._session = None
        if session and not session.closed:
            await session.close()
