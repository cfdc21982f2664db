"""Inbound relay: session message events -> core notifications."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from src.session.ports import IncomingMessage, MessagesUpsert

log = logging.getLogger("relay.inbound")

Notify = Callable[[dict], Awaitable[bool]]


def extract_text(message: IncomingMessage) -> str | None:
    """Plain body first, then extended text. Other kinds carry no text."""
    for text in (message.conversation, message.extended_text):
        if isinstance(text, str) and text:
            return text
    return None


def build_inbound_envelope(message: IncomingMessage) -> dict | None:
    if message.key.from_me:
        return None
    text = extract_text(message)
    if text is None:
        return None
    sender = message.key.remote_jid or ""
    return {
        "type": "inbound",
        "from": sender,
        "content": text,
        "chat_id": sender,
    }


class InboundRelay:
    def __init__(self, notify: Notify):
        self._notify = notify
        self.forwarded = 0
        self.failed = 0

    async def handle_upsert(self, upsert: MessagesUpsert) -> int:
        """Forward qualifying messages in delivery order; return the count sent."""
        sent = 0
        for message in upsert.messages:
            envelope = build_inbound_envelope(message)
            if envelope is None:
                continue
            if await self._notify(envelope):
                sent += 1
                self.forwarded += 1
            else:
                self.failed += 1
                log.debug(f"Dropped inbound message from {envelope['from']}")
        return sent
