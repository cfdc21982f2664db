"""Ports (interfaces) for session providers.

The lifecycle manager and both relays depend on these contracts rather than
on a concrete messaging protocol implementation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from src.auth.store import AuthState
    from src.session.events import SessionEvents


# Event names emitted by every session.
CREDS_UPDATE = "creds.update"
CONNECTION_UPDATE = "connection.update"
MESSAGES_UPSERT = "messages.upsert"


@dataclass(frozen=True)
class ConnectionUpdate:
    connection: str | None = None  # "connecting" | "open" | "close"
    qr: str | None = None
    status_code: int | None = None
    error: BaseException | None = None


@dataclass(frozen=True)
class MessageKey:
    remote_jid: str
    from_me: bool = False
    id: str | None = None


@dataclass(frozen=True)
class IncomingMessage:
    key: MessageKey
    conversation: str | None = None
    extended_text: str | None = None
    kind: str = "text"  # "text" | "media" | "reaction" | "system" | ...


@dataclass(frozen=True)
class MessagesUpsert:
    messages: list[IncomingMessage] = field(default_factory=list)
    type: str = "notify"  # "notify" (live) | "append" (history)


class Session(Protocol):
    """One live connection instance. Replaced, never reused, on reconnect."""

    events: "SessionEvents"

    async def start(self) -> None: ...

    async def send_message(self, to: str, text: str) -> Any: ...

    async def close(self) -> None: ...


class SessionProvider(Protocol):
    async def fetch_latest_version(self) -> str: ...

    def create_session(
        self,
        auth_state: "AuthState",
        *,
        version: str,
        sync_full_history: bool = False,
    ) -> Session: ...
