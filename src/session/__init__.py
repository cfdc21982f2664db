from __future__ import annotations

from .errors import RelayError, SendError, SessionUnavailableError
from .events import SessionEvents
from .ports import (
    CONNECTION_UPDATE,
    CREDS_UPDATE,
    MESSAGES_UPSERT,
    ConnectionUpdate,
    IncomingMessage,
    MessageKey,
    MessagesUpsert,
    Session,
    SessionProvider,
)

__all__ = [
    "CONNECTION_UPDATE",
    "CREDS_UPDATE",
    "MESSAGES_UPSERT",
    "ConnectionUpdate",
    "IncomingMessage",
    "MessageKey",
    "MessagesUpsert",
    "RelayError",
    "SendError",
    "Session",
    "SessionEvents",
    "SessionProvider",
    "SessionUnavailableError",
]
