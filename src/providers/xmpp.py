"""XMPP session provider.

Maps slixmpp's stream events onto the relay's session events:

- session_start        -> connection.update(open)
- failed_auth          -> connection.update(close, 401)   (terminal)
- connection_failed    -> connection.update(close, 408)
- disconnected         -> connection.update(close, 428)
- message/carbon_sent  -> messages.upsert

Credentials are `{"jid", "password", "resource"}` in the credential store.
XMPP has no pairing step, so this provider never emits a `qr` update; the
pairing display only fires for providers that pair by scanning a code.
"""

from __future__ import annotations

import asyncio
import logging

import slixmpp

from src.auth.store import AuthState
from src.session.errors import SendError, SessionUnavailableError
from src.session.events import SessionEvents
from src.session.ports import (
    CONNECTION_UPDATE,
    CREDS_UPDATE,
    MESSAGES_UPSERT,
    ConnectionUpdate,
    IncomingMessage,
    MessageKey,
    MessagesUpsert,
)
from src.utils import BaseXMPPBot

log = logging.getLogger("relay.xmpp")

STATUS_LOGGED_OUT = 401
STATUS_TIMED_OUT = 408
STATUS_CONNECTION_CLOSED = 428

_DELAY_NS = "urn:xmpp:delay"
_STARTUP_TIMEOUT_S = 15


def is_delayed(msg) -> bool:
    """True for offline/history messages (XEP-0203 delay stamp)."""
    return msg.xml.find(f"{{{_DELAY_NS}}}delay") is not None


def to_incoming_message(msg, *, from_me: bool) -> IncomingMessage:
    body = msg["body"] or ""
    # The chat is the peer: the recipient for our own messages, else the sender.
    peer = msg["to"] if from_me else msg["from"]
    return IncomingMessage(
        key=MessageKey(remote_jid=str(peer.bare), from_me=from_me, id=msg["id"] or None),
        conversation=body or None,
        kind="text" if body else "system",
    )


class XMPPSession:
    """One XMPP connection. Never reconnects itself; the lifecycle manager does."""

    def __init__(
        self,
        auth_state: AuthState,
        *,
        server: str,
        port: int = 5222,
        use_tls: bool = False,
        version: str = "",
        sync_full_history: bool = False,
        seeded: bool = False,
    ):
        self.auth_state = auth_state
        self.server = server
        self.port = port
        self.use_tls = use_tls
        self.version = version
        self.sync_full_history = sync_full_history
        self.events = SessionEvents(name="xmpp")
        self.client: BaseXMPPBot | None = None

        self._seeded = seeded
        self._closing = False
        self._close_emitted = False

    @property
    def jid(self) -> str:
        return str(self.auth_state.creds.get("jid") or "")

    def _build_client(self) -> BaseXMPPBot:
        creds = self.auth_state.creds
        client = BaseXMPPBot(str(creds["jid"]), str(creds["password"]))
        client.log = log
        client.add_event_handler("session_start", self._on_start)
        client.add_event_handler("failed_auth", self._on_failed_auth)
        client.add_event_handler("connection_failed", self._on_connection_failed)
        client.add_event_handler("disconnected", self._on_disconnected)
        client.add_event_handler("message", self._on_message)
        client.add_event_handler("carbon_sent", self._on_carbon_sent)
        return client

    # -------------------------------------------------------------------------
    # Session API
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        if self._seeded:
            await self.events.emit(CREDS_UPDATE, dict(self.auth_state.creds))

        if not self.auth_state.is_registered:
            await self._emit_close(
                STATUS_LOGGED_OUT,
                SessionUnavailableError(
                    f"No XMPP credentials in {self.auth_state.directory}; "
                    "set XMPP_JID and XMPP_PASSWORD"
                ),
            )
            return

        self.client = self._build_client()
        log.info(f"Connecting {self.jid} to {self.server}:{self.port} ({self.version})")
        await self.events.emit(CONNECTION_UPDATE, ConnectionUpdate(connection="connecting"))
        self.client.connect_to_server(self.server, self.port, use_tls=self.use_tls)

    async def send_message(self, to: str, text: str) -> str:
        client = self.client
        if client is None or self._closing or not client.is_connected():
            raise SessionUnavailableError("Session is not connected")
        try:
            return client.send_chat(to, text)
        except ValueError as e:
            raise SendError(to, str(e)) from e

    async def close(self) -> None:
        self._closing = True
        client = self.client
        if client is None:
            return
        client.set_connected(False)
        client.disconnect()

    # -------------------------------------------------------------------------
    # slixmpp handlers
    # -------------------------------------------------------------------------

    async def _emit_close(self, status_code: int, error: BaseException | None = None) -> None:
        if self._close_emitted:
            return
        self._close_emitted = True
        await self.events.emit(
            CONNECTION_UPDATE,
            ConnectionUpdate(connection="close", status_code=status_code, error=error),
        )

    async def _on_start(self, event):
        client = self.client
        if client is None:
            return
        await client.guard(self._start_session(client), context="xmpp.on_start")

    async def _start_session(self, client: BaseXMPPBot) -> None:
        client.send_presence()
        try:
            await asyncio.wait_for(client.get_roster(), timeout=_STARTUP_TIMEOUT_S)
            await asyncio.wait_for(
                client["xep_0280"].enable(), timeout=_STARTUP_TIMEOUT_S  # type: ignore[attr-defined,union-attr]
            )
        except asyncio.TimeoutError:
            log.error("Startup timed out during roster/carbons")
            client.disconnect()
            return

        resource = client.boundjid.resource
        if resource and self.auth_state.creds.get("resource") != resource:
            self.auth_state.creds["resource"] = resource
            await self.events.emit(CREDS_UPDATE, {"resource": resource})

        client.set_connected(True)
        await self.events.emit(CONNECTION_UPDATE, ConnectionUpdate(connection="open"))

    async def _on_failed_auth(self, event):
        log.error(f"Authentication failed for {self.jid}")
        if self.client is not None:
            self.client.set_connected(False)
        await self._emit_close(
            STATUS_LOGGED_OUT, SessionUnavailableError("Authentication failed")
        )
        if self.client is not None:
            self.client.disconnect()

    async def _on_connection_failed(self, event):
        if self.client is not None:
            self.client.set_connected(False)
            # slixmpp would otherwise keep retrying on its own.
            self.client.cancel_connection_attempt()
        if self._closing:
            return
        await self._emit_close(STATUS_TIMED_OUT, ConnectionError(str(event or "connect failed")))

    async def _on_disconnected(self, event):
        if self.client is not None:
            self.client.set_connected(False)
        if self._closing:
            log.info("Disconnected during shutdown")
            return
        await self._emit_close(
            STATUS_CONNECTION_CLOSED, ConnectionError(str(event or "connection closed"))
        )

    async def _on_message(self, msg):
        if msg["type"] not in ("chat", "normal"):
            return
        client = self.client
        if client is None:
            return
        from_me = str(msg["from"].bare) == client.boundjid.bare
        await self._emit_messages(msg, from_me=from_me)

    async def _on_carbon_sent(self, msg):
        # Copies of messages our account sent from another client.
        await self._emit_messages(msg["carbon_sent"], from_me=True)

    async def _emit_messages(self, msg, *, from_me: bool) -> None:
        delayed = is_delayed(msg)
        if delayed and not self.sync_full_history:
            return
        upsert = MessagesUpsert(
            messages=[to_incoming_message(msg, from_me=from_me)],
            type="append" if delayed else "notify",
        )
        await self.events.emit(MESSAGES_UPSERT, upsert)


class XMPPSessionProvider:
    def __init__(
        self,
        server: str,
        *,
        port: int = 5222,
        use_tls: bool = False,
        jid: str | None = None,
        password: str | None = None,
    ):
        self.server = server
        self.port = port
        self.use_tls = use_tls
        self.seed_jid = (jid or "").strip()
        self.seed_password = password or ""

    async def fetch_latest_version(self) -> str:
        return f"slixmpp/{slixmpp.__version__}"

    def create_session(
        self,
        auth_state: AuthState,
        *,
        version: str,
        sync_full_history: bool = False,
    ) -> XMPPSession:
        seeded = False
        if not auth_state.is_registered and self.seed_jid and self.seed_password:
            auth_state.creds.update({"jid": self.seed_jid, "password": self.seed_password})
            seeded = True
        return XMPPSession(
            auth_state,
            server=self.server,
            port=self.port,
            use_tls=self.use_tls,
            version=version,
            sync_full_history=sync_full_history,
            seeded=seeded,
        )
