"""Connection lifecycle.

Owns the single live session: creates it, wires its events, registers it,
and decides reconnect versus terminal stop when it closes.

State machine (driven by `connection.update` events):

    CONNECTING --qr--> AWAITING_PAIRING
    any --open--> OPEN
    any --close(transient)--> CLOSED, one delayed connect() scheduled
    any --close(401)--> CLOSED, logged out, no automatic recovery
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from src.auth.store import CREDS_FILE, load_auth_state
from src.lifecycle.pairing import render_pairing_code
from src.registry import SessionRegistry
from src.relay.inbound import InboundRelay
from src.session.ports import (
    CONNECTION_UPDATE,
    CREDS_UPDATE,
    MESSAGES_UPSERT,
    ConnectionUpdate,
    Session,
    SessionProvider,
)

log = logging.getLogger("relay.lifecycle")

LOGGED_OUT_STATUS = 401


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    AWAITING_PAIRING = "awaiting_pairing"
    OPEN = "open"
    CLOSED = "closed"


class DisconnectReason(str, Enum):
    AUTHENTICATION_REVOKED = "authentication_revoked"
    TRANSIENT = "transient"

    @property
    def is_terminal(self) -> bool:
        return self is DisconnectReason.AUTHENTICATION_REVOKED


def classify_disconnect(status_code: int | None) -> DisconnectReason:
    if status_code == LOGGED_OUT_STATUS:
        return DisconnectReason.AUTHENTICATION_REVOKED
    return DisconnectReason.TRANSIENT


@dataclass(frozen=True)
class ReconnectPolicy:
    """Delay between reconnect attempts.

    Defaults to a fixed delay retried forever. `backoff > 1` grows the delay
    geometrically up to `max_delay_s`; `max_attempts > 0` bounds the retries.
    """

    delay_s: float = 3.0
    backoff: float = 1.0
    max_delay_s: float | None = None
    max_attempts: int = 0

    def delay_for(self, attempt: int) -> float:
        delay = self.delay_s * (self.backoff ** max(0, attempt - 1))
        if self.max_delay_s is not None:
            delay = min(delay, self.max_delay_s)
        return max(0.0, delay)

    def allows(self, attempt: int) -> bool:
        return self.max_attempts <= 0 or attempt <= self.max_attempts


class ConnectionManager:
    def __init__(
        self,
        provider: SessionProvider,
        *,
        auth_dir: str | Path,
        registry: SessionRegistry,
        inbound: InboundRelay,
        policy: ReconnectPolicy | None = None,
        render_pairing: Callable[[str], None] = render_pairing_code,
    ):
        self.provider = provider
        self.auth_dir = Path(auth_dir).expanduser()
        self.registry = registry
        self.inbound = inbound
        self.policy = policy or ReconnectPolicy()
        self._render_pairing = render_pairing

        self.state = ConnectionState.CLOSED
        self.last_reason: DisconnectReason | None = None
        self.logged_out = False
        self.shutting_down = False

        self._attempt = 0
        self._connecting = False
        self._reconnect_task: asyncio.Task | None = None
        self._open = asyncio.Event()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def connect(self) -> None:
        """Establish (or re-establish) the one live session."""
        if self.shutting_down or self._connecting:
            return
        self._connecting = True
        self.logged_out = False
        self._set_state(ConnectionState.CONNECTING)
        session: Session | None = None
        try:
            state, save_creds = load_auth_state(self.auth_dir)
            version = await self.provider.fetch_latest_version()
            session = self.provider.create_session(
                state, version=version, sync_full_history=False
            )
            self._subscribe(session, save_creds)

            previous = self.registry.replace(session)
            if previous is not None and previous is not session:
                await self._retire(previous)

            log.info(f"Connecting (provider version {version})")
            await session.start()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.exception("Connect attempt failed")
            if session is not None:
                self.registry.clear(expected=session)
            if self.logged_out:
                # The session already reported a terminal close.
                return
            self._on_closed(
                session, DisconnectReason.TRANSIENT, ConnectionUpdate("close", error=e)
            )
        finally:
            self._connecting = False

    async def wait_open(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._open.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def close(self) -> None:
        self.shutting_down = True
        task = self._reconnect_task
        self._reconnect_task = None
        if task and not task.done():
            task.cancel()
        session = self.registry.current()
        self.registry.clear()
        if session is not None:
            await self._retire(session)
        self._set_state(ConnectionState.CLOSED)

    # -------------------------------------------------------------------------
    # Session wiring
    # -------------------------------------------------------------------------

    def _subscribe(self, session: Session, save_creds: Callable[[], None]) -> None:
        def on_creds_update(_update: object) -> None:
            save_creds()

        def on_connection_update(update: ConnectionUpdate) -> None:
            self._on_connection_update(session, update)

        session.events.on(CREDS_UPDATE, on_creds_update)
        session.events.on(CONNECTION_UPDATE, on_connection_update)
        session.events.on(MESSAGES_UPSERT, self.inbound.handle_upsert)

    async def _retire(self, session: Session) -> None:
        # Superseded sessions must not feed events back into the relay.
        session.events.remove_all()
        try:
            await session.close()
        except asyncio.CancelledError:
            raise
        except Exception:
            log.warning("Error closing superseded session", exc_info=True)

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        self.state = state
        if state is ConnectionState.OPEN:
            self._open.set()
        else:
            self._open.clear()

    def _on_connection_update(self, session: Session, update: ConnectionUpdate) -> None:
        if not self.registry.is_current(session):
            log.debug("Ignoring connection update from superseded session")
            return

        if update.qr:
            self._set_state(ConnectionState.AWAITING_PAIRING)
            self._render_pairing(update.qr)

        if update.connection == "close":
            self._on_closed(session, classify_disconnect(update.status_code), update)
        elif update.connection == "open":
            self._attempt = 0
            self.last_reason = None
            self._set_state(ConnectionState.OPEN)
            log.info("Connected.")
        elif update.connection == "connecting" and not update.qr:
            self._set_state(ConnectionState.CONNECTING)

    def _on_closed(
        self,
        session: Session | None,
        reason: DisconnectReason,
        update: ConnectionUpdate,
    ) -> None:
        self._set_state(ConnectionState.CLOSED)
        self.last_reason = reason

        if reason.is_terminal:
            self.logged_out = True
            task = self._reconnect_task
            self._reconnect_task = None
            if task and not task.done():
                task.cancel()
            if session is not None:
                self.registry.clear(expected=session)
            detail = f": {update.error}" if update.error else ""
            log.error(f"Logged out (status {update.status_code}){detail}; not reconnecting.")
            if (self.auth_dir / CREDS_FILE).exists():
                log.error(
                    f"Run `switch-relay --logout` (clears {self.auth_dir}) "
                    "and restart to pair again."
                )
            else:
                log.error("No stored credentials; configure the provider's login and restart.")
            return

        detail = update.error or f"status {update.status_code}"
        if self._schedule_reconnect():
            log.warning(f"Connection closed ({detail}); reconnecting...")

    def _schedule_reconnect(self) -> bool:
        if self.shutting_down or self.logged_out:
            return False
        if self.reconnect_pending:
            log.debug("Reconnect already scheduled; skipping duplicate")
            return False
        attempt = self._attempt + 1
        if not self.policy.allows(attempt):
            log.error(f"Giving up reconnect after {self._attempt} attempts")
            return False
        self._attempt = attempt
        delay = self.policy.delay_for(attempt)
        self._reconnect_task = asyncio.ensure_future(self._reconnect_after(delay))
        return True

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # Clear before connecting so a failing attempt can schedule the next one.
        self._reconnect_task = None
        if self.shutting_down or self.logged_out:
            return
        await self.connect()
