#!/usr/bin/env python3
"""
Shared utilities for relay components.
"""

import asyncio
import logging
import os
from pathlib import Path

from slixmpp.clientxmpp import ClientXMPP


# =============================================================================
# Environment Loading
# =============================================================================


def load_env(env_path: Path | None = None) -> None:
    """Load .env file into os.environ. Handles quoted values and spaces."""
    if env_path is None:
        env_path = Path(__file__).parent.parent / ".env"

    if not env_path.exists():
        return

    for line in env_path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, val = line.split("=", 1)
            val = val.strip().strip('"').strip("'")
            os.environ[key.strip()] = val


# =============================================================================
# Base XMPP Bot
# =============================================================================


class BaseXMPPBot(ClientXMPP):
    """
    Base class for XMPP clients with common setup.

    Provides:
    - Standard plugin registration (xep_0199, xep_0085, xep_0280)
    - Plain or STARTTLS connect
    - Connected-state tracking
    - A logging error boundary for event handlers
    """

    def __init__(self, jid: str, password: str):
        super().__init__(jid, password)
        self.log = logging.getLogger("xmpp")
        self._connected_event = asyncio.Event()

        # Common plugins
        self.register_plugin("xep_0199")  # Ping
        self.register_plugin("xep_0085")  # Chat State Notifications
        self.register_plugin("xep_0280")  # Message Carbons

    def connect_to_server(self, server: str, port: int = 5222, *, use_tls: bool = False):
        """Connect with standard settings (unencrypted unless use_tls)."""
        if use_tls:
            self.enable_starttls = True
            self.enable_plaintext = False
        else:
            self["feature_mechanisms"].unencrypted_plain = True  # type: ignore[attr-defined]
            self.enable_starttls = False
            self.enable_plaintext = True
        self.enable_direct_tls = False
        # slixmpp.ClientXMPP.connect expects a single address tuple.
        # TLS behavior is governed by the enable_* flags above.
        self.connect((server, port))  # type: ignore[arg-type]

    def set_connected(self, connected: bool) -> None:
        if connected:
            self._connected_event.set()
        else:
            self._connected_event.clear()

    def is_connected(self) -> bool:
        return self._connected_event.is_set()

    def send_chat(self, to: str, text: str) -> str:
        """Send a chat message; return its stanza id."""
        if not to:
            raise ValueError("No recipient specified")
        msg = self.make_message(mto=to, mbody=text, mtype="chat")
        msg["chat_state"] = "active"
        msg.send()
        return str(msg["id"] or "")

    async def guard(self, coro, *, context: str | None = None):
        """Run a coroutine with a single error boundary.

        - Lets internal code raise normally.
        - Catches at the boundary and logs.
        """

        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception:
            if context:
                self.log.exception(f"Unhandled error ({context})")
            else:
                self.log.exception("Unhandled error")
            return None
