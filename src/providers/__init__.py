from __future__ import annotations

from .xmpp import XMPPSession, XMPPSessionProvider

__all__ = ["XMPPSession", "XMPPSessionProvider"]
