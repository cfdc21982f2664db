"""Process-wide session registry.

A single slot holding the live session. The lifecycle manager is the only
writer; relays read it through `current()` and must cope with None.
Everything runs on one event loop, so no lock is needed.
"""

from __future__ import annotations

from src.session.ports import Session


class SessionRegistry:
    def __init__(self) -> None:
        self._session: Session | None = None

    def current(self) -> Session | None:
        return self._session

    def is_current(self, session: Session) -> bool:
        return self._session is session

    def replace(self, session: Session) -> Session | None:
        previous, self._session = self._session, session
        return previous

    def clear(self, expected: Session | None = None) -> bool:
        if expected is not None and self._session is not expected:
            return False
        self._session = None
        return True
