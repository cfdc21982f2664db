"""Relay-specific exceptions.

These let the HTTP boundary map failures to status codes without scraping
strings.
"""

from __future__ import annotations


class RelayError(RuntimeError):
    """Base class for relay errors."""


class SessionUnavailableError(RelayError):
    """No live session, or the session handle has been superseded/closed."""

    def __init__(self, message: str = "Not connected"):
        super().__init__(message)


class SendError(RelayError):
    """The session rejected or could not deliver a message."""

    def __init__(self, to: str, detail: str | None = None):
        self.to = to
        self.detail = detail
        super().__init__(self.__str__())

    def __str__(self) -> str:
        detail = (self.detail or "").strip()
        if detail:
            return f"Send to {self.to} failed: {detail}"
        return f"Send to {self.to} failed"
