from __future__ import annotations

from .store import AuthState, clear_auth_state, load_auth_state

__all__ = ["AuthState", "clear_auth_state", "load_auth_state"]
