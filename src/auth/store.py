"""Credential store.

Credentials live in one directory as `creds.json`. The session provider owns
the contents; the bridge only loads them at startup and triggers
`save_creds()` when the provider reports an update.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

log = logging.getLogger("relay.auth")

CREDS_FILE = "creds.json"


def _read_json(path: Path) -> Any | None:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning(f"Ignoring unreadable credential file {path}: {e}")
        return None


def _write_json(path: Path, data: Any) -> None:
    """Write JSON atomically with owner-only permissions."""
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=True, indent=2, sort_keys=True)
        os.chmod(tmp, 0o600)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


@dataclass
class AuthState:
    directory: Path
    creds: dict[str, Any] = field(default_factory=dict)

    @property
    def is_registered(self) -> bool:
        return bool(self.creds.get("jid") and self.creds.get("password"))


def load_auth_state(directory: str | Path) -> tuple[AuthState, Callable[[], None]]:
    """Load credentials from `directory`; return (state, save_creds)."""
    base = Path(directory).expanduser()
    base.mkdir(parents=True, exist_ok=True)
    try:
        os.chmod(base, 0o700)
    except OSError:
        log.debug(f"Could not restrict permissions on {base}", exc_info=True)

    raw = _read_json(base / CREDS_FILE)
    creds = raw if isinstance(raw, dict) else {}
    state = AuthState(directory=base, creds=creds)

    def save_creds() -> None:
        _write_json(base / CREDS_FILE, state.creds)
        log.debug(f"Saved credentials to {base / CREDS_FILE}")

    return state, save_creds


def clear_auth_state(directory: str | Path) -> int:
    """Delete stored credential files. Returns the number removed."""
    base = Path(directory).expanduser()
    if not base.is_dir():
        return 0
    removed = 0
    for path in base.glob("*.json"):
        path.unlink(missing_ok=True)
        removed += 1
    return removed
