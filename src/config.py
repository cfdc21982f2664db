from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from src.lifecycle.connection import ReconnectPolicy

_log = logging.getLogger("relay.config")

DEFAULT_PORT = 3002
DEFAULT_CORE_CALLBACK = "http://localhost:18790/inbound"


@dataclass(frozen=True)
class XMPPConfig:
    server: str
    port: int
    use_tls: bool
    jid: str | None
    password: str | None


@dataclass(frozen=True)
class RelayConfig:
    auth_dir: Path
    host: str
    port: int
    core_callback: str
    core_timeout_s: float
    reconnect: ReconnectPolicy
    xmpp: XMPPConfig
    log_level: str


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_number(name: str, default: float, cast=float):
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        _log.warning(f"Invalid {name}={raw!r}; using {default}")
        return default


def _default_auth_dir() -> Path:
    default = Path.home() / ".switch" / "relay-auth"
    return Path(os.getenv("SWITCH_RELAY_AUTH_DIR", str(default))).expanduser()


def _reconnect_policy() -> ReconnectPolicy:
    max_delay = _env_number("SWITCH_RECONNECT_MAX_DELAY_S", 0.0)
    return ReconnectPolicy(
        delay_s=_env_number("SWITCH_RECONNECT_DELAY_S", 3.0),
        backoff=_env_number("SWITCH_RECONNECT_BACKOFF", 1.0),
        max_delay_s=max_delay or None,
        max_attempts=_env_number("SWITCH_RECONNECT_MAX_ATTEMPTS", 0, int),
    )


def get_relay_config() -> RelayConfig:
    """Get relay configuration from environment (call load_env() first)."""
    host = (os.getenv("SWITCH_RELAY_HOST") or "127.0.0.1").strip() or "127.0.0.1"
    port = _env_number("SWITCH_RELAY_PORT", 0, int) or _env_number("PORT", DEFAULT_PORT, int)
    core_callback = (
        os.getenv("SWITCH_CORE_CALLBACK") or DEFAULT_CORE_CALLBACK
    ).strip()

    return RelayConfig(
        auth_dir=_default_auth_dir(),
        host=host,
        port=port,
        core_callback=core_callback,
        core_timeout_s=_env_number("SWITCH_CORE_TIMEOUT_S", 10.0),
        reconnect=_reconnect_policy(),
        xmpp=XMPPConfig(
            server=os.getenv("XMPP_SERVER", "localhost"),
            port=_env_number("XMPP_PORT", 5222, int),
            use_tls=_env_flag("XMPP_USE_TLS"),
            jid=(os.getenv("XMPP_JID") or "").strip() or None,
            password=os.getenv("XMPP_PASSWORD") or None,
        ),
        log_level=(os.getenv("SWITCH_LOG_LEVEL") or "INFO").strip().upper(),
    )
