from pathlib import Path

import pytest

from src.config import get_relay_config

_VARS = [
    "SWITCH_RELAY_AUTH_DIR",
    "SWITCH_RELAY_HOST",
    "SWITCH_RELAY_PORT",
    "PORT",
    "SWITCH_CORE_CALLBACK",
    "SWITCH_CORE_TIMEOUT_S",
    "SWITCH_RECONNECT_DELAY_S",
    "SWITCH_RECONNECT_BACKOFF",
    "SWITCH_RECONNECT_MAX_DELAY_S",
    "SWITCH_RECONNECT_MAX_ATTEMPTS",
    "XMPP_SERVER",
    "XMPP_PORT",
    "XMPP_USE_TLS",
    "XMPP_JID",
    "XMPP_PASSWORD",
    "SWITCH_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    cfg = get_relay_config()

    assert cfg.port == 3002
    assert cfg.host == "127.0.0.1"
    assert cfg.core_callback == "http://localhost:18790/inbound"
    assert cfg.auth_dir == Path.home() / ".switch" / "relay-auth"
    assert cfg.reconnect.delay_s == 3.0
    assert cfg.reconnect.backoff == 1.0
    assert cfg.reconnect.max_delay_s is None
    assert cfg.reconnect.max_attempts == 0
    assert cfg.xmpp.jid is None
    assert cfg.log_level == "INFO"


def test_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("SWITCH_RELAY_AUTH_DIR", str(tmp_path))
    monkeypatch.setenv("SWITCH_RELAY_PORT", "4100")
    monkeypatch.setenv("SWITCH_CORE_CALLBACK", "http://core:9000/inbound")
    monkeypatch.setenv("SWITCH_RECONNECT_DELAY_S", "1.5")
    monkeypatch.setenv("SWITCH_RECONNECT_BACKOFF", "2")
    monkeypatch.setenv("SWITCH_RECONNECT_MAX_DELAY_S", "30")
    monkeypatch.setenv("SWITCH_RECONNECT_MAX_ATTEMPTS", "10")
    monkeypatch.setenv("XMPP_JID", "relay@example.org")
    monkeypatch.setenv("XMPP_USE_TLS", "yes")

    cfg = get_relay_config()

    assert cfg.auth_dir == tmp_path
    assert cfg.port == 4100
    assert cfg.core_callback == "http://core:9000/inbound"
    assert cfg.reconnect.delay_for(1) == 1.5
    assert cfg.reconnect.delay_for(10) == 30
    assert cfg.reconnect.max_attempts == 10
    assert cfg.xmpp.jid == "relay@example.org"
    assert cfg.xmpp.use_tls is True


def test_port_falls_back_to_generic_port(monkeypatch):
    monkeypatch.setenv("PORT", "3999")
    assert get_relay_config().port == 3999


def test_invalid_numbers_use_defaults(monkeypatch):
    monkeypatch.setenv("SWITCH_RELAY_PORT", "not-a-port")
    monkeypatch.setenv("SWITCH_RECONNECT_DELAY_S", "soon")

    cfg = get_relay_config()

    assert cfg.port == 3002
    assert cfg.reconnect.delay_s == 3.0
