"""
Shared pytest fixtures for relay tests.

Provides a fake session provider so the lifecycle manager and relays can be
driven with synthetic events, without a real messaging server.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.lifecycle.connection import ConnectionManager, ReconnectPolicy
from src.registry import SessionRegistry
from src.relay.inbound import InboundRelay
from src.session.events import SessionEvents


class FakeSession:
    def __init__(self, auth_state, version: str, sync_full_history: bool):
        self.auth_state = auth_state
        self.version = version
        self.sync_full_history = sync_full_history
        self.events = SessionEvents(name="fake")
        self.send_message = AsyncMock(return_value="msg-1")
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True


class FakeProvider:
    def __init__(self):
        self.sessions: list[FakeSession] = []
        self.version_failures = 0

    async def fetch_latest_version(self) -> str:
        if self.version_failures:
            self.version_failures -= 1
            raise ConnectionError("version endpoint unreachable")
        return "fake/1.0"

    def create_session(self, auth_state, *, version: str, sync_full_history: bool = False):
        session = FakeSession(auth_state, version, sync_full_history)
        self.sessions.append(session)
        return session


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def notify():
    return AsyncMock(return_value=True)


@pytest.fixture
def render_pairing():
    return MagicMock()


@pytest.fixture
def manager(provider, registry, notify, render_pairing, tmp_path):
    return ConnectionManager(
        provider,
        auth_dir=tmp_path / "auth",
        registry=registry,
        inbound=InboundRelay(notify),
        policy=ReconnectPolicy(delay_s=0.01),
        render_pairing=render_pairing,
    )
