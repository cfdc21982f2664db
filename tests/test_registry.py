from unittest.mock import MagicMock

from src.registry import SessionRegistry


def test_starts_empty():
    assert SessionRegistry().current() is None


def test_replace_returns_previous():
    registry = SessionRegistry()
    first, second = MagicMock(), MagicMock()

    assert registry.replace(first) is None
    assert registry.replace(second) is first
    assert registry.current() is second
    assert registry.is_current(second)
    assert not registry.is_current(first)


def test_clear_only_when_expected_matches():
    registry = SessionRegistry()
    first, second = MagicMock(), MagicMock()
    registry.replace(second)

    assert registry.clear(expected=first) is False
    assert registry.current() is second
    assert registry.clear(expected=second) is True
    assert registry.current() is None
