"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("SYNC_API_KEY", "test-sync-key")
os.environ.setdefault("ENCRYPTION_KEY", "")
os.environ.setdefault("SYNC_INTERVAL_SECONDS", "0")

from datetime import datetime, timedelta, timezone

import pytest

from fakes import FakeSyncStore, make_trader


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def recent(now) -> datetime:
    """A close time well inside the 30-day window."""
    return now - timedelta(days=3)


@pytest.fixture
def tradesyncer_trader():
    return make_trader("alice", "tradesyncer", {"api_key": "ts-key"})


@pytest.fixture
def tradovate_trader():
    return make_trader(
        "bob",
        "tradovate",
        {"username": "bob", "password": "pw"},
    )


@pytest.fixture
def store(tradesyncer_trader) -> FakeSyncStore:
    return FakeSyncStore([tradesyncer_trader])
