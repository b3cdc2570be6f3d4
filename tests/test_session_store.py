"""Tests for the expiring session store."""

from leaderboard_sync.core.session_store import SessionStore


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestSessionStore:
    """TTL behaviour of SessionStore."""

    def test_get_before_and_after_expiry(self):
        clock = FakeClock()
        store = SessionStore(default_ttl=60, clock=clock)
        store.set("k", "v")

        clock.advance(59)
        assert store.get("k") == "v"
        clock.advance(1)
        assert store.get("k") is None
        assert len(store) == 0

    def test_explicit_ttl_overrides_default(self):
        clock = FakeClock()
        store = SessionStore(default_ttl=60, clock=clock)
        store.set("short", 1, ttl=5)
        clock.advance(10)
        assert store.get("short") is None

    def test_sweep_removes_only_expired(self):
        clock = FakeClock()
        store = SessionStore(default_ttl=60, clock=clock)
        store.set("old", 1, ttl=10)
        store.set("new", 2, ttl=100)
        clock.advance(20)

        assert store.sweep() == 1
        assert len(store) == 1
        assert store.get("new") == 2

    def test_delete(self):
        store = SessionStore()
        store.set("k", "v")
        store.delete("k")
        store.delete("missing")
        assert store.get("k") is None

    def test_full_store_evicts_entry_closest_to_expiry(self):
        clock = FakeClock()
        store = SessionStore(default_ttl=60, max_entries=2, clock=clock)
        store.set("a", 1, ttl=10)
        store.set("b", 2, ttl=50)
        store.set("c", 3, ttl=30)

        assert len(store) == 2
        assert store.get("a") is None
        assert store.get("b") == 2
        assert store.get("c") == 3

    def test_overwrite_existing_key_when_full(self):
        store = SessionStore(max_entries=1)
        store.set("a", 1)
        store.set("a", 2)
        assert store.get("a") == 2
