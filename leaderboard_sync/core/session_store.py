import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    expires_at: float


class SessionStore:
    """Expiring key-value store for short-lived upstream sessions.

    Owned by whoever builds the connectors (the app lifespan, or a test) and
    handed to them explicitly. Expired entries are invisible to ``get`` and are
    physically removed by ``sweep``.
    """

    def __init__(
        self,
        default_ttl: float = 3600,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if len(self._entries) >= self.max_entries and key not in self._entries:
            self.sweep()
            if len(self._entries) >= self.max_entries:
                oldest = min(self._entries, key=lambda k: self._entries[k].expires_at)
                del self._entries[oldest]
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.value

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def sweep(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("[SESSIONS] Swept %d expired entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
