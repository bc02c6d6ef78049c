"""
In-process staging store.

Entries are kept as (serialized value, expires_at) pairs. Reads drop expired
entries eagerly; a daemon sweeper reclaims the ones nobody reads again.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Optional

from .base import DEFAULT_TTL_SECONDS, StagingStore, deserialize, serialize

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 300


class MemoryStagingStore(StagingStore):
    """Thread-safe dict-backed store with per-key expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        try:
            serialized = serialize(value)
        except (TypeError, ValueError) as e:
            logger.error("Error storing session data for %s: %s", key, e)
            return False

        expires_at = self._clock() + ttl_seconds
        with self._lock:
            self._entries[key] = (serialized, expires_at)
        logger.debug("Session data stored in memory: %s", key)
        return True

    def _live_entry(self, key: str) -> Optional[str]:
        # Caller holds the lock
        entry = self._entries.get(key)
        if entry is None:
            return None
        serialized, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            logger.debug("Session data expired: %s", key)
            return None
        return serialized

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            serialized = self._live_entry(key)
        if serialized is None:
            return None
        return deserialize(serialized)

    def delete(self, key: str) -> bool:
        with self._lock:
            self._entries.pop(key, None)
        logger.debug("Session data deleted from memory: %s", key)
        return True

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def sweep_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Cleaned up %d expired session entries", len(expired))
        return len(expired)

    def start_sweeper(self, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> None:
        """Start the background sweeper thread (idempotent)."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        self._stop_event.clear()

        def _run() -> None:
            while not self._stop_event.wait(interval_seconds):
                self.sweep_expired()

        self._sweeper = threading.Thread(
            target=_run, name="staging-sweeper", daemon=True
        )
        self._sweeper.start()
        logger.debug("Started staging sweeper (interval=%ss)", interval_seconds)

    def close(self) -> None:
        """Stop the sweeper thread if running."""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None
