"""Short-lived read-through cache for derived port products.

Congestion snapshots and pre-arrival reports are keyed by (kind, port code)
and expire after a fixed TTL. Concurrent readers may race and recompute the
same entry; the last write wins.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotCache:
    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[float, Any]] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, kind: str, port_code: str) -> Any | None:
        key = (kind, port_code.upper())
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self._ttl:
                del self._entries[key]
                return None
            return value

    def set(self, kind: str, port_code: str, value: Any) -> None:
        with self._lock:
            self._entries[(kind, port_code.upper())] = (self._clock(), value)

    def get_or_compute(self, kind: str, port_code: str, compute: Callable[[], T]) -> tuple[T, bool]:
        """Return ``(value, hit)``; *compute* runs outside the lock on a miss."""
        cached = self.get(kind, port_code)
        if cached is not None:
            return cached, True
        value = compute()
        self.set(kind, port_code, value)
        return value, False

    def invalidate(self, port_code: str | None = None) -> int:
        """Drop entries for one port (all kinds), or everything when *port_code* is None."""
        with self._lock:
            if port_code is None:
                dropped = len(self._entries)
                self._entries.clear()
            else:
                upper = port_code.upper()
                keys = [k for k in self._entries if k[1] == upper]
                for k in keys:
                    del self._entries[k]
                dropped = len(keys)
        if dropped:
            logger.debug("Snapshot cache: invalidated %d entr%s", dropped, "y" if dropped == 1 else "ies")
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
