"""
Process-local TTL cache for capability probe results.

Entries expire lazily: an expired entry is reported as a miss and dropped on
the next ``get`` of its key, and every ``set`` sweeps all expired entries so
keys that are never read again do not accumulate.  The clock is injectable
so tests can advance time without sleeping.

Typical usage (in capabilities.py)
----------------------------------
    cache = TTLCache(default_ttl=86400)

    key = eip2612_support_key(chain_id, token)
    cache.set(key, True)
    cache.get(key)  # -> True, until the TTL elapses

Keys helpers
------------
- eip2612_support_key(chain_id, token) -> "eip2612:<chainId>:<token lower>"
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


def eip2612_support_key(chain_id: int, token: str) -> str:
    return f"eip2612:{int(chain_id)}:{token.lower()}"


@dataclass
class CacheEntry:
    value: Any
    expires_at: Optional[float]  # clock timestamp or None


class TTLCache:
    """
    Thread-safe key/value cache with per-entry TTL.

    ``set`` with ``value=None`` is ignored so a missing probe result is never
    mistaken for a cached one.  Concurrent writers simply overwrite each
    other; the last write wins.
    """

    def __init__(self, *, default_ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.RLock()
        self._map: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            entry = self._map.get(key)
            if entry is None:
                return None
            if entry.expires_at is not None and now >= entry.expires_at:
                del self._map[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if value is None:
            return
        ttl = self.default_ttl if ttl is None else ttl
        now = self._clock()
        expires_at = now + ttl if ttl else None
        with self._lock:
            self._purge_expired(now)
            self._map[key] = CacheEntry(value=value, expires_at=expires_at)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, e in self._map.items() if e.expires_at is not None and now >= e.expires_at]
        for k in expired:
            del self._map[k]

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._map.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._map.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._map)
