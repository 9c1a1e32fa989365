"""
In-Memory Store
===============
Lock-guarded key-value store with lazy TTL expiry.

State lives in process memory and is lost on restart, which resets rate
windows and quota counters. An external store can be swapped in by
implementing ``KeyValueStore``.
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, TypeVar

R = TypeVar("R")

Updater = Callable[[Optional[Any]], Tuple[Optional[Any], R]]


class KeyValueStore(Protocol):
    """Storage contract required by the verification engine."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None: ...

    def delete(self, key: str) -> bool: ...

    def update(self, key: str, fn: Updater, ttl: Optional[float] = None) -> Any: ...

    def keys(self, prefix: str = "") -> List[str]: ...


class InMemoryStore:
    """
    Dict-backed store guarded by a single re-entrant lock.

    ``update`` is the atomic read-modify-write primitive: ``fn`` receives the
    current value (or None) and returns ``(new_value, result)``. A
    ``new_value`` of None deletes the key. ``fn`` runs under the lock, so it
    must not block.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.RLock()

    def _live(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def _expiry(self, ttl: Optional[float]) -> Optional[float]:
        return self._clock() + ttl if ttl is not None else None

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._live(key)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._data[key] = (value, self._expiry(ttl))

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def update(self, key: str, fn: Updater, ttl: Optional[float] = None) -> Any:
        with self._lock:
            current = self._live(key)
            new_value, result = fn(current)
            if new_value is None:
                self._data.pop(key, None)
            else:
                if ttl is None and key in self._data:
                    # keep the existing expiry when no new ttl is given
                    expires_at = self._data[key][1]
                else:
                    expires_at = self._expiry(ttl)
                self._data[key] = (new_value, expires_at)
            return result

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [k for k in list(self._data) if k.startswith(prefix) and self._live(k) is not None]

    def cleanup(self) -> int:
        """Drop expired entries. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [
                key for key, (_, expires_at) in self._data.items()
                if expires_at is not None and now >= expires_at
            ]
            for key in expired:
                del self._data[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self.keys())
