"""In-memory key-value stores for per-user and per-chat state.

Nothing is evicted by default. A `ttl_seconds` turns on lazy expiry, so an
eviction policy can be added later without touching any caller.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Generic, Iterator, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class KeyValueStore(Generic[K, V]):
    """Typed mapping with an optional per-entry time-to-live."""

    def __init__(
        self,
        name: str,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._items: Dict[K, tuple[V, float]] = {}

    def _expired(self, stored_at: float) -> bool:
        return self.ttl_seconds is not None and self._clock() - stored_at > self.ttl_seconds

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        item = self._items.get(key)
        if item is None:
            return default
        value, stored_at = item
        if self._expired(stored_at):
            del self._items[key]
            return default
        return value

    def set(self, key: K, value: V) -> None:
        """Store value, replacing whatever was there."""
        self._items[key] = (value, self._clock())

    def pop(self, key: K) -> Optional[V]:
        item = self._items.pop(key, None)
        if item is None or self._expired(item[1]):
            return None
        return item[0]

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return sum(1 for _ in self.keys())

    def keys(self) -> Iterator[K]:
        for key in list(self._items):
            if self.get(key) is not None:
                yield key

    def clear(self) -> None:
        self._items.clear()

    def __repr__(self) -> str:
        return f"KeyValueStore({self.name!r}, size={len(self._items)})"
