"""
Time-bounded cache for reference data embedded in extraction prompts.

The clock is injected so expiry is testable without sleeping, and the
instance is owned by whoever builds the gateway rather than living at
module level.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass
class CacheEntry:
    value: Any
    loaded_at: float


class PromptDataCache:
    """Key -> value cache with TTL expiry and explicit invalidation."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value for ``key``, calling ``loader`` on miss or expiry."""
        with self._lock:
            entry = self._entries.get(key)
            now = self.clock()
            if entry is not None and now - entry.loaded_at < self.ttl_seconds:
                return entry.value
            value = loader()
            self._entries[key] = CacheEntry(value=value, loaded_at=now)
            return value

    def peek(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything when ``key`` is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
