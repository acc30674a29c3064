"""
Per-browser query cache with explicit invalidation.

Why: Page data is fetched independently and may be stale; it stays cached for
`stale_seconds` and every successful mutation invalidates the keys it
affects. Keys are tuples so a prefix such as `("purchase_requests",)` drops
every list variant at once.

A load that was in flight when the cache was invalidated returns its result
to the caller but does not store it. Expired entries are purged on write.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Tuple
import time

QueryKey = Tuple[Any, ...]

DEFAULT_STALE_SECONDS = 300


@dataclass
class _CacheEntry:
    value: Any
    expires_at: float


class QueryCache:
    def __init__(self, stale_seconds: float = DEFAULT_STALE_SECONDS):
        self.stale_seconds = stale_seconds
        self._entries: Dict[QueryKey, _CacheEntry] = {}
        # Bumped by invalidate() and clear(); loads started earlier are not stored.
        self._generation = 0

    async def fetch(self, key: QueryKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for `key` or load and cache it.

        Loader errors propagate and nothing is cached.
        """
        now = time.monotonic()
        entry = self._entries.get(key)
        if entry and entry.expires_at > now:
            return entry.value
        generation = self._generation
        value = await loader()
        if generation != self._generation:
            return value
        now = time.monotonic()
        self._purge_expired(now)
        self._entries[key] = _CacheEntry(value=value, expires_at=now + self.stale_seconds)
        return value

    def _purge_expired(self, now: float) -> None:
        for key in [k for k, e in self._entries.items() if e.expires_at <= now]:
            del self._entries[key]

    def invalidate(self, *prefixes: QueryKey) -> None:
        """Drop every entry whose key starts with one of `prefixes`."""
        self._generation += 1
        for key in list(self._entries):
            if any(key[: len(p)] == p for p in prefixes):
                self._entries.pop(key, None)

    def clear(self) -> None:
        self._generation += 1
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.expires_at > time.monotonic())
