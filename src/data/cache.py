"""
In-memory caching for API responses.

Entries are kept after they go stale so they can be served as a fallback
when a refresh fails. Nothing is persisted across process restarts.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from config import CACHE_PRUNE_GRACE_FACTOR
from utils.clock import Clock, SystemClock


@dataclass
class CacheEntry:
    """A cached API response."""

    key: str
    value: Any
    fetched_at: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.fetched_at


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of the cache contents."""

    size: int
    keys: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"size": self.size, "keys": list(self.keys)}


class CacheStore:
    """
    Key-value store of API responses with per-entry TTL.

    Supports:
    - Fresh/stale checks against an injectable clock
    - Stale entries retained as fallback values
    - Optional capacity bound (oldest write evicted first)
    - Explicit pruning of long-stale entries

    Not thread-safe on its own; FetchGovernor serialises access.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        max_entries: int | None = None,
    ):
        """
        Initialize the cache store.

        Args:
            clock: Time source in seconds (default: monotonic system clock)
            max_entries: Maximum number of entries, None for unbounded
        """
        if max_entries is not None and max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")

        self.clock = clock or SystemClock()
        self.max_entries = max_entries
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> CacheEntry | None:
        """
        Look up an entry, fresh or stale.

        Args:
            key: Cache key

        Returns:
            The entry, or None if the key was never cached
        """
        return self._entries.get(key)

    def set(self, key: str, value: Any, ttl: float) -> CacheEntry:
        """
        Insert or overwrite an entry, stamped with the current time.

        Args:
            key: Cache key
            value: Deserialized response payload
            ttl: Seconds before the entry goes stale

        Returns:
            The stored entry
        """
        entry = CacheEntry(key=key, value=value, fetched_at=self.clock(), ttl=ttl)
        self._entries[key] = entry

        if self.max_entries is not None:
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

        return entry

    def is_fresh(self, entry: CacheEntry) -> bool:
        """Check whether an entry is younger than its TTL."""
        return self.clock() - entry.fetched_at < entry.ttl

    def invalidate(self, key: str) -> bool:
        """
        Remove a cached item.

        Args:
            key: Cache key

        Returns:
            True if item was removed, False if not found
        """
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """
        Clear all cached items.

        Returns:
            Number of entries removed
        """
        count = len(self._entries)
        self._entries.clear()
        return count

    def prune(self, grace_factor: float = CACHE_PRUNE_GRACE_FACTOR) -> int:
        """
        Remove entries that have been stale for a long time.

        An entry is dropped once its age reaches grace_factor times its TTL.
        Entries with a non-positive TTL are never fresh and are dropped.

        Args:
            grace_factor: Multiple of the TTL an entry may live for

        Returns:
            Number of entries removed
        """
        now = self.clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.age(now) >= entry.ttl * grace_factor
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> CacheStats:
        """Get the number of entries and their keys in insertion order."""
        return CacheStats(size=len(self._entries), keys=tuple(self._entries))
