"""
In-memory answer cache with per-entry expiry and single-flight computation.

Bounded by entry count: inserting a new key at capacity first drops expired
entries and then evicts the oldest insertion. Concurrent ``get_or_compute``
calls for the same key share one computation.

The cache is bound to a single event loop and is not safe to share across
threads.
"""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class CacheEntry:
    """A stored value and its timestamps on the cache clock."""

    value: Any
    inserted_at: float
    expires_at: float


def make_cache_key(
    operation: str,
    subject: str,
    limit: Optional[int] = None,
    threshold: Optional[float] = None,
    document_ids: Optional[list[str]] = None,
) -> str:
    """
    Build a deterministic cache key for a request.

    The subject is lowercased and whitespace-collapsed, document ids are
    de-duplicated and sorted, and the threshold is rounded to 4 places, so
    requests that differ only in those respects share a key.

    Example:
        >>> make_cache_key("ask", "What  is X?", 5, 0.5, ["b", "a"]) == \\
        ...     make_cache_key("ask", "what is x?", 5, 0.5, ["a", "b", "a"])
        True
    """
    payload = {
        "subject": " ".join(str(subject).lower().split()),
        "limit": limit,
        "threshold": round(threshold, 4) if threshold is not None else None,
        "documents": sorted(set(document_ids or [])),
    }
    digest = hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()
    return f"{operation}:{digest}"


class AnswerCache:
    """
    Size-bounded TTL cache keyed by strings.

    Example:
        >>> cache = AnswerCache(max_size=100, default_ttl=3600)
        >>> answer = await cache.get_or_compute(key, lambda: orchestrator.answer(...))
    """

    def __init__(
        self,
        max_size: int = 100,
        default_ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")

        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._invalidated: set[asyncio.Task] = set()
        self._generation = 0
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        self._purge_expired(self._clock())
        return len(self._entries)

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry

    def _purge_expired(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key``, or ``default`` if absent or expired."""
        entry = self._lookup(key)
        if entry is None:
            return default
        return entry.value

    def has(self, key: str) -> bool:
        return self._lookup(key) is not None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store ``value`` under ``key`` for ``ttl`` seconds (default TTL if None).

        Overwriting a live key refreshes its value and expiry but keeps its
        eviction position.
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        now = self._clock()
        existing = self._lookup(key)
        if existing is not None:
            existing.value = value
            existing.expires_at = now + ttl
            return

        if len(self._entries) >= self.max_size:
            purged = self._purge_expired(now)
            if purged:
                logger.debug(f"Dropped {purged} expired cache entries")
        if len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug(f"Evicted oldest cache entry {oldest}")

        self._entries[key] = CacheEntry(value=value, inserted_at=now, expires_at=now + ttl)

    def delete(self, key: str) -> bool:
        """Remove ``key``. An in-flight computation for it finishes but is not stored."""
        task = self._inflight.get(key)
        if task is not None:
            self._invalidated.add(task)
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove every entry. In-flight computations finish but are not stored."""
        self._generation += 1
        count = len(self._entries)
        self._entries.clear()
        if count:
            logger.info(f"Cleared {count} cached answers")

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """
        Return the cached value for ``key`` or compute, store and return it.

        Concurrent callers for the same key await one shared computation. A
        failed computation propagates its exception to every waiter and
        leaves no entry behind. Cancelling one waiter does not cancel the
        computation for the others.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            self.hits += 1
            logger.debug(f"Cache hit for {key}")
            return value

        task = self._inflight.get(key)
        if task is None:
            self.misses += 1
            task = asyncio.ensure_future(self._compute(key, compute, ttl))
            task.add_done_callback(_retrieve_exception)
            self._inflight[key] = task
        else:
            logger.debug(f"Joining in-flight computation for {key}")

        return await asyncio.shield(task)

    async def _compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: Optional[float],
    ) -> Any:
        generation = self._generation
        current = asyncio.current_task()
        try:
            value = await compute()
            if generation == self._generation and current not in self._invalidated:
                self.set(key, value, ttl)
            else:
                logger.debug(f"Cache invalidated while computing {key}; not storing")
            return value
        finally:
            self._invalidated.discard(current)
            if self._inflight.get(key) is current:
                del self._inflight[key]

    def stats(self) -> dict[str, int]:
        return {
            "size": len(self),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "in_flight": len(self._inflight),
        }


def _retrieve_exception(task: asyncio.Task) -> None:
    # Marks the exception as retrieved when every waiter was cancelled.
    if not task.cancelled():
        task.exception()
