#!/usr/bin/env python3
"""
Command Response Cache
Bounded, TTL-expiring, memory-budgeted store for command results.

Implements:
- get(key) → response | None (lazy expiry on read)
- put(key, response, ttl) → accepted
- resolve_ttl(command) / set_command_ttl(command, ttl)
- sweep() → number of expired entries removed
- stats() → {size, max_size, memory_usage_bytes, memory_budget_bytes, ...}

Eviction is first-in-first-out by insertion order. Reads never refresh an
entry's position, so a hot key is exactly as evictable as a cold one.
Memory is accounted as 2 bytes per character of the canonical serialised
response; a put that would exceed the budget is rejected outright and
nothing else is evicted to make room for it.
"""

import asyncio
import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .key_codec import split_cache_key
from .responses import CachedResponse, serialize_response

logger = logging.getLogger(__name__)

BYTES_PER_CHAR = 2
DEFAULT_SWEEP_INTERVAL_SEC = 60.0


@dataclass
class CacheEntry:
    value: CachedResponse
    expires_at: float
    size_bytes: int


def estimate_size(value: CachedResponse) -> int:
    """Approximate size in bytes (2 bytes per character)."""
    return len(serialize_response(value)) * BYTES_PER_CHAR


def _check_ttl(ttl_sec: float) -> float:
    ttl = float(ttl_sec)
    if not math.isfinite(ttl) or ttl <= 0:
        raise ValueError(f"TTL must be a finite positive number of seconds, got {ttl_sec!r}")
    return ttl


class CacheStore:
    """
    In-memory command result cache.

    Design principles:
    - Every entry expires: no permanent entries
    - Hard caps on entry count and accounted memory
    - Graceful degradation: a rejected put is logged, never raised
    - One lock around every read-modify-write, shared with the sweeper
    """

    def __init__(
        self,
        max_entries: int = 200,
        max_memory_bytes: int = 100 * 1024 * 1024,
        default_ttl_sec: float = 120.0,
        sweep_interval_sec: float = DEFAULT_SWEEP_INTERVAL_SEC,
        command_ttls: Optional[Dict[str, float]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if max_memory_bytes < 0:
            raise ValueError("max_memory_bytes must not be negative")

        self.max_entries = int(max_entries)
        self.max_memory_bytes = int(max_memory_bytes)
        self.default_ttl_sec = _check_ttl(default_ttl_sec)
        self.sweep_interval_sec = _check_ttl(sweep_interval_sec)
        self._clock = clock

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._memory_usage = 0
        self._command_ttls: Dict[str, float] = {}
        for name, ttl in (command_ttls or {}).items():
            self._command_ttls[name] = _check_ttl(ttl)

        self._lock = threading.RLock()
        self._sweeper: Optional[asyncio.Task] = None

        self.counters = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "evictions": 0,
            "expirations": 0,
            "rejections": 0,
        }

        logger.info(
            f"CacheStore initialized (max_entries={self.max_entries}, "
            f"max_memory_bytes={self.max_memory_bytes}, default_ttl={self.default_ttl_sec}s)"
        )

    # ── TTL resolution ──

    def set_command_ttl(self, command_name: str, ttl_sec: float) -> None:
        with self._lock:
            self._command_ttls[command_name] = _check_ttl(ttl_sec)

    def has_command_ttl(self, command_name: str) -> bool:
        with self._lock:
            return command_name in self._command_ttls

    def resolve_ttl(self, command_name: str) -> float:
        with self._lock:
            return self._command_ttls.get(command_name, self.default_ttl_sec)

    # ── Reads and writes ──

    def _remove(self, key: str) -> CacheEntry:
        entry = self._entries.pop(key)
        self._memory_usage -= entry.size_bytes
        return entry

    def get(self, key: str) -> Optional[CachedResponse]:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.counters["misses"] += 1
                logger.debug(f"Cache miss: {key}")
                return None

            if self._clock() >= entry.expires_at:
                self._remove(key)
                self.counters["misses"] += 1
                self.counters["expirations"] += 1
                logger.debug(f"Cache entry expired: {key}")
                return None

            self.counters["hits"] += 1
            logger.debug(f"Cache hit: {key}")
            return entry.value

    def put(self, key: str, value: CachedResponse, ttl_sec: Optional[float] = None) -> bool:
        """
        Store a value under key.

        Returns:
            True if stored, False if rejected by the memory budget.
        """
        ttl = self.default_ttl_sec if ttl_sec is None else _check_ttl(ttl_sec)
        size = estimate_size(value)

        with self._lock:
            existing = self._entries.get(key)
            usage = self._memory_usage - (existing.size_bytes if existing else 0)
            if usage + size > self.max_memory_bytes:
                self.counters["rejections"] += 1
                logger.debug(
                    f"Skipping cache due to memory limits: {key} "
                    f"({size} bytes, {usage}/{self.max_memory_bytes} in use)"
                )
                return False

            if existing is None and len(self._entries) >= self.max_entries:
                oldest_key = next(iter(self._entries))
                self._remove(oldest_key)
                self.counters["evictions"] += 1
                command_name, _ = split_cache_key(oldest_key)
                logger.debug(f"Evicted oldest entry for {command_name}: {oldest_key}")

            if existing is not None:
                self._memory_usage -= existing.size_bytes
            # Assigning to an existing key keeps its insertion position.
            self._entries[key] = CacheEntry(
                value=value,
                expires_at=self._clock() + ttl,
                size_bytes=size,
            )
            self._memory_usage += size
            self.counters["writes"] += 1

        logger.debug(f"Cached {key} ({size} bytes, ttl={ttl}s)")
        return True

    def sweep(self) -> int:
        """Remove every entry whose expiry has passed. Returns the count removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in expired:
                self._remove(key)
            self.counters["expirations"] += len(expired)

        if expired:
            logger.info(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def stats(self) -> Dict[str, Any]:
        """Read-only snapshot for diagnostics."""
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_entries,
                "memory_usage_bytes": self._memory_usage,
                "memory_budget_bytes": self.max_memory_bytes,
                **self.counters,
            }

    # ── Sweeper lifecycle ──

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_sec)
            self.sweep()

    def start(self) -> None:
        """Schedule the periodic sweep on the running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())
        logger.debug(f"Cache sweeper started (every {self.sweep_interval_sec}s)")

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def close(self) -> None:
        """Cancel the sweep task."""
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is None:
            return
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        logger.info("CacheStore closed")
