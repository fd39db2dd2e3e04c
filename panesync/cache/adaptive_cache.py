#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Adaptive Alignment Cache - Sharded ARC cache for alignment results

Key Features:
- Adaptive Replacement (ARC) per shard: T1 (seen once), T2 (seen again),
  ghost lists B1/B2 steering the target size p of T1
- TTL expiry regardless of access pattern
- Entry count and memory budgets split exactly across shards
- Pickled payloads, zlib-compressed above a size threshold, verified by
  checksum on every read
- Single in-flight computation per key (get_or_compute)
- Background maintenance: expiry purge, list re-balance, memory alerts

ARC adaptation (Megiddo & Modha):
    hit in B1: p = min(c, p + max(|B2| / |B1|, 1))
    hit in B2: p = max(0, p - max(|B1| / |B2|, 1))
REPLACE evicts the LRU of T1 when T1 is non-empty and either |T1| > p,
the incoming key was a B2 ghost and |T1| == p, or T2 is empty; otherwise
the LRU of T2. Eviction runs before insertion, for both the entry and the
memory budget.
"""

import asyncio
import hashlib
import pickle
import threading
import time
import zlib
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional

import psutil

from config.constants import (
    CACHE_CLEANUP_INTERVAL,
    CACHE_COMPRESSION_THRESHOLD,
    CACHE_ENTRY_OVERHEAD_BYTES,
    CACHE_MAX_ENTRIES,
    CACHE_MAX_MEMORY_MB,
    CACHE_MEMORY_ALERT_PERCENT,
    CACHE_SHARDS,
    CACHE_TTL_SECONDS,
)
from config.logging_config import get_logger

from ..errors import CacheCorruptionError
from .base import CacheStats
from .fingerprint import language_pair_tag

logger = get_logger(__name__)

AlertListener = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class CacheConfig:
    """Cache budgets and maintenance settings"""
    max_entries: int = CACHE_MAX_ENTRIES
    max_memory_bytes: int = CACHE_MAX_MEMORY_MB * 1024 * 1024
    ttl_seconds: float = CACHE_TTL_SECONDS
    cleanup_interval_seconds: float = CACHE_CLEANUP_INTERVAL
    compression_threshold_bytes: int = CACHE_COMPRESSION_THRESHOLD
    shard_count: int = CACHE_SHARDS
    memory_alert_percent: float = CACHE_MEMORY_ALERT_PERCENT

    def __post_init__(self):
        if self.max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if self.max_memory_bytes < 1:
            raise ValueError("max_memory_bytes must be >= 1")
        if self.shard_count < 1:
            raise ValueError("shard_count must be >= 1")
        if self.cleanup_interval_seconds <= 0:
            raise ValueError("cleanup_interval_seconds must be positive")
        if not 0.0 < self.memory_alert_percent <= 100.0:
            raise ValueError("memory_alert_percent must be in (0, 100]")


@dataclass
class CacheEntry:
    """Single cache entry with metadata"""
    key: str
    payload: bytes
    checksum: str
    compressed: bool
    size_bytes: int
    created_at: float
    expires_at: Optional[float] = None
    last_access: float = 0.0
    access_count: int = 0
    tags: FrozenSet[str] = field(default_factory=frozenset)

    def is_expired(self, now: float) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at


def _split_budget(total: int, parts: int) -> List[int]:
    """Split total into parts summing exactly to total"""
    base, remainder = divmod(total, parts)
    return [base + (1 if i < remainder else 0) for i in range(parts)]


class _ArcShard:
    """
    One ARC instance. Every method expects the caller to hold self.lock.
    """

    def __init__(self, capacity: int, memory_budget: int):
        self.capacity = capacity
        self.memory_budget = memory_budget
        self.lock = threading.Lock()
        self.t1: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.t2: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.b1: "OrderedDict[str, None]" = OrderedDict()
        self.b2: "OrderedDict[str, None]" = OrderedDict()
        self.p = 0.0
        self.memory_bytes = 0
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self.t1) + len(self.t2)

    def peek(self, key: str) -> Optional[CacheEntry]:
        return self.t1.get(key) or self.t2.get(key)

    def lookup(self, key: str, now: float) -> Optional[CacheEntry]:
        entry = self.peek(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            self._drop(key)
            self.stats.expirations += 1
            return None

        # Second reference promotes to T2 MRU
        if key in self.t1:
            del self.t1[key]
            self.t2[key] = entry
        else:
            self.t2.move_to_end(key)
        entry.last_access = now
        entry.access_count += 1
        return entry

    def store(self, entry: CacheEntry) -> bool:
        key = entry.key
        if entry.size_bytes > self.memory_budget or self.capacity < 1:
            self.stats.rejected += 1
            return False

        if key in self.t1 or key in self.t2:
            self._drop(key)
            self._make_room(entry.size_bytes, in_b2=False)
            self.t2[key] = entry
        elif key in self.b1:
            self.p = min(float(self.capacity), self.p + max(len(self.b2) / len(self.b1), 1.0))
            del self.b1[key]
            self._make_room(entry.size_bytes, in_b2=False)
            self.t2[key] = entry
        elif key in self.b2:
            self.p = max(0.0, self.p - max(len(self.b1) / len(self.b2), 1.0))
            del self.b2[key]
            self._make_room(entry.size_bytes, in_b2=True)
            self.t2[key] = entry
        else:
            self._make_room(entry.size_bytes, in_b2=False)
            self.t1[key] = entry

        self.memory_bytes += entry.size_bytes
        self.trim_ghosts()
        return True

    def remove(self, key: str) -> bool:
        if key in self.t1 or key in self.t2:
            self._drop(key)
            return True
        return False

    def purge_expired(self, now: float) -> int:
        expired = [k for lst in (self.t1, self.t2) for k, e in lst.items() if e.is_expired(now)]
        for key in expired:
            self._drop(key)
        self.stats.expirations += len(expired)
        return len(expired)

    def keys_with_tag(self, tag: str) -> List[str]:
        return [k for lst in (self.t1, self.t2) for k, e in lst.items() if tag in e.tags]

    def clear(self) -> int:
        count = len(self)
        self.t1.clear()
        self.t2.clear()
        self.b1.clear()
        self.b2.clear()
        self.p = 0.0
        self.memory_bytes = 0
        return count

    def resize(self, capacity: int, memory_budget: int) -> int:
        self.capacity = capacity
        self.memory_budget = memory_budget
        evicted = 0
        while len(self) > 0 and (len(self) > capacity or self.memory_bytes > memory_budget):
            self._replace(in_b2=False)
            evicted += 1
        self.rebalance()
        return evicted

    def rebalance(self) -> None:
        self.p = min(max(self.p, 0.0), float(self.capacity))
        self.trim_ghosts()

    def trim_ghosts(self) -> None:
        c = self.capacity
        while self.b1 and len(self.t1) + len(self.b1) > c:
            self.b1.popitem(last=False)
        while self.b2 and len(self) + len(self.b1) + len(self.b2) > 2 * c:
            self.b2.popitem(last=False)

    def _make_room(self, incoming_bytes: int, in_b2: bool) -> None:
        while len(self) > 0 and (
            len(self) >= self.capacity or self.memory_bytes + incoming_bytes > self.memory_budget
        ):
            self._replace(in_b2)

    def _replace(self, in_b2: bool) -> None:
        t1_len = len(self.t1)
        if t1_len > 0 and (t1_len > self.p or (in_b2 and t1_len == int(self.p)) or not self.t2):
            key, entry = self.t1.popitem(last=False)
            self.b1[key] = None
        else:
            key, entry = self.t2.popitem(last=False)
            self.b2[key] = None
        self.memory_bytes -= entry.size_bytes
        self.stats.evictions += 1

    def _drop(self, key: str) -> None:
        entry = self.t1.pop(key, None) or self.t2.pop(key, None)
        if entry is not None:
            self.memory_bytes -= entry.size_bytes


class AdaptiveAlignmentCache:
    """
    Sharded ARC cache for (AlignmentResult, QualityIndicator) values.

    Usage:
        cache = AdaptiveAlignmentCache(CacheConfig(max_entries=1000))
        value = await cache.get_or_compute(key, compute)
        cache.add_alert_listener(lambda alert: print(alert))
        cache.start_maintenance()

    Values are stored by pickling; None is treated as "absent" and is never
    cached.
    """

    def __init__(self, config: Optional[CacheConfig] = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or CacheConfig()
        self._clock = clock
        self._shards = self._build_shards(self.config)
        self._counter_lock = threading.Lock()
        self._global_stats = CacheStats()
        self._inflight: Dict[str, "asyncio.Future"] = {}
        self._listeners: List[AlertListener] = []
        self._maintenance_task: Optional[asyncio.Task] = None

        logger.debug(
            f"Cache initialized: {self.config.max_entries} entries, "
            f"{self.config.max_memory_bytes} bytes, {len(self._shards)} shards"
        )

    @staticmethod
    def _build_shards(config: CacheConfig) -> List[_ArcShard]:
        # Never more shards than entries, so every shard holds at least one
        count = max(1, min(config.shard_count, config.max_entries))
        capacities = _split_budget(config.max_entries, count)
        budgets = _split_budget(config.max_memory_bytes, count)
        return [_ArcShard(c, b) for c, b in zip(capacities, budgets)]

    def _shard_for(self, key: str) -> _ArcShard:
        return self._shards[zlib.crc32(key.encode("utf-8")) % len(self._shards)]

    # ------------------------------------------------------------------
    # Payload encoding
    # ------------------------------------------------------------------

    def _encode(self, key: str, value: Any, ttl: Optional[float], tags: Iterable[str]) -> CacheEntry:
        payload = pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        compressed = len(payload) > self.config.compression_threshold_bytes
        if compressed:
            payload = zlib.compress(payload)
        now = self._clock()
        ttl = self.config.ttl_seconds if ttl is None else ttl
        return CacheEntry(
            key=key,
            payload=payload,
            checksum=hashlib.sha256(payload).hexdigest(),
            compressed=compressed,
            size_bytes=len(payload) + len(key) + CACHE_ENTRY_OVERHEAD_BYTES,
            created_at=now,
            expires_at=now + ttl if ttl and ttl > 0 else None,
            last_access=now,
            tags=frozenset(tags),
        )

    @staticmethod
    def _decode(entry: CacheEntry) -> Any:
        if hashlib.sha256(entry.payload).hexdigest() != entry.checksum:
            raise CacheCorruptionError(entry.key, "checksum mismatch")
        try:
            payload = zlib.decompress(entry.payload) if entry.compressed else entry.payload
            return pickle.loads(payload)
        except (zlib.error, pickle.UnpicklingError, EOFError, AttributeError, ImportError) as e:
            raise CacheCorruptionError(entry.key, str(e)) from e

    # ------------------------------------------------------------------
    # Basic operations
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[Any]:
        shard = self._shard_for(key)
        with shard.lock:
            entry = shard.lookup(key, self._clock())
            if entry is None:
                shard.stats.misses += 1
                return None

        try:
            value = self._decode(entry)
        except CacheCorruptionError as e:
            logger.error(f"{e}; entry dropped")
            with shard.lock:
                if shard.peek(key) is entry:
                    shard.remove(key)
                shard.stats.corruptions += 1
                shard.stats.misses += 1
            return None

        with shard.lock:
            shard.stats.hits += 1
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None, tags: Iterable[str] = ()) -> bool:
        """
        Store value under key.

        Returns:
            False when the entry alone exceeds its shard's memory budget
        """
        if value is None:
            return False
        entry = self._encode(key, value, ttl, tags)
        shard = self._shard_for(key)
        with shard.lock:
            stored = shard.store(entry)
            if stored and entry.compressed:
                shard.stats.compressions += 1
        if not stored:
            logger.debug(f"Entry {key[:12]} ({entry.size_bytes} bytes) exceeds shard budget; not cached")
        return stored

    def contains(self, key: str) -> bool:
        """Presence check without touching recency or statistics"""
        shard = self._shard_for(key)
        with shard.lock:
            entry = shard.peek(key)
            return entry is not None and not entry.is_expired(self._clock())

    def invalidate(self, key: str) -> bool:
        shard = self._shard_for(key)
        with shard.lock:
            return shard.remove(key)

    def invalidate_tag(self, tag: str) -> int:
        removed = 0
        for shard in self._shards:
            with shard.lock:
                for key in shard.keys_with_tag(tag):
                    removed += shard.remove(key)
        if removed:
            logger.debug(f"Invalidated {removed} entries tagged {tag}")
        return removed

    def invalidate_language_pair(self, source_lang: str, target_lang: str) -> int:
        return self.invalidate_tag(language_pair_tag(source_lang, target_lang))

    def clear(self) -> int:
        count = 0
        for shard in self._shards:
            with shard.lock:
                count += shard.clear()
        return count

    def __len__(self) -> int:
        return sum(len(shard) for shard in self._shards)

    @property
    def memory_bytes(self) -> int:
        return sum(shard.memory_bytes for shard in self._shards)

    @property
    def shard_count(self) -> int:
        return len(self._shards)

    def stats(self) -> CacheStats:
        total = CacheStats()
        for shard in self._shards:
            with shard.lock:
                snapshot = replace(
                    shard.stats,
                    size=len(shard),
                    max_size=shard.capacity,
                    memory_bytes=shard.memory_bytes,
                    max_memory_bytes=shard.memory_budget,
                )
            total.merge(snapshot)
        with self._counter_lock:
            total.computations += self._global_stats.computations
            total.shared_waits += self._global_stats.shared_waits
        return total

    # ------------------------------------------------------------------
    # Single-flight computation
    # ------------------------------------------------------------------

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
        tags: Iterable[str] = (),
    ) -> Any:
        """
        Return the cached value for key, computing it at most once.

        Concurrent callers for the same key await the same computation.
        Cancelling one caller does not cancel the shared computation;
        an exception raised by compute_fn reaches every waiter and nothing
        is cached.
        """
        value = self.get(key)
        if value is not None:
            return value

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._compute_and_store(key, compute_fn, ttl, tuple(tags)))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._finish_inflight(k, t))
        else:
            with self._counter_lock:
                self._global_stats.shared_waits += 1
        return await asyncio.shield(task)

    async def _compute_and_store(self, key, compute_fn, ttl, tags) -> Any:
        with self._counter_lock:
            self._global_stats.computations += 1
        value = await compute_fn()
        self.set(key, value, ttl=ttl, tags=tags)
        return value

    def _finish_inflight(self, key: str, task: "asyncio.Future") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved when every waiter was cancelled
        if not task.cancelled():
            task.exception()

    def inflight_count(self) -> int:
        return len(self._inflight)

    # ------------------------------------------------------------------
    # Runtime tuning
    # ------------------------------------------------------------------

    def resize(self, max_entries: Optional[int] = None, max_memory_bytes: Optional[int] = None) -> int:
        """
        Change budgets at runtime, evicting until every shard fits.

        Returns:
            Number of entries evicted
        """
        changes = {}
        if max_entries is not None:
            changes["max_entries"] = max_entries
        if max_memory_bytes is not None:
            changes["max_memory_bytes"] = max_memory_bytes
        self.config = replace(self.config, **changes)

        count = len(self._shards)
        capacities = _split_budget(self.config.max_entries, count)
        budgets = _split_budget(self.config.max_memory_bytes, count)
        evicted = 0
        for shard, capacity, budget in zip(self._shards, capacities, budgets):
            with shard.lock:
                evicted += shard.resize(capacity, budget)

        logger.info(
            f"Cache resized to {self.config.max_entries} entries / "
            f"{self.config.max_memory_bytes} bytes ({evicted} evicted)"
        )
        return evicted

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def add_alert_listener(self, listener: AlertListener) -> None:
        self._listeners.append(listener)

    def remove_alert_listener(self, listener: AlertListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def purge_expired(self) -> int:
        now = self._clock()
        purged = 0
        for shard in self._shards:
            with shard.lock:
                purged += shard.purge_expired(now)
        return purged

    def run_maintenance(self) -> Dict[str, Any]:
        """
        One maintenance cycle: purge expired entries, re-balance the ARC
        lists and raise a memory alert above the configured percentage.
        """
        purged = self.purge_expired()
        for shard in self._shards:
            with shard.lock:
                shard.rebalance()

        memory = self.memory_bytes
        usage = 100.0 * memory / self.config.max_memory_bytes
        summary = {
            "purged": purged,
            "entries": len(self),
            "memory_bytes": memory,
            "memory_usage_percent": round(usage, 2),
            "alert": usage >= self.config.memory_alert_percent,
        }
        logger.debug(f"Cache maintenance: {summary}")

        if summary["alert"]:
            self._emit_alert({
                "reason": "cache_memory_pressure",
                "memory_bytes": memory,
                "max_memory_bytes": self.config.max_memory_bytes,
                "memory_usage_percent": round(usage, 2),
                "threshold_percent": self.config.memory_alert_percent,
                "entries": summary["entries"],
                "process_rss_bytes": psutil.Process().memory_info().rss,
            })
        return summary

    def _emit_alert(self, alert: Dict[str, Any]) -> None:
        logger.warning(
            f"Cache memory at {alert['memory_usage_percent']}% of budget "
            f"(threshold {alert['threshold_percent']}%)"
        )
        for listener in list(self._listeners):
            try:
                listener(alert)
            except Exception as e:
                logger.error(f"Cache alert listener failed: {e}")

    def start_maintenance(self) -> asyncio.Task:
        """Start the periodic maintenance loop on the running event loop"""
        if self._maintenance_task is None or self._maintenance_task.done():
            self._maintenance_task = asyncio.ensure_future(self._maintenance_loop())
        return self._maintenance_task

    async def stop_maintenance(self) -> None:
        task, self._maintenance_task = self._maintenance_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _maintenance_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            try:
                self.run_maintenance()
            except Exception as e:
                logger.error(f"Cache maintenance failed: {e}")
