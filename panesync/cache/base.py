"""
Cache statistics shared by the cache shards.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict


@dataclass
class CacheStats:
    """Cache statistics"""
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    compressions: int = 0
    corruptions: int = 0
    computations: int = 0
    shared_waits: int = 0
    rejected: int = 0
    size: int = 0
    max_size: int = 0
    memory_bytes: int = 0
    max_memory_bytes: int = 0
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    @property
    def memory_usage_percent(self) -> float:
        if self.max_memory_bytes <= 0:
            return 0.0
        return 100.0 * self.memory_bytes / self.max_memory_bytes

    def merge(self, other: "CacheStats") -> "CacheStats":
        """Add another shard's counters into this one"""
        self.hits += other.hits
        self.misses += other.misses
        self.evictions += other.evictions
        self.expirations += other.expirations
        self.compressions += other.compressions
        self.corruptions += other.corruptions
        self.computations += other.computations
        self.shared_waits += other.shared_waits
        self.rejected += other.rejected
        self.size += other.size
        self.max_size += other.max_size
        self.memory_bytes += other.memory_bytes
        self.max_memory_bytes += other.max_memory_bytes
        return self

    def to_dict(self) -> Dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": f"{self.hit_rate:.1%}",
            "evictions": self.evictions,
            "expirations": self.expirations,
            "compressions": self.compressions,
            "corruptions": self.corruptions,
            "computations": self.computations,
            "shared_waits": self.shared_waits,
            "rejected": self.rejected,
            "size": self.size,
            "max_size": self.max_size,
            "memory_bytes": self.memory_bytes,
            "max_memory_bytes": self.max_memory_bytes,
            "memory_usage": f"{self.memory_usage_percent:.1f}%",
        }
