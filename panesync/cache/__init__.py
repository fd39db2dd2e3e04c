"""
Cache Module - Alignment result caching

Exports:
- AdaptiveAlignmentCache (sharded ARC cache with TTL, compression, single-flight)
- CacheConfig, CacheEntry (budgets and stored entries)
- CacheStats (hit/miss/eviction statistics)
- compute_alignment_key, compute_config_version, language_pair_tag (stable keys and tags)
"""

from .adaptive_cache import AdaptiveAlignmentCache, CacheConfig, CacheEntry
from .base import CacheStats
from .fingerprint import compute_alignment_key, compute_config_version, language_pair_tag

__all__ = [
    'AdaptiveAlignmentCache',
    'CacheConfig',
    'CacheEntry',
    'CacheStats',
    'compute_alignment_key',
    'compute_config_version',
    'language_pair_tag',
]
