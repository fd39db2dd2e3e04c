#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Fingerprint - Stable cache keys for alignment results
"""

import hashlib
import json
from typing import Any, Mapping, Sequence

from ..segmentation.document import content_hash


def compute_alignment_key(
    source_text: str,
    target_text: str,
    source_lang: str,
    target_lang: str,
    config_version: str,
) -> str:
    """
    Generate a stable cache key for one (source, target) alignment.

    Args:
        source_text: Source pane content
        target_text: Target pane content
        source_lang: Source language code (e.g., 'en')
        target_lang: Target language code (e.g., 'es')
        config_version: Output of compute_config_version; any change
                        forces recomputation

    Returns:
        Hex string (SHA256 hash)

    Examples:
        >>> key1 = compute_alignment_key("Hi.", "Hola.", "en", "es", "v1")
        >>> key2 = compute_alignment_key("Hi.", "Hola.", "en", "es", "v1")
        >>> key1 == key2
        True
        >>> key1 != compute_alignment_key("Hi.", "Hola.", "en", "es", "v2")
        True
    """
    key_components = {
        'source_hash': content_hash(source_text),
        'target_hash': content_hash(target_text),
        'source_lang': source_lang.lower(),
        'target_lang': target_lang.lower(),
        'config_version': config_version,
    }

    # sort_keys keeps the key independent of dict ordering
    key_string = json.dumps(key_components, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(key_string.encode('utf-8')).hexdigest()


def compute_config_version(
    alignment_fingerprint: str,
    weights: Sequence[float],
    weights_version: int,
    quality_settings: Mapping[str, Any],
) -> str:
    """
    Version string for everything besides the texts that shapes a cached value.

    Two sessions share cache entries only when their alignment config, learned
    feature weights and quality settings all agree.

    Examples:
        >>> v1 = compute_config_version("abc", (0.4, 0.3, 0.2, 0.1), 1, {"confidence_threshold": 0.7})
        >>> v1 == compute_config_version("abc", (0.4, 0.3, 0.2, 0.1), 1, {"confidence_threshold": 0.7})
        True
        >>> v1 == compute_config_version("abc", (0.5, 0.3, 0.1, 0.1), 1, {"confidence_threshold": 0.7})
        False
    """
    components = {
        'alignment': alignment_fingerprint,
        'weights': [float(w) for w in weights],
        'weights_version': weights_version,
        'quality': dict(quality_settings),
    }
    key_string = json.dumps(components, sort_keys=True)
    return hashlib.sha256(key_string.encode('utf-8')).hexdigest()[:24]


def language_pair_tag(source_lang: str, target_lang: str) -> str:
    """Tag attached to cache entries for bulk invalidation by language pair"""
    return f"pair:{source_lang.lower()}:{target_lang.lower()}"
