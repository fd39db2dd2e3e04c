#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Settings - Centralized configuration management
"""

from pathlib import Path
from typing import List, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import constants as C


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_prefix="PANESYNC_",
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Allow extra fields from .env that aren't defined in model
    )

    # ========== Session ==========
    max_panes: int = C.MAX_PANES
    supported_languages: List[str] = list(C.SUPPORTED_LANGUAGES)
    default_language: str = C.DEFAULT_LANGUAGE
    debounce_ms: int = C.DEBOUNCE_MS
    alignment_timeout_seconds: float = C.ALIGNMENT_TIMEOUT_SECONDS
    retry_delay_seconds: float = C.RETRY_DELAY_SECONDS
    event_queue_size: int = C.EVENT_QUEUE_SIZE
    max_content_chars: int = C.MAX_CONTENT_CHARS
    max_concurrent_alignments: int = C.MAX_CONCURRENT_ALIGNMENTS

    # ========== Alignment ==========
    position_weight: float = C.POSITION_WEIGHT
    length_weight: float = C.LENGTH_WEIGHT
    structure_weight: float = C.STRUCTURE_WEIGHT
    content_weight: float = C.CONTENT_WEIGHT
    confidence_threshold: float = C.CONFIDENCE_THRESHOLD
    max_length_ratio_deviation: float = C.MAX_LENGTH_RATIO_DEVIATION
    divergence_threshold: float = C.DIVERGENCE_THRESHOLD
    gap_penalty: float = C.GAP_PENALTY
    auto_validation_threshold: float = C.AUTO_VALIDATION_THRESHOLD
    learning_rate: float = C.LEARNING_RATE
    correction_history_size: int = C.CORRECTION_HISTORY_SIZE
    reorder_window: int = C.REORDER_WINDOW
    reorder_margin: float = C.REORDER_MARGIN

    # ========== Quality ==========
    quality_position_weight: float = C.QUALITY_POSITION_WEIGHT
    quality_length_weight: float = C.QUALITY_LENGTH_WEIGHT
    quality_structure_weight: float = C.QUALITY_STRUCTURE_WEIGHT
    boundary_confidence_floor: float = C.BOUNDARY_CONFIDENCE_FLOOR

    # ========== Cache ==========
    cache_max_entries: int = C.CACHE_MAX_ENTRIES
    cache_max_memory_mb: float = C.CACHE_MAX_MEMORY_MB
    cache_ttl_seconds: float = C.CACHE_TTL_SECONDS
    cache_cleanup_interval_seconds: float = C.CACHE_CLEANUP_INTERVAL
    cache_compression_threshold_bytes: int = C.CACHE_COMPRESSION_THRESHOLD
    cache_shards: int = C.CACHE_SHARDS
    cache_memory_alert_percent: float = C.CACHE_MEMORY_ALERT_PERCENT

    # ========== Logging ==========
    log_level: str = C.LOG_LEVEL
    log_file: Optional[str] = C.LOG_FILE

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return value

    @field_validator("max_panes")
    @classmethod
    def _check_max_panes(cls, value: int) -> int:
        if not C.MIN_PANES <= value <= C.MAX_PANES:
            raise ValueError(
                f"max_panes must be between {C.MIN_PANES} and {C.MAX_PANES}, got {value}"
            )
        return value

    @field_validator("supported_languages")
    @classmethod
    def _normalize_languages(cls, value: List[str]) -> List[str]:
        return [code.strip().lower() for code in value if code and code.strip()]

    @field_validator(
        "confidence_threshold", "auto_validation_threshold", "boundary_confidence_floor"
    )
    @classmethod
    def _check_unit_interval(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {value}")
        return value

    @field_validator(
        "position_weight", "length_weight", "structure_weight", "content_weight",
        "quality_position_weight", "quality_length_weight", "quality_structure_weight",
    )
    @classmethod
    def _check_weight(cls, value: float) -> float:
        if value < 0:
            raise ValueError(f"weights must be non-negative, got {value}")
        return value

    @field_validator("reorder_window", "reorder_margin")
    @classmethod
    def _check_non_negative(cls, value):
        if value < 0:
            raise ValueError(f"value must be >= 0, got {value}")
        return value

    @field_validator("cache_max_entries", "cache_shards", "event_queue_size",
                     "max_concurrent_alignments")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"value must be >= 1, got {value}")
        return value

    @model_validator(mode="after")
    def _check_weight_sums(self) -> "Settings":
        if self.position_weight + self.length_weight + self.structure_weight + self.content_weight <= 0:
            raise ValueError("at least one alignment weight must be positive")
        if (self.quality_position_weight + self.quality_length_weight
                + self.quality_structure_weight) <= 0:
            raise ValueError("at least one quality weight must be positive")
        return self

    def alignment_config(self):
        """Build the AlignmentConfig consumed by the alignment engine"""
        from panesync.alignment.models import AlignmentConfig

        return AlignmentConfig(
            position_weight=self.position_weight,
            length_weight=self.length_weight,
            structure_weight=self.structure_weight,
            content_weight=self.content_weight,
            confidence_threshold=self.confidence_threshold,
            max_length_ratio_deviation=self.max_length_ratio_deviation,
            divergence_threshold=self.divergence_threshold,
            gap_penalty=self.gap_penalty,
            auto_validation_threshold=self.auto_validation_threshold,
            learning_rate=self.learning_rate,
            correction_history_size=self.correction_history_size,
            reorder_window=self.reorder_window,
            reorder_margin=self.reorder_margin,
        )

    def cache_config(self):
        """Build the CacheConfig consumed by the adaptive cache"""
        from panesync.cache.adaptive_cache import CacheConfig

        return CacheConfig(
            max_entries=self.cache_max_entries,
            max_memory_bytes=int(self.cache_max_memory_mb * 1024 * 1024),
            ttl_seconds=self.cache_ttl_seconds,
            cleanup_interval_seconds=self.cache_cleanup_interval_seconds,
            compression_threshold_bytes=self.cache_compression_threshold_bytes,
            shard_count=self.cache_shards,
            memory_alert_percent=self.cache_memory_alert_percent,
        )

    def quality_weights(self):
        """Build the QualityWeights used for overall_quality"""
        from panesync.quality.indicators import QualityWeights

        return QualityWeights(
            position=self.quality_position_weight,
            length=self.quality_length_weight,
            structure=self.quality_structure_weight,
        )

    def describe(self) -> dict:
        """Configuration summary for logging"""
        return {
            "max_panes": self.max_panes,
            "supported_languages": list(self.supported_languages),
            "debounce_ms": self.debounce_ms,
            "alignment_timeout_seconds": self.alignment_timeout_seconds,
            "confidence_threshold": self.confidence_threshold,
            "cache_max_entries": self.cache_max_entries,
            "cache_max_memory_mb": self.cache_max_memory_mb,
            "cache_ttl_seconds": self.cache_ttl_seconds,
            "log_level": self.log_level,
        }

    def apply_logging(self):
        """Reconfigure the package logger from these settings"""
        from .logging_config import configure_logging

        return configure_logging(self.log_level, log_file=self.log_file, force=True)


def get_settings(**overrides) -> Settings:
    """Create a Settings instance, applying keyword overrides"""
    return Settings(**overrides)


# Global settings instance
settings = Settings()
