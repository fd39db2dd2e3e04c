#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Alignment data models
"""

import hashlib
import json
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from config.constants import (
    AUTO_VALIDATION_THRESHOLD,
    CONFIDENCE_THRESHOLD,
    CONTENT_WEIGHT,
    CORRECTION_HISTORY_SIZE,
    DIVERGENCE_THRESHOLD,
    GAP_PENALTY,
    LEARNING_RATE,
    LENGTH_WEIGHT,
    MAX_LENGTH_RATIO_DEVIATION,
    POSITION_WEIGHT,
    REORDER_MARGIN,
    REORDER_WINDOW,
    STRUCTURE_WEIGHT,
)


class AlignmentMethod(str, Enum):
    """How an alignment list was produced"""
    POSITION = "position"
    DYNAMIC_PROGRAMMING = "dynamic_programming"


class ValidationStatus(str, Enum):
    """Review state of one alignment entry"""
    PENDING = "pending"
    AUTO_VALIDATED = "auto_validated"
    NEEDS_REVIEW = "needs_review"
    VALIDATED = "validated"


@dataclass(frozen=True)
class AlignmentEntry:
    """
    One source sentence and its target sentence.

    target_index is None when the source sentence has no counterpart.
    """
    source_index: int
    target_index: Optional[int]
    confidence: float
    method: AlignmentMethod
    status: ValidationStatus = ValidationStatus.PENDING

    @property
    def validated(self) -> bool:
        return self.status == ValidationStatus.VALIDATED

    @property
    def is_gap(self) -> bool:
        return self.target_index is None

    @property
    def pair(self) -> Tuple[int, Optional[int]]:
        return self.source_index, self.target_index

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_index": self.source_index,
            "target_index": self.target_index,
            "confidence": round(self.confidence, 6),
            "method": self.method.value,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlignmentEntry":
        return cls(
            source_index=int(data["source_index"]),
            target_index=None if data.get("target_index") is None else int(data["target_index"]),
            confidence=float(data.get("confidence", 0.0)),
            method=AlignmentMethod(data.get("method", AlignmentMethod.POSITION.value)),
            status=ValidationStatus(data.get("status", ValidationStatus.PENDING.value)),
        )


@dataclass(frozen=True)
class AlignmentConfig:
    """Weights and thresholds for alignment scoring"""
    position_weight: float = POSITION_WEIGHT
    length_weight: float = LENGTH_WEIGHT
    structure_weight: float = STRUCTURE_WEIGHT
    content_weight: float = CONTENT_WEIGHT
    confidence_threshold: float = CONFIDENCE_THRESHOLD
    max_length_ratio_deviation: float = MAX_LENGTH_RATIO_DEVIATION
    divergence_threshold: float = DIVERGENCE_THRESHOLD
    gap_penalty: float = GAP_PENALTY
    auto_validation_threshold: float = AUTO_VALIDATION_THRESHOLD
    learning_rate: float = LEARNING_RATE
    correction_history_size: int = CORRECTION_HISTORY_SIZE
    reorder_window: int = REORDER_WINDOW
    reorder_margin: float = REORDER_MARGIN

    def __post_init__(self):
        weights = (self.position_weight, self.length_weight, self.structure_weight, self.content_weight)
        if any(w < 0 for w in weights):
            raise ValueError(f"Alignment weights must be non-negative: {weights}")
        if sum(weights) <= 0:
            raise ValueError("At least one alignment weight must be positive")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError(f"confidence_threshold out of range: {self.confidence_threshold}")
        if self.max_length_ratio_deviation <= 0:
            raise ValueError("max_length_ratio_deviation must be positive")
        if self.correction_history_size < 1:
            raise ValueError("correction_history_size must be >= 1")
        if self.reorder_window < 0 or self.reorder_margin < 0:
            raise ValueError("reorder_window and reorder_margin must be non-negative")

    def weight_dict(self) -> Dict[str, float]:
        return {
            "position": self.position_weight,
            "length": self.length_weight,
            "structure": self.structure_weight,
            "content": self.content_weight,
        }

    def with_thresholds(self, **changes) -> "AlignmentConfig":
        return replace(self, **changes)

    def fingerprint(self) -> str:
        """Stable short hash of every setting that changes alignment output"""
        key_string = json.dumps(asdict(self), sort_keys=True)
        return hashlib.sha256(key_string.encode('utf-8')).hexdigest()[:16]


@dataclass
class AlignmentResult:
    """Output of one alignment run for a (source, target) pair"""
    entries: List[AlignmentEntry]
    method: AlignmentMethod
    source_count: int
    target_count: int
    unmatched_targets: List[int] = field(default_factory=list)
    weights_version: int = 0
    processing_time_ms: float = 0.0
    forced: bool = False

    @property
    def average_confidence(self) -> float:
        if not self.entries:
            return 0.0
        return sum(e.confidence for e in self.entries) / len(self.entries)

    def entry_for(self, source_index: int) -> Optional[AlignmentEntry]:
        for entry in self.entries:
            if entry.source_index == source_index:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "source_count": self.source_count,
            "target_count": self.target_count,
            "entries": [e.to_dict() for e in self.entries],
            "unmatched_targets": list(self.unmatched_targets),
            "weights_version": self.weights_version,
            "forced": self.forced,
        }


@dataclass
class AlignmentStatistics:
    """Per-pair alignment statistics"""
    total_sentences: int = 0
    aligned_sentences: int = 0
    validated_alignments: int = 0
    average_confidence: float = 0.0
    alignment_accuracy: float = 0.0
    processing_time_ms: float = 0.0
    language_pair: Tuple[str, str] = ("", "")

    @classmethod
    def from_entries(
        cls,
        entries: List[AlignmentEntry],
        confidence_threshold: float,
        processing_time_ms: float = 0.0,
        language_pair: Tuple[str, str] = ("", ""),
    ) -> "AlignmentStatistics":
        total = len(entries)
        aligned = sum(1 for e in entries if e.confidence >= confidence_threshold)
        validated = sum(1 for e in entries if e.validated)
        return cls(
            total_sentences=total,
            aligned_sentences=aligned,
            validated_alignments=validated,
            average_confidence=sum(e.confidence for e in entries) / total if total else 0.0,
            alignment_accuracy=aligned / total if total else 0.0,
            processing_time_ms=processing_time_ms,
            language_pair=language_pair,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_sentences": self.total_sentences,
            "aligned_sentences": self.aligned_sentences,
            "validated_alignments": self.validated_alignments,
            "average_confidence": round(self.average_confidence, 4),
            "alignment_accuracy": round(self.alignment_accuracy, 4),
            "processing_time_ms": round(self.processing_time_ms, 2),
            "language_pair": list(self.language_pair),
        }
