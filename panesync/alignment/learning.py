#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Correction Learning - Online linear weight updates from user corrections

Each (project, source language, target language) owns one CorrectionModel.
Learning is serialized per model by a single writer lock; scoring reads an
immutable snapshot that is swapped in after each update, so readers never
block on learning.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple

from config.logging_config import get_logger

from .features import FEATURE_NAMES, FeatureVector, FeatureWeights
from .models import AlignmentConfig

logger = get_logger(__name__)


ModelKey = Tuple[str, str, str]


@dataclass(frozen=True)
class ModelSnapshot:
    """Immutable view of the weights used for scoring"""
    weights: FeatureWeights
    version: int
    learning_rate: float


@dataclass(frozen=True)
class CorrectionRecord:
    """One applied user correction"""
    source_index: int
    original_target: Optional[int]
    corrected_target: Optional[int]
    reason: str
    original_features: FeatureVector
    corrected_features: FeatureVector
    weights_before: FeatureWeights
    weights_after: FeatureWeights
    version: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict:
        return {
            "source_index": self.source_index,
            "original_target": self.original_target,
            "corrected_target": self.corrected_target,
            "reason": self.reason,
            "original_features": self.original_features.to_dict(),
            "corrected_features": self.corrected_features.to_dict(),
            "weights_after": self.weights_after.to_dict(),
            "version": self.version,
            "timestamp": self.timestamp,
        }


class CorrectionModel:
    """
    Online linear learner over the four alignment features.

    update: w_f += learning_rate * (feature_f(corrected) - feature_f(original)),
    then clip to >= 0 and renormalize to sum 1.
    """

    def __init__(self, config: Optional[AlignmentConfig] = None, key: Optional[ModelKey] = None):
        config = config or AlignmentConfig()
        self.key = key
        self._initial = FeatureWeights.from_mapping(config.weight_dict())
        self._snapshot = ModelSnapshot(self._initial, 0, config.learning_rate)
        self._history: Deque[CorrectionRecord] = deque(maxlen=config.correction_history_size)
        self._write_lock = threading.Lock()

    def snapshot(self) -> ModelSnapshot:
        return self._snapshot

    @property
    def weights(self) -> FeatureWeights:
        return self._snapshot.weights

    @property
    def version(self) -> int:
        return self._snapshot.version

    @property
    def learning_rate(self) -> float:
        return self._snapshot.learning_rate

    def learn(
        self,
        original: FeatureVector,
        corrected: FeatureVector,
        reason: str = "",
        source_index: int = -1,
        original_target: Optional[int] = None,
        corrected_target: Optional[int] = None,
    ) -> CorrectionRecord:
        """Apply one correction and publish the new weights"""
        with self._write_lock:
            current = self._snapshot
            rate = current.learning_rate
            updated = FeatureWeights(*(
                w + rate * (c - o)
                for w, c, o in zip(current.weights.as_tuple(), corrected.as_tuple(), original.as_tuple())
            )).normalized()

            record = CorrectionRecord(
                source_index=source_index,
                original_target=original_target,
                corrected_target=corrected_target,
                reason=reason,
                original_features=original,
                corrected_features=corrected,
                weights_before=current.weights,
                weights_after=updated,
                version=current.version + 1,
            )
            self._history.append(record)
            self._snapshot = ModelSnapshot(updated, current.version + 1, rate)

        logger.debug(
            f"Correction model {self.key} v{record.version}: "
            f"{dict(zip(FEATURE_NAMES, (round(w, 4) for w in updated.as_tuple())))}"
        )
        return record

    def set_learning_rate(self, learning_rate: float) -> None:
        if learning_rate < 0:
            raise ValueError("learning_rate must be non-negative")
        with self._write_lock:
            current = self._snapshot
            self._snapshot = ModelSnapshot(current.weights, current.version, learning_rate)

    def history(self) -> List[CorrectionRecord]:
        return list(self._history)

    @property
    def history_capacity(self) -> int:
        return self._history.maxlen or 0

    def reset(self) -> None:
        with self._write_lock:
            current = self._snapshot
            self._history.clear()
            self._snapshot = ModelSnapshot(self._initial, current.version + 1, current.learning_rate)

    def to_dict(self) -> Dict:
        snapshot = self._snapshot
        return {
            "key": list(self.key) if self.key else None,
            "weights": snapshot.weights.to_dict(),
            "version": snapshot.version,
            "learning_rate": snapshot.learning_rate,
            "history_size": len(self._history),
            "history_capacity": self.history_capacity,
        }


class CorrectionModelRegistry:
    """One CorrectionModel per (project, source language, target language)"""

    def __init__(self, config: Optional[AlignmentConfig] = None):
        self.config = config or AlignmentConfig()
        self._models: Dict[ModelKey, CorrectionModel] = {}
        self._lock = threading.Lock()

    @staticmethod
    def make_key(project: str, source_language: str, target_language: str) -> ModelKey:
        return project, source_language.lower(), target_language.lower()

    def get(self, project: str, source_language: str, target_language: str) -> CorrectionModel:
        key = self.make_key(project, source_language, target_language)
        model = self._models.get(key)
        if model is not None:
            return model
        with self._lock:
            model = self._models.get(key)
            if model is None:
                model = CorrectionModel(self.config, key=key)
                self._models[key] = model
                logger.debug(f"Created correction model for {key}")
            return model

    def keys(self) -> List[ModelKey]:
        return list(self._models)

    def __len__(self) -> int:
        return len(self._models)
