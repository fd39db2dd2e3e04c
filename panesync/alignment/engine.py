#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Alignment Engine - Sentence correspondences between two segmented documents

Two modes:
- position: when sentence counts are close, source i maps to
  round(i * |target| / |source|)
- dynamic programming: otherwise, a minimum-cost path over the
  (source, target) grid where a match costs 1 - score and leaving a
  sentence unmatched costs gap_penalty

DP ties (costs equal after rounding) prefer the diagonal move, then the
predecessor with the higher aggregate confidence, then skipping a source
sentence over skipping a target sentence.

Both modes yield a monotonic path. A final pass lets two matched sentences
exchange targets when length, structure and content evidence favors the
crossing by more than reorder_margin.
"""

import math
import time
from typing import List, Optional, Tuple

from config.logging_config import get_logger

from ..segmentation.document import SegmentedDocument
from .cancellation import CancellationToken
from .features import FeatureExtractor, FeatureVector, FeatureWeights
from .learning import CorrectionModel, CorrectionRecord
from .models import (
    AlignmentConfig,
    AlignmentEntry,
    AlignmentMethod,
    AlignmentResult,
    ValidationStatus,
)

logger = get_logger(__name__)

# DP moves, in tie-break preference order
DIAGONAL = 0
SKIP_SOURCE = 1
SKIP_TARGET = 2

COST_PRECISION = 9
CANCEL_CHECK_INTERVAL = 256


class AlignmentEngine:
    """
    Align sentences of a source document to a target document.

    Usage:
        engine = AlignmentEngine(AlignmentConfig())
        result = engine.align(source_doc, target_doc, weights=model.weights)
        for entry in result.entries:
            print(entry.source_index, entry.target_index, entry.confidence)
    """

    def __init__(self, config: Optional[AlignmentConfig] = None):
        self.config = config or AlignmentConfig()

    # ------------------------------------------------------------------
    # Mode selection
    # ------------------------------------------------------------------

    @staticmethod
    def divergence(source_count: int, target_count: int) -> float:
        """Relative sentence count difference in [0, 1]"""
        largest = max(source_count, target_count)
        if largest == 0:
            return 0.0
        return abs(source_count - target_count) / largest

    def select_mode(self, source_count: int, target_count: int) -> AlignmentMethod:
        if self.divergence(source_count, target_count) < self.config.divergence_threshold:
            return AlignmentMethod.POSITION
        return AlignmentMethod.DYNAMIC_PROGRAMMING

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def default_weights(self) -> FeatureWeights:
        return FeatureWeights.from_mapping(self.config.weight_dict())

    def extractor(self, source: SegmentedDocument, target: SegmentedDocument) -> FeatureExtractor:
        return FeatureExtractor(source, target, self.config.max_length_ratio_deviation)

    def features(
        self,
        source: SegmentedDocument,
        target: SegmentedDocument,
        source_index: int,
        target_index: Optional[int],
    ) -> FeatureVector:
        return self.extractor(source, target).features(source_index, target_index)

    @staticmethod
    def score(features: FeatureVector, weights: FeatureWeights) -> float:
        return weights.score(features)

    def classify(self, confidence: float, deviation: Optional[float]) -> ValidationStatus:
        """Validation status for a freshly computed entry"""
        if deviation is None:
            return ValidationStatus.NEEDS_REVIEW
        if deviation > self.config.max_length_ratio_deviation or confidence < self.config.confidence_threshold:
            return ValidationStatus.NEEDS_REVIEW
        if confidence >= self.config.auto_validation_threshold:
            return ValidationStatus.AUTO_VALIDATED
        return ValidationStatus.PENDING

    def _entry(
        self,
        extractor: FeatureExtractor,
        weights: FeatureWeights,
        source_index: int,
        target_index: Optional[int],
        method: AlignmentMethod,
    ) -> AlignmentEntry:
        if target_index is None:
            return AlignmentEntry(source_index, None, 0.0, method, ValidationStatus.NEEDS_REVIEW)
        confidence = weights.score(extractor.features(source_index, target_index))
        deviation = extractor.length_deviation(source_index, target_index)
        return AlignmentEntry(source_index, target_index, confidence, method,
                              self.classify(confidence, deviation))

    # ------------------------------------------------------------------
    # Alignment
    # ------------------------------------------------------------------

    def align(
        self,
        source: SegmentedDocument,
        target: SegmentedDocument,
        weights: Optional[FeatureWeights] = None,
        cancel_token: Optional[CancellationToken] = None,
        force_method: Optional[AlignmentMethod] = None,
        weights_version: int = 0,
    ) -> AlignmentResult:
        """
        Align every source sentence.

        Args:
            source: Segmented source pane content
            target: Segmented target pane content
            weights: Feature weights (default: config weights)
            cancel_token: Polled between rows; cancellation raises
                          AlignmentCancelledError
            force_method: Skip mode selection
            weights_version: Correction model version recorded on the result

        Returns:
            AlignmentResult with exactly one entry per source sentence
        """
        started = time.perf_counter()
        weights = weights or self.default_weights()
        n, m = len(source), len(target)
        method = force_method or self.select_mode(n, m)
        extractor = self.extractor(source, target)

        if n == 0:
            targets, unmatched = [], list(range(m))
        elif m == 0:
            targets, unmatched = [None] * n, []
        else:
            if method == AlignmentMethod.POSITION:
                targets, unmatched = self._align_by_position(n, m, cancel_token)
            else:
                targets, unmatched = self._align_dynamic(extractor, weights, n, m, cancel_token)
            targets = self._rematch_crossings(extractor, weights, targets, cancel_token)

        entries = [self._entry(extractor, weights, i, j, method) for i, j in enumerate(targets)]

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            f"Aligned {n}x{m} sentences via {method.value} in {elapsed_ms:.1f}ms "
            f"({len(unmatched)} unmatched targets)"
        )
        return AlignmentResult(
            entries=entries,
            method=method,
            source_count=n,
            target_count=m,
            unmatched_targets=unmatched,
            weights_version=weights_version,
            processing_time_ms=elapsed_ms,
            forced=force_method is not None,
        )

    def _align_by_position(
        self,
        n: int,
        m: int,
        cancel_token: Optional[CancellationToken],
    ) -> Tuple[List[Optional[int]], List[int]]:
        targets: List[Optional[int]] = []
        for i in range(n):
            if cancel_token is not None and i % CANCEL_CHECK_INTERVAL == 0:
                cancel_token.raise_if_cancelled()
            targets.append(min(m - 1, int(math.floor(i * m / n + 0.5))))
        used = set(targets)
        unmatched = [j for j in range(m) if j not in used]
        return targets, unmatched

    def _align_dynamic(
        self,
        extractor: FeatureExtractor,
        weights: FeatureWeights,
        n: int,
        m: int,
        cancel_token: Optional[CancellationToken],
    ) -> Tuple[List[Optional[int]], List[int]]:
        gap = self.config.gap_penalty
        cost = [[0.0] * (m + 1) for _ in range(n + 1)]
        gain = [[0.0] * (m + 1) for _ in range(n + 1)]
        move = [[DIAGONAL] * (m + 1) for _ in range(n + 1)]

        for i in range(1, n + 1):
            cost[i][0] = i * gap
            move[i][0] = SKIP_SOURCE
        for j in range(1, m + 1):
            cost[0][j] = j * gap
            move[0][j] = SKIP_TARGET

        for i in range(1, n + 1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            row, prev_row = cost[i], cost[i - 1]
            gain_row, prev_gain = gain[i], gain[i - 1]
            for j in range(1, m + 1):
                match_score = weights.score(extractor.features(i - 1, j - 1))
                candidates = (
                    (prev_row[j - 1] + 1.0 - match_score, prev_gain[j - 1] + match_score, DIAGONAL),
                    (prev_row[j] + gap, prev_gain[j], SKIP_SOURCE),
                    (row[j - 1] + gap, gain_row[j - 1], SKIP_TARGET),
                )
                best = min(candidates, key=_tie_break_key)
                row[j], gain_row[j], move[i][j] = best

        # Backtrace from the bottom-right corner
        targets: List[Optional[int]] = [None] * n
        unmatched: List[int] = []
        i, j = n, m
        while i > 0 or j > 0:
            step = move[i][j]
            if step == DIAGONAL and i > 0 and j > 0:
                targets[i - 1] = j - 1
                i, j = i - 1, j - 1
            elif step == SKIP_SOURCE and i > 0:
                i -= 1
            else:
                unmatched.append(j - 1)
                j -= 1
        unmatched.reverse()
        return targets, unmatched

    def _rematch_crossings(
        self,
        extractor: FeatureExtractor,
        weights: FeatureWeights,
        targets: List[Optional[int]],
        cancel_token: Optional[CancellationToken],
    ) -> List[Optional[int]]:
        """
        Let content evidence pull crossing matches out of a monotonic path.

        Two matched sentences at most reorder_window entries apart exchange
        targets when their length, structure and content evidence improves
        by more than reorder_margin. Position similarity is not part of the
        evidence. The largest gain is applied first; a gain at or below the
        margin keeps monotonic order.
        """
        window = self.config.reorder_window
        _, length_w, structure_w, content_w = weights.as_tuple()
        evidence_total = length_w + structure_w + content_w
        matched = [i for i, j in enumerate(targets) if j is not None]
        if window <= 0 or evidence_total <= 0 or len(matched) < 2:
            return targets

        def evidence(i: int, j: int) -> float:
            f = extractor.features(i, j)
            return (length_w * f.length + structure_w * f.structure + content_w * f.content) / evidence_total

        targets = list(targets)
        swaps = 0
        for _ in range(len(matched)):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            best_gain, best = self.config.reorder_margin, None
            for pos, i in enumerate(matched):
                ti = targets[i]
                for k in matched[pos + 1:pos + 1 + window]:
                    tk = targets[k]
                    if ti == tk:
                        continue
                    gain = evidence(i, tk) + evidence(k, ti) - evidence(i, ti) - evidence(k, tk)
                    if round(gain - best_gain, COST_PRECISION) > 0:
                        best_gain, best = gain, (i, k)
            if best is None:
                break
            i, k = best
            targets[i], targets[k] = targets[k], targets[i]
            swaps += 1

        if swaps:
            logger.debug(f"Re-matched {swaps} crossing pair(s) on content evidence")
        return targets

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def learn_from_correction(
        self,
        model: CorrectionModel,
        source: SegmentedDocument,
        target: SegmentedDocument,
        original: AlignmentEntry,
        corrected: AlignmentEntry,
        reason: str = "",
    ) -> CorrectionRecord:
        """
        Update a correction model from one user correction.

        Features are computed for both the original and corrected mapping
        of the same source sentence; the model moves its weights toward the
        features of the corrected mapping.
        """
        extractor = self.extractor(source, target)
        original_features = extractor.features(original.source_index, original.target_index)
        corrected_features = extractor.features(corrected.source_index, corrected.target_index)
        return model.learn(
            original_features,
            corrected_features,
            reason=reason,
            source_index=corrected.source_index,
            original_target=original.target_index,
            corrected_target=corrected.target_index,
        )


def _tie_break_key(candidate: Tuple[float, float, int]):
    total_cost, aggregate, step = candidate
    return (
        round(total_cost, COST_PRECISION),
        0 if step == DIAGONAL else 1,
        -round(aggregate, COST_PRECISION),
        step,
    )
