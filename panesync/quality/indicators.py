"""
Quality Indicator Module

Scores one alignment list for a (source, target) pane pair:
- position_consistency: share of consecutive matched entries (by source
  index) whose target index does not go backwards
- length_ratio_consistency: 1 - mean(|actual_ratio / expected_ratio - 1|)
- structural_coherence: share of entries whose structure categories match
- overall_quality: weighted mean of the three

and classifies problem areas (length mismatch, structural divergence,
missing/extra sentences, order mismatch, boundary detection errors).
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from config.constants import (
    BOUNDARY_CONFIDENCE_FLOOR,
    CONFIDENCE_THRESHOLD,
    LENGTH_MISMATCH_RATIO,
    QUALITY_LENGTH_WEIGHT,
    QUALITY_POSITION_WEIGHT,
    QUALITY_STRUCTURE_WEIGHT,
)
from config.logging_config import get_logger

from ..alignment.features import expected_length_ratio, length_deviation, length_ratio
from ..alignment.models import AlignmentEntry
from ..segmentation.document import SegmentedDocument

logger = get_logger(__name__)


class IssueType(str, Enum):
    """Problem categories reported on an alignment"""
    LENGTH_MISMATCH = "length_mismatch"
    STRUCTURAL_DIVERGENCE = "structural_divergence"
    MISSING_SENTENCE = "missing_sentence"
    EXTRA_SENTENCE = "extra_sentence"
    ORDER_MISMATCH = "order_mismatch"
    BOUNDARY_DETECTION_ERROR = "boundary_detection_error"


# Resolvable by re-running detection/alignment with adjusted parameters
AUTO_FIXABLE_ISSUES = frozenset({IssueType.LENGTH_MISMATCH, IssueType.BOUNDARY_DETECTION_ERROR})

SUGGESTIONS: Dict[IssueType, str] = {
    IssueType.LENGTH_MISMATCH:
        "Consider splitting or merging sentences to better match the translation structure.",
    IssueType.STRUCTURAL_DIVERGENCE:
        "Review sentence structure - the translation may have different punctuation or formatting.",
    IssueType.MISSING_SENTENCE:
        "A sentence appears to be missing in the translation.",
    IssueType.EXTRA_SENTENCE:
        "An extra sentence appears in the translation.",
    IssueType.ORDER_MISMATCH:
        "Sentence order differs between source and translation.",
    IssueType.BOUNDARY_DETECTION_ERROR:
        "Sentence boundary detection may be incorrect - check punctuation.",
}

MISSING_SENTENCE_SEVERITY = 0.9
EXTRA_SENTENCE_SEVERITY = 0.6
STRUCTURAL_DIVERGENCE_SEVERITY = 0.7
ORDER_MISMATCH_BASE_SEVERITY = 0.3


def _clip(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


@dataclass(frozen=True)
class ProblemArea:
    """
    One flagged problem.

    span is a [start, end) character range in the pane named by side
    ("source" or "target").
    """
    issue_type: IssueType
    span: Tuple[int, int]
    severity: float
    suggestion: str
    auto_fixable: bool
    source_index: Optional[int] = None
    target_index: Optional[int] = None
    side: str = "source"

    def to_dict(self) -> Dict:
        return {
            "issue_type": self.issue_type.value,
            "span": list(self.span),
            "severity": round(self.severity, 4),
            "suggestion": self.suggestion,
            "auto_fixable": self.auto_fixable,
            "source_index": self.source_index,
            "target_index": self.target_index,
            "side": self.side,
        }


def make_problem(
    issue_type: IssueType,
    span: Tuple[int, int],
    severity: float,
    source_index: Optional[int] = None,
    target_index: Optional[int] = None,
    side: str = "source",
) -> ProblemArea:
    return ProblemArea(
        issue_type=issue_type,
        span=span,
        severity=_clip(severity),
        suggestion=SUGGESTIONS[issue_type],
        auto_fixable=issue_type in AUTO_FIXABLE_ISSUES,
        source_index=source_index,
        target_index=target_index,
        side=side,
    )


@dataclass(frozen=True)
class QualityWeights:
    """Weights of the three consistency metrics in overall_quality"""
    position: float = QUALITY_POSITION_WEIGHT
    length: float = QUALITY_LENGTH_WEIGHT
    structure: float = QUALITY_STRUCTURE_WEIGHT

    def __post_init__(self):
        if min(self.position, self.length, self.structure) < 0:
            raise ValueError("Quality weights must be non-negative")
        if self.position + self.length + self.structure <= 0:
            raise ValueError("At least one quality weight must be positive")

    def combine(self, position: float, length: float, structure: float) -> float:
        total = self.position + self.length + self.structure
        return _clip((self.position * position + self.length * length + self.structure * structure) / total)


@dataclass
class QualityIndicator:
    """Quality scores of one alignment list, all in [0, 1]"""
    overall_quality: float = 0.0
    position_consistency: float = 0.0
    length_ratio_consistency: float = 0.0
    structural_coherence: float = 0.0
    problem_areas: List[ProblemArea] = field(default_factory=list)

    def problems(self, issue_type: IssueType) -> List[ProblemArea]:
        return [p for p in self.problem_areas if p.issue_type == issue_type]

    def scores(self) -> Tuple[float, float, float, float]:
        return (
            self.overall_quality,
            self.position_consistency,
            self.length_ratio_consistency,
            self.structural_coherence,
        )

    def to_dict(self) -> Dict:
        return {
            "overall_quality": round(self.overall_quality, 6),
            "position_consistency": round(self.position_consistency, 6),
            "length_ratio_consistency": round(self.length_ratio_consistency, 6),
            "structural_coherence": round(self.structural_coherence, 6),
            "problem_areas": [p.to_dict() for p in self.problem_areas],
        }

    def __repr__(self) -> str:
        return (
            f"QualityIndicator(overall={self.overall_quality:.3f}, "
            f"position={self.position_consistency:.3f}, "
            f"length={self.length_ratio_consistency:.3f}, "
            f"structure={self.structural_coherence:.3f}, "
            f"problems={len(self.problem_areas)})"
        )


class QualityCalculator:
    """
    Compute QualityIndicator for an alignment list.

    Usage:
        calculator = QualityCalculator()
        indicator = calculator.calculate(result.entries, source_doc, target_doc,
                                         unmatched_targets=result.unmatched_targets)
    """

    def __init__(
        self,
        weights: Optional[QualityWeights] = None,
        confidence_threshold: float = CONFIDENCE_THRESHOLD,
        boundary_confidence_floor: float = BOUNDARY_CONFIDENCE_FLOOR,
        length_mismatch_ratio: float = LENGTH_MISMATCH_RATIO,
    ):
        self.weights = weights if weights is not None else QualityWeights()
        self.confidence_threshold = confidence_threshold
        self.boundary_confidence_floor = boundary_confidence_floor
        self.length_mismatch_ratio = length_mismatch_ratio

    def settings(self) -> Dict:
        """Every setting that changes calculate() output"""
        return {
            "position_weight": self.weights.position,
            "length_weight": self.weights.length,
            "structure_weight": self.weights.structure,
            "confidence_threshold": self.confidence_threshold,
            "boundary_confidence_floor": self.boundary_confidence_floor,
            "length_mismatch_ratio": self.length_mismatch_ratio,
        }

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    @staticmethod
    def position_consistency(entries: Sequence[AlignmentEntry]) -> float:
        matched = sorted((e for e in entries if e.target_index is not None), key=lambda e: e.source_index)
        if len(matched) < 2:
            return 1.0 if entries else 0.0
        ordered = sum(
            1 for prev, cur in zip(matched, matched[1:])
            if cur.target_index >= prev.target_index
        )
        return ordered / (len(matched) - 1)

    @staticmethod
    def length_ratio_consistency(
        entries: Sequence[AlignmentEntry],
        source: SegmentedDocument,
        target: SegmentedDocument,
    ) -> float:
        expected = expected_length_ratio(source.profile, target.profile)
        deviations = [
            length_deviation(
                source.sentences[e.source_index].length,
                target.sentences[e.target_index].length,
                expected,
            )
            for e in entries if e.target_index is not None
        ]
        if not deviations:
            return 0.0
        return _clip(1.0 - sum(deviations) / len(deviations))

    @staticmethod
    def structural_coherence(
        entries: Sequence[AlignmentEntry],
        source: SegmentedDocument,
        target: SegmentedDocument,
    ) -> float:
        if not entries:
            return 0.0
        matching = 0
        for e in entries:
            if e.target_index is None:
                continue
            source_tag, target_tag = source.tag(e.source_index), target.tag(e.target_index)
            if source_tag is not None and target_tag is not None and source_tag.category == target_tag.category:
                matching += 1
        return matching / len(entries)

    # ------------------------------------------------------------------
    # Indicator
    # ------------------------------------------------------------------

    def calculate(
        self,
        entries: Sequence[AlignmentEntry],
        source: SegmentedDocument,
        target: SegmentedDocument,
        unmatched_targets: Optional[Sequence[int]] = None,
    ) -> QualityIndicator:
        if not entries:
            return QualityIndicator()

        position = self.position_consistency(entries)
        length = self.length_ratio_consistency(entries, source, target)
        structure = self.structural_coherence(entries, source, target)

        indicator = QualityIndicator(
            overall_quality=self.weights.combine(position, length, structure),
            position_consistency=_clip(position),
            length_ratio_consistency=length,
            structural_coherence=_clip(structure),
            problem_areas=self.classify_problems(entries, source, target, unmatched_targets or []),
        )
        logger.debug(f"Quality: {indicator!r}")
        return indicator

    def classify_problems(
        self,
        entries: Sequence[AlignmentEntry],
        source: SegmentedDocument,
        target: SegmentedDocument,
        unmatched_targets: Sequence[int],
    ) -> List[ProblemArea]:
        """At most one problem of each type per entry, plus one per extra target sentence"""
        problems: List[ProblemArea] = []
        expected = expected_length_ratio(source.profile, target.profile)
        target_count = max(len(target), 1)
        highest_target = -1

        for entry in sorted(entries, key=lambda e: e.source_index):
            src = source.sentences[entry.source_index]
            span = (src.start, src.end)

            if entry.target_index is None:
                problems.append(make_problem(
                    IssueType.MISSING_SENTENCE, span, MISSING_SENTENCE_SEVERITY,
                    source_index=entry.source_index,
                ))
                continue

            tgt = target.sentences[entry.target_index]
            entry_issues = set()

            # Length: actual ratio against expectation beyond x2 or /2
            relative = length_ratio(src.length, tgt.length) / expected
            if relative > self.length_mismatch_ratio or relative < 1.0 / self.length_mismatch_ratio:
                severity = _clip(abs(math.log2(max(relative, 1e-9))) / 3.0, 0.1, 1.0)
                problems.append(make_problem(
                    IssueType.LENGTH_MISMATCH, span, severity,
                    entry.source_index, entry.target_index,
                ))
                entry_issues.add(IssueType.LENGTH_MISMATCH)

            source_tag, target_tag = source.tag(entry.source_index), target.tag(entry.target_index)
            if source_tag is not None and target_tag is not None and source_tag.category != target_tag.category:
                problems.append(make_problem(
                    IssueType.STRUCTURAL_DIVERGENCE, span, STRUCTURAL_DIVERGENCE_SEVERITY,
                    entry.source_index, entry.target_index,
                ))
                entry_issues.add(IssueType.STRUCTURAL_DIVERGENCE)

            if entry.target_index < highest_target:
                displacement = (highest_target - entry.target_index) / target_count
                problems.append(make_problem(
                    IssueType.ORDER_MISMATCH, span, ORDER_MISMATCH_BASE_SEVERITY + displacement,
                    entry.source_index, entry.target_index,
                ))
                entry_issues.add(IssueType.ORDER_MISMATCH)
            highest_target = max(highest_target, entry.target_index)

            boundary_confidence = min(src.confidence, tgt.confidence)
            if boundary_confidence < self.boundary_confidence_floor:
                problems.append(make_problem(
                    IssueType.BOUNDARY_DETECTION_ERROR, span, 1.0 - boundary_confidence,
                    entry.source_index, entry.target_index,
                ))
            elif (entry.confidence < self.confidence_threshold and not entry.validated
                  and not entry_issues):
                # Low confidence with no other explanation
                problems.append(make_problem(
                    IssueType.BOUNDARY_DETECTION_ERROR, span, 1.0 - entry.confidence,
                    entry.source_index, entry.target_index,
                ))

        for target_index in unmatched_targets:
            if 0 <= target_index < len(target):
                tgt = target.sentences[target_index]
                problems.append(make_problem(
                    IssueType.EXTRA_SENTENCE, (tgt.start, tgt.end), EXTRA_SENTENCE_SEVERITY,
                    target_index=target_index, side="target",
                ))

        return problems
