"""
Quality Module - Alignment quality indicators and problem classification

Components:
  - QualityCalculator: metrics + problem areas for one alignment list
  - QualityIndicator: overall/position/length/structure scores
  - ProblemArea, IssueType: flagged problems
  - QualityWeights: weights for overall_quality
"""

from .indicators import (
    AUTO_FIXABLE_ISSUES,
    IssueType,
    ProblemArea,
    QualityCalculator,
    QualityIndicator,
    QualityWeights,
)

__all__ = [
    'QualityCalculator',
    'QualityIndicator',
    'QualityWeights',
    'ProblemArea',
    'IssueType',
    'AUTO_FIXABLE_ISSUES',
]
