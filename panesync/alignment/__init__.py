"""
Alignment Module - Sentence alignment engine and correction learning

Exports:
- AlignmentEngine (position and dynamic-programming modes)
- AlignmentConfig, AlignmentEntry, AlignmentResult, AlignmentStatistics
- AlignmentMethod, ValidationStatus
- FeatureVector, FeatureWeights, FeatureExtractor
- CorrectionModel, CorrectionModelRegistry, CorrectionRecord
- CancellationToken
"""

from .cancellation import CancellationToken
from .engine import AlignmentEngine
from .features import FEATURE_NAMES, FeatureExtractor, FeatureVector, FeatureWeights
from .learning import CorrectionModel, CorrectionModelRegistry, CorrectionRecord, ModelSnapshot
from .models import (
    AlignmentConfig,
    AlignmentEntry,
    AlignmentMethod,
    AlignmentResult,
    AlignmentStatistics,
    ValidationStatus,
)

__all__ = [
    'AlignmentEngine',
    'AlignmentConfig',
    'AlignmentEntry',
    'AlignmentMethod',
    'AlignmentResult',
    'AlignmentStatistics',
    'ValidationStatus',
    'FEATURE_NAMES',
    'FeatureExtractor',
    'FeatureVector',
    'FeatureWeights',
    'CorrectionModel',
    'CorrectionModelRegistry',
    'CorrectionRecord',
    'ModelSnapshot',
    'CancellationToken',
]
