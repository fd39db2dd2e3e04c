"""
PaneSync - Sentence alignment for parallel-language editing panes

Modules:
- language: language profile registry
- segmentation: sentence boundary detection
- structure: structural analysis (headings, lists, code, tables, quotes)
- alignment: alignment engine and correction learning
- quality: quality indicators and problem areas
- cache: sharded adaptive alignment cache
- orchestrator: multi-pane sessions
"""

__version__ = "1.0.0"

from .alignment import AlignmentConfig, AlignmentEngine, AlignmentEntry, AlignmentResult
from .cache import AdaptiveAlignmentCache, CacheConfig
from .errors import (
    AlignmentCancelledError,
    AlignmentTimeoutError,
    CacheCorruptionError,
    InvalidCorrectionError,
    InvalidPaneCountError,
    MalformedContentError,
    PaneNotFoundError,
    PaneSyncError,
    UnsupportedLanguageError,
)
from .language import LanguageProfile, LanguageProfileRegistry, default_registry
from .orchestrator import EventType, PaneSession, SessionEvent
from .quality import IssueType, QualityCalculator, QualityIndicator
from .segmentation import SentenceBoundaryDetector, segment_document

__all__ = [
    '__version__',
    'PaneSession',
    'EventType',
    'SessionEvent',
    'AlignmentEngine',
    'AlignmentConfig',
    'AlignmentEntry',
    'AlignmentResult',
    'AdaptiveAlignmentCache',
    'CacheConfig',
    'QualityCalculator',
    'QualityIndicator',
    'IssueType',
    'SentenceBoundaryDetector',
    'segment_document',
    'LanguageProfile',
    'LanguageProfileRegistry',
    'default_registry',
    'PaneSyncError',
    'UnsupportedLanguageError',
    'InvalidPaneCountError',
    'PaneNotFoundError',
    'AlignmentTimeoutError',
    'AlignmentCancelledError',
    'CacheCorruptionError',
    'MalformedContentError',
    'InvalidCorrectionError',
]
