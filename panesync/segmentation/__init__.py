"""
Segmentation Module - Sentence boundaries and segmented pane content

Exports:
- SentenceBoundaryDetector, DetectionResult (profile-driven splitting)
- Sentence, BoundaryType
- SegmentedDocument, segment_document (sentences + structure tags)
"""

from .boundary_detector import (
    BoundaryType,
    DetectionResult,
    Sentence,
    SentenceBoundaryDetector,
)
from .document import SegmentedDocument, segment_document

__all__ = [
    'SentenceBoundaryDetector',
    'DetectionResult',
    'Sentence',
    'BoundaryType',
    'SegmentedDocument',
    'segment_document',
]
