#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Segmented Document - Sentences and structure tags for one pane content snapshot
"""

import hashlib
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..language import LanguageProfile
from ..structure.analyzer import StructureBlock, StructureTag, TextStructureAnalyzer
from .boundary_detector import Sentence, SentenceBoundaryDetector


def content_hash(text: str) -> str:
    """SHA256 hex digest of pane content"""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass
class SegmentedDocument:
    """One parse of pane content; replaced wholesale on every reparse"""
    text: str
    language: str
    profile: LanguageProfile
    sentences: List[Sentence]
    tags: List[StructureTag]
    blocks: List[StructureBlock] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    pane_id: Optional[str] = None
    text_hash: str = field(init=False)
    _starts: List[int] = field(init=False, repr=False)

    def __post_init__(self):
        self.text_hash = content_hash(self.text)
        self._starts = [s.start for s in self.sentences]

    def __len__(self) -> int:
        return len(self.sentences)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    @property
    def average_sentence_length(self) -> float:
        if not self.sentences:
            return 0.0
        return sum(s.length for s in self.sentences) / len(self.sentences)

    def tag(self, index: int) -> Optional[StructureTag]:
        if 0 <= index < len(self.tags):
            return self.tags[index]
        return None

    def sentence_at(self, offset: int) -> Optional[int]:
        """
        Index of the sentence enclosing offset.

        Offsets between sentences map to the preceding sentence, offsets
        before the first sentence map to the first one.
        """
        if not self.sentences:
            return None
        pos = bisect_right(self._starts, offset) - 1
        return max(pos, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pane_id": self.pane_id,
            "language": self.language,
            "text_hash": self.text_hash,
            "sentences": [s.to_dict() for s in self.sentences],
            "tags": [t.to_dict() for t in self.tags],
            "warnings": list(self.warnings),
        }


def segment_document(
    text: str,
    language: str,
    detector: Optional[SentenceBoundaryDetector] = None,
    analyzer: Optional[TextStructureAnalyzer] = None,
    pane_id: Optional[str] = None,
) -> SegmentedDocument:
    """
    Run boundary detection and structure analysis over pane content.

    Args:
        text: Raw pane content
        language: Requested language code
        detector: Boundary detector (default: shared registry)
        analyzer: Structure analyzer

    Returns:
        SegmentedDocument with one StructureTag per sentence
    """
    detector = detector if detector is not None else SentenceBoundaryDetector()
    analyzer = analyzer or TextStructureAnalyzer()

    detection = detector.detect(text, language, pane_id=pane_id)
    blocks = analyzer.analyze(text)
    tags = analyzer.tag_sentences(blocks, detection.sentences)
    return SegmentedDocument(
        text=text,
        language=detection.language,
        profile=detection.profile,
        sentences=detection.sentences,
        tags=tags,
        blocks=blocks,
        warnings=list(detection.warnings),
        pane_id=pane_id,
    )
