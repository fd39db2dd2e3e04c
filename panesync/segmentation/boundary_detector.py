#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Sentence Boundary Detector - Profile-driven sentence splitting

Text is processed line by line; a line break always ends a sentence.
Within a line, terminal punctuation clusters are candidates. The first
profile pattern matching at a candidate decides whether it is a boundary
and supplies the base confidence. A candidate is suppressed when it ends
a known abbreviation or an initial, or when it sits inside an unbalanced
bracket or quotation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

import regex

from config.logging_config import get_logger

from ..language import (
    CLOSERS,
    BoundaryPattern,
    LanguageProfile,
    LanguageProfileRegistry,
    default_registry,
)
from ..structure.patterns import iter_lines

logger = get_logger(__name__)


class BoundaryType(str, Enum):
    """Kind of terminal punctuation that closed a sentence"""
    PERIOD = "period"
    EXCLAMATION = "exclamation"
    QUESTION = "question"
    ELLIPSIS = "ellipsis"
    END_OF_PARAGRAPH = "end_of_paragraph"


@dataclass(frozen=True)
class Sentence:
    """A detected sentence span [start, end) within pane content"""
    index: int
    start: int
    end: int
    text: str
    confidence: float
    boundary_type: BoundaryType
    pane_id: Optional[str] = None

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end

    def to_dict(self) -> Dict:
        return {
            "index": self.index,
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "confidence": round(self.confidence, 4),
            "boundary_type": self.boundary_type.value,
        }


@dataclass
class DetectionResult:
    """Sentences plus the profile actually used"""
    sentences: List[Sentence]
    language: str
    requested_language: str
    warnings: List[str] = field(default_factory=list)
    profile: Optional[LanguageProfile] = None

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


# Constants
END_OF_LINE_CONFIDENCE = 0.9
CLOSING_QUOTE_BONUS = 0.03
SHORT_SENTENCE_PENALTY = 0.15
MIN_SENTENCE_WORDS = 2

QUOTE_CLOSERS = frozenset("\"'”’“»«」』")
FENCE_MARKERS = ("```", "~~~")

_HAS_WORD_CHAR = regex.compile(r"[\p{L}\p{N}]")
_TOKEN_BEFORE = regex.compile(r"[\p{L}\p{N}.\-]+$")
_TRAILING_TERMINAL = regex.compile(r"[.!?…。！？．]+$")


def classify_boundary(cluster: str) -> BoundaryType:
    """Map a terminal punctuation cluster to its boundary type"""
    if "…" in cluster or "..." in cluster:
        return BoundaryType.ELLIPSIS
    if "?" in cluster or "？" in cluster:
        return BoundaryType.QUESTION
    if "!" in cluster or "！" in cluster:
        return BoundaryType.EXCLAMATION
    if any(c in cluster for c in ".。．"):
        return BoundaryType.PERIOD
    return BoundaryType.END_OF_PARAGRAPH


class _BracketState:
    """Open bracket/quote tracking for one line"""

    def __init__(self, profile: LanguageProfile):
        self.openers: Dict[str, str] = {}
        self.closers: Dict[str, str] = {}
        self.symmetric = set()
        for opener, closer in profile.quote_pairs:
            if opener == closer:
                self.symmetric.add(opener)
            else:
                self.openers[opener] = closer
                self.closers[closer] = opener
        self.stack: List[str] = []
        self.open_symmetric = set()
        self.position = 0

    def advance(self, line: str, until: int) -> None:
        for ch in line[self.position:until]:
            if ch in self.symmetric:
                if ch in self.open_symmetric:
                    self.open_symmetric.discard(ch)
                else:
                    self.open_symmetric.add(ch)
            elif ch in self.closers:
                if self.stack and self.stack[-1] == self.closers[ch]:
                    self.stack.pop()
            elif ch in self.openers:
                self.stack.append(ch)
        self.position = max(self.position, until)

    @property
    def balanced(self) -> bool:
        return not self.stack and not self.open_symmetric


class SentenceBoundaryDetector:
    """
    Split raw pane content into sentences.

    Usage:
        detector = SentenceBoundaryDetector()
        result = detector.detect("Hello world! How are you?", "en")
        [s.text for s in result.sentences]
        # ['Hello world!', 'How are you?']
    """

    def __init__(
        self,
        registry: Optional[LanguageProfileRegistry] = None,
        supported_languages: Optional[Iterable[str]] = None,
    ):
        self.registry = registry if registry is not None else default_registry
        self.supported_languages = list(supported_languages) if supported_languages else None
        self._candidate_cache: Dict[str, regex.Pattern] = {}

    def detect(self, text: str, language: str, pane_id: Optional[str] = None) -> DetectionResult:
        """
        Detect sentences in text.

        Unknown or disabled languages are segmented with the default
        profile and reported through DetectionResult.warnings.
        """
        profile, warning = self.registry.resolve(language, self.supported_languages)
        sentences = self.detect_with_profile(text, profile, pane_id=pane_id)
        return DetectionResult(
            sentences=sentences,
            language=profile.code,
            requested_language=language,
            warnings=[warning] if warning else [],
            profile=profile,
        )

    def detect_with_profile(
        self,
        text: str,
        profile: LanguageProfile,
        pane_id: Optional[str] = None,
    ) -> List[Sentence]:
        sentences: List[Sentence] = []
        if not text or not text.strip():
            return sentences

        in_fence = False
        for offset, line in iter_lines(text):
            stripped = line.strip()
            if stripped.startswith(FENCE_MARKERS):
                in_fence = not in_fence
                continue
            if not _HAS_WORD_CHAR.search(line):
                continue
            if in_fence:
                start = len(line) - len(line.lstrip())
                end = len(line.rstrip())
                self._emit(sentences, line, offset, start, end,
                           END_OF_LINE_CONFIDENCE, BoundaryType.END_OF_PARAGRAPH,
                           profile, pane_id, closing_quote=False)
                continue
            self._segment_line(sentences, line, offset, profile, pane_id)

        return sentences

    def _candidates(self, profile: LanguageProfile) -> regex.Pattern:
        pattern = self._candidate_cache.get(profile.terminal_punctuation)
        if pattern is None:
            terminals = "".join(regex.escape(c) for c in profile.terminal_punctuation)
            closers = "".join(regex.escape(c) for c in CLOSERS)
            pattern = regex.compile(f"[{terminals}]+[{closers}]*")
            self._candidate_cache[profile.terminal_punctuation] = pattern
        return pattern

    @staticmethod
    def _match_pattern(line: str, pos: int, profile: LanguageProfile) -> Optional[BoundaryPattern]:
        for boundary_pattern in profile.boundary_patterns:
            if boundary_pattern.match(line, pos):
                return boundary_pattern
        return None

    @staticmethod
    def _is_abbreviation(line: str, cluster_start: int, cluster: str,
                         profile: LanguageProfile) -> bool:
        if cluster.rstrip(CLOSERS) != ".":
            return False
        token_match = _TOKEN_BEFORE.search(line, 0, cluster_start)
        if token_match is None:
            return False
        token = token_match.group().strip(".-")
        if not token:
            return False
        # Initials: "J. Smith"
        if len(token) == 1 and token.isalpha() and token.isupper():
            return True
        return profile.is_abbreviation(token)

    def _segment_line(
        self,
        out: List[Sentence],
        line: str,
        offset: int,
        profile: LanguageProfile,
        pane_id: Optional[str],
    ) -> None:
        seg_start = len(line) - len(line.lstrip())
        brackets = _BracketState(profile)
        brackets.position = seg_start

        for match in self._candidates(profile).finditer(line, seg_start):
            brackets.advance(line, match.end())
            boundary_pattern = self._match_pattern(line, match.start(), profile)
            if boundary_pattern is None:
                continue
            cluster = match.group()
            if not brackets.balanced:
                continue
            if self._is_abbreviation(line, match.start(), cluster, profile):
                continue

            self._emit(
                out, line, offset, seg_start, match.end(),
                boundary_pattern.specificity, classify_boundary(cluster),
                profile, pane_id,
                closing_quote=any(c in QUOTE_CLOSERS for c in cluster),
            )
            seg_start = match.end()
            while seg_start < len(line) and line[seg_start].isspace():
                seg_start += 1

        end = len(line.rstrip())
        if seg_start < end:
            # Line break is a hard boundary
            tail = _TRAILING_TERMINAL.search(line[seg_start:end].rstrip(CLOSERS))
            self._emit(
                out, line, offset, seg_start, end,
                END_OF_LINE_CONFIDENCE, classify_boundary(tail.group() if tail else ""),
                profile, pane_id, closing_quote=False,
            )

    @staticmethod
    def _emit(
        out: List[Sentence],
        line: str,
        offset: int,
        start: int,
        end: int,
        confidence: float,
        boundary_type: BoundaryType,
        profile: LanguageProfile,
        pane_id: Optional[str],
        closing_quote: bool,
    ) -> None:
        text = line[start:end]
        if not text.strip():
            return
        if closing_quote:
            confidence += CLOSING_QUOTE_BONUS
        if profile.has_spaces and len(text.split()) < MIN_SENTENCE_WORDS:
            confidence -= SHORT_SENTENCE_PENALTY
        out.append(Sentence(
            index=len(out),
            start=offset + start,
            end=offset + end,
            text=text,
            confidence=min(1.0, max(0.0, confidence)),
            boundary_type=boundary_type,
            pane_id=pane_id,
        ))
