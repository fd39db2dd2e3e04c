#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Alignment Features - The four similarity signals scored for a sentence pair

All features lie in [0, 1]:
- position: closeness of relative positions in both documents
- length: target/source length ratio against the profile expectation
- structure: structural tag agreement (category and level)
- content: boundary type, punctuation overlap and shared numbers
"""

import re
import string
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from ..language import LanguageProfile
from ..segmentation.boundary_detector import Sentence
from ..segmentation.document import SegmentedDocument
from ..structure.analyzer import StructureTag

FEATURE_NAMES: Tuple[str, ...] = ("position", "length", "structure", "content")

_NUMBER_PATTERN = re.compile(r"\d+(?:[.,]\d+)*")
_ASCII_PUNCTUATION = frozenset(string.punctuation)


def _clip(value: float) -> float:
    return min(1.0, max(0.0, value))


@dataclass(frozen=True)
class FeatureVector:
    """Feature values for one (source, target) sentence pair"""
    position: float
    length: float
    structure: float
    content: float

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return self.position, self.length, self.structure, self.content

    def to_dict(self) -> Dict[str, float]:
        return dict(zip(FEATURE_NAMES, self.as_tuple()))


ZERO_FEATURES = FeatureVector(0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class FeatureWeights:
    """Non-negative feature weights summing to 1"""
    position: float
    length: float
    structure: float
    content: float

    @classmethod
    def from_mapping(cls, weights: Mapping[str, float]) -> "FeatureWeights":
        return cls(*(float(weights.get(name, 0.0)) for name in FEATURE_NAMES)).normalized()

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return self.position, self.length, self.structure, self.content

    def normalized(self) -> "FeatureWeights":
        values = [max(0.0, w) for w in self.as_tuple()]
        total = sum(values)
        if total <= 0:
            # Degenerate after clipping; fall back to uniform weights
            return FeatureWeights(0.25, 0.25, 0.25, 0.25)
        return FeatureWeights(*(v / total for v in values))

    def score(self, features: FeatureVector) -> float:
        """Weighted sum of features, clipped to [0, 1]"""
        return _clip(sum(w * f for w, f in zip(self.as_tuple(), features.as_tuple())))

    def to_dict(self) -> Dict[str, float]:
        return {name: round(w, 6) for name, w in zip(FEATURE_NAMES, self.as_tuple())}


def position_similarity(source_index: int, source_count: int, target_index: int, target_count: int) -> float:
    """1 - |relative source position - relative target position|, using sentence midpoints"""
    if source_count <= 0 or target_count <= 0:
        return 0.0
    source_pos = (source_index + 0.5) / source_count
    target_pos = (target_index + 0.5) / target_count
    return _clip(1.0 - abs(source_pos - target_pos))


def expected_length_ratio(source_profile: LanguageProfile, target_profile: LanguageProfile) -> float:
    """Expected target/source sentence length ratio for a language pair"""
    return target_profile.average_sentence_length / max(source_profile.average_sentence_length, 1e-9)


def length_ratio(source_length: int, target_length: int) -> float:
    return target_length / max(source_length, 1)


def length_deviation(source_length: int, target_length: int, expected_ratio: float) -> float:
    """|actual_ratio / expected_ratio - 1|"""
    return abs(length_ratio(source_length, target_length) / max(expected_ratio, 1e-9) - 1.0)


def length_similarity(deviation: float, max_deviation: float) -> float:
    return _clip(1.0 - deviation / max_deviation)


def structure_similarity(source_tag: Optional[StructureTag], target_tag: Optional[StructureTag]) -> float:
    if source_tag is None or target_tag is None:
        return 0.0
    return source_tag.similarity(target_tag)


def punctuation_overlap(source_text: str, target_text: str) -> float:
    """Share of ASCII punctuation marks found on both sides"""
    source_punct = [c for c in source_text if c in _ASCII_PUNCTUATION]
    target_punct = [c for c in target_text if c in _ASCII_PUNCTUATION]

    if not source_punct and not target_punct:
        return 1.0

    common = sum(1 for c in source_punct if c in target_punct)
    return common / max(len(source_punct), len(target_punct))


def extract_numbers(text: str) -> frozenset:
    return frozenset(m.group().replace(",", ".") for m in _NUMBER_PATTERN.finditer(text))


def content_similarity(source: Sentence, target: Sentence) -> float:
    """Mean of boundary type agreement, punctuation overlap and number overlap"""
    signals = [
        1.0 if source.boundary_type == target.boundary_type else 0.0,
        punctuation_overlap(source.text, target.text),
    ]
    source_numbers = extract_numbers(source.text)
    target_numbers = extract_numbers(target.text)
    if source_numbers or target_numbers:
        signals.append(len(source_numbers & target_numbers) / len(source_numbers | target_numbers))
    return _clip(sum(signals) / len(signals))


class FeatureExtractor:
    """
    Feature computation for a fixed pair of segmented documents.

    Results are memoized per (source, target) index pair; an extractor is
    built per alignment run.
    """

    def __init__(self, source: SegmentedDocument, target: SegmentedDocument, max_length_ratio_deviation: float):
        self.source = source
        self.target = target
        self.max_length_ratio_deviation = max_length_ratio_deviation
        self.expected_ratio = expected_length_ratio(source.profile, target.profile)
        self._memo: Dict[Tuple[int, int], FeatureVector] = {}

    def length_deviation(self, source_index: int, target_index: int) -> float:
        return length_deviation(
            self.source.sentences[source_index].length,
            self.target.sentences[target_index].length,
            self.expected_ratio,
        )

    def features(self, source_index: int, target_index: Optional[int]) -> FeatureVector:
        if target_index is None:
            return ZERO_FEATURES
        key = (source_index, target_index)
        cached = self._memo.get(key)
        if cached is not None:
            return cached

        src = self.source.sentences[source_index]
        tgt = self.target.sentences[target_index]
        vector = FeatureVector(
            position=position_similarity(source_index, len(self.source), target_index, len(self.target)),
            length=length_similarity(self.length_deviation(source_index, target_index),
                                     self.max_length_ratio_deviation),
            structure=structure_similarity(self.source.tag(source_index), self.target.tag(target_index)),
            content=content_similarity(src, tgt),
        )
        self._memo[key] = vector
        return vector
