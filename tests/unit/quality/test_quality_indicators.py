"""
Unit tests for alignment quality indicators and problem classification.
"""

import pytest

from panesync.alignment import AlignmentEntry, AlignmentMethod, ValidationStatus
from panesync.quality import IssueType, QualityCalculator, QualityIndicator, QualityWeights


def entry(source_index, target_index, confidence=0.9, status=ValidationStatus.PENDING):
    return AlignmentEntry(source_index, target_index, confidence, AlignmentMethod.DYNAMIC_PROGRAMMING, status)


class TestMetrics:
    """The three consistency metrics"""

    def test_empty_entries(self, quality_calculator, segment):
        """No entries give zero scores and no problems"""
        indicator = quality_calculator.calculate([], segment("", "en"), segment("", "es"))
        assert indicator.scores() == (0.0, 0.0, 0.0, 0.0)
        assert indicator.problem_areas == []

    def test_single_match_is_position_consistent(self):
        """Fewer than two matches are fully consistent"""
        assert QualityCalculator.position_consistency([entry(0, 0)]) == 1.0
        assert QualityCalculator.position_consistency([entry(0, None)]) == 1.0
        assert QualityCalculator.position_consistency([]) == 0.0

    @pytest.mark.parametrize("k", [1, 2, 3, 4, 5, 6])
    def test_reversed_prefix_lowers_position_consistency(self, k):
        """Each inverted adjacent pair lowers position consistency"""
        targets = list(reversed(range(k))) + list(range(k, 6))
        entries = [entry(i, t) for i, t in enumerate(targets)]
        assert QualityCalculator.position_consistency(entries) == pytest.approx(1 - (k - 1) / 5)

    def test_length_consistency_without_matches(self, segment, en_greeting, es_greeting):
        """Length consistency is zero with no matched pairs"""
        entries = [entry(0, None), entry(1, None), entry(2, None)]
        value = QualityCalculator.length_ratio_consistency(
            entries, segment(en_greeting, "en"), segment(es_greeting, "es"))
        assert value == 0.0

    def test_greeting_scores_high(self, engine, quality_calculator, segment, en_greeting, es_greeting):
        """A clean translation scores high with no problems"""
        source, target = segment(en_greeting, "en"), segment(es_greeting, "es")
        result = engine.align(source, target)
        indicator = quality_calculator.calculate(result.entries, source, target, result.unmatched_targets)

        assert indicator.overall_quality > 0.8
        assert indicator.position_consistency == 1.0
        assert indicator.structural_coherence == 1.0
        assert indicator.problem_areas == []
        for value in indicator.scores():
            assert 0.0 <= value <= 1.0

    def test_structural_coherence(self, quality_calculator, segment):
        """Mismatched structure tags lower coherence and are flagged"""
        source = segment("# Title\n\nBody text here.", "en")
        target = segment("Título\n\nTexto del cuerpo aquí.", "es")
        indicator = quality_calculator.calculate([entry(0, 0), entry(1, 1)], source, target)

        assert indicator.structural_coherence == pytest.approx(0.5)
        problems = indicator.problems(IssueType.STRUCTURAL_DIVERGENCE)
        assert [p.source_index for p in problems] == [0]
        assert problems[0].severity == pytest.approx(0.7)
        assert not problems[0].auto_fixable


class TestWeights:
    """Overall quality weighting"""

    def test_custom_weights(self, segment, en_meeting, es_meeting_swapped):
        """Overall quality follows the configured weights"""
        calculator = QualityCalculator(weights=QualityWeights(position=1.0, length=0.0, structure=0.0))
        source, target = segment(en_meeting, "en"), segment(es_meeting_swapped, "es")
        indicator = calculator.calculate([entry(0, 0), entry(1, 2), entry(2, 1)], source, target)
        assert indicator.overall_quality == pytest.approx(indicator.position_consistency)
        assert indicator.position_consistency == pytest.approx(0.5)

    def test_invalid_weights(self):
        """Negative or all-zero weights are rejected"""
        with pytest.raises(ValueError):
            QualityWeights(position=-1.0)
        with pytest.raises(ValueError):
            QualityWeights(position=0.0, length=0.0, structure=0.0)

    def test_combine_is_weighted_mean(self):
        """combine is the weighted mean of the metrics"""
        weights = QualityWeights(position=2.0, length=1.0, structure=1.0)
        assert weights.combine(1.0, 0.0, 0.0) == pytest.approx(0.5)

    def test_settings_follow_configuration(self):
        """settings() reports the weights and thresholds in use"""
        default = QualityCalculator().settings()
        custom = QualityCalculator(weights=QualityWeights(position=1.0), confidence_threshold=0.5).settings()
        assert default == QualityCalculator().settings()
        assert custom["position_weight"] == 1.0
        assert custom["confidence_threshold"] == 0.5
        assert custom != default


class TestProblemAreas:
    """Problem classification"""

    def test_missing_sentence(self, engine, quality_calculator, segment, en_greeting, es_greeting_missing):
        """Unmatched source sentences are flagged as missing"""
        source, target = segment(en_greeting, "en"), segment(es_greeting_missing, "es")
        result = engine.align(source, target)
        indicator = quality_calculator.calculate(result.entries, source, target, result.unmatched_targets)

        missing = indicator.problems(IssueType.MISSING_SENTENCE)
        assert len(missing) == 1
        assert missing[0].source_index == 1
        assert missing[0].span == (source.sentences[1].start, source.sentences[1].end)
        assert missing[0].severity == pytest.approx(0.9)
        assert not missing[0].auto_fixable

    def test_extra_sentence(self, quality_calculator, segment, es_greeting):
        """Unmatched target sentences are flagged as extra"""
        source = segment("Hello world! I hope you're doing well.", "en")
        target = segment(es_greeting, "es")
        indicator = quality_calculator.calculate(
            [entry(0, 0), entry(1, 2)], source, target, unmatched_targets=[1])

        extra = indicator.problems(IssueType.EXTRA_SENTENCE)
        assert len(extra) == 1
        assert extra[0].side == "target"
        assert extra[0].target_index == 1
        assert extra[0].span == (target.sentences[1].start, target.sentences[1].end)
        assert extra[0].severity == pytest.approx(0.6)

    def test_order_mismatch(self, quality_calculator, segment, en_meeting, es_meeting_swapped):
        """Backward target steps are flagged as order mismatches"""
        source, target = segment(en_meeting, "en"), segment(es_meeting_swapped, "es")
        indicator = quality_calculator.calculate([entry(0, 0), entry(1, 2), entry(2, 1)], source, target)

        order = indicator.problems(IssueType.ORDER_MISMATCH)
        assert [p.source_index for p in order] == [2]
        assert order[0].severity == pytest.approx(0.3 + 1 / 3)

    def test_length_mismatch(self, quality_calculator, segment):
        """Large length deviations are flagged and auto-fixable"""
        source = segment("Short one.", "en")
        target = segment("Esta es una frase muchísimo más larga que la original en inglés.", "es")
        indicator = quality_calculator.calculate([entry(0, 0, confidence=0.5)], source, target)

        length = indicator.problems(IssueType.LENGTH_MISMATCH)
        assert len(length) == 1
        assert length[0].auto_fixable
        assert 0.1 <= length[0].severity <= 1.0
        # Explained by the length problem; no separate boundary flag
        assert indicator.problems(IssueType.BOUNDARY_DETECTION_ERROR) == []

    def test_low_confidence_flags_boundary(self, quality_calculator, segment, en_greeting, es_greeting):
        """Low confidence without another cause flags a boundary error"""
        source, target = segment(en_greeting, "en"), segment(es_greeting, "es")
        indicator = quality_calculator.calculate([entry(0, 0, confidence=0.4)], source, target)

        boundary = indicator.problems(IssueType.BOUNDARY_DETECTION_ERROR)
        assert len(boundary) == 1
        assert boundary[0].severity == pytest.approx(0.6)
        assert boundary[0].auto_fixable

    def test_validated_low_confidence_not_flagged(self, quality_calculator, segment, en_greeting, es_greeting):
        """Validated entries are never flagged"""
        source, target = segment(en_greeting, "en"), segment(es_greeting, "es")
        validated = entry(0, 0, confidence=0.4, status=ValidationStatus.VALIDATED)
        indicator = quality_calculator.calculate([validated], source, target)
        assert indicator.problem_areas == []

    def test_weak_sentence_boundary(self, quality_calculator, segment):
        """Weak detected boundaries are flagged"""
        source = segment("Wow! that is nice.", "en")
        target = segment("¡Guau! Eso es bonito.", "es")
        indicator = quality_calculator.calculate([entry(0, 0)], source, target)

        boundary = indicator.problems(IssueType.BOUNDARY_DETECTION_ERROR)
        assert len(boundary) == 1
        assert boundary[0].severity == pytest.approx(1.0 - source.sentences[0].confidence)

    def test_to_dict(self, quality_calculator, segment, en_greeting, es_greeting_missing):
        """Indicators serialize to plain dicts"""
        source, target = segment(en_greeting, "en"), segment(es_greeting_missing, "es")
        indicator = quality_calculator.calculate([entry(0, 0), entry(1, None), entry(2, 1)], source, target)
        data = indicator.to_dict()
        assert data["problem_areas"][0]["issue_type"] == "missing_sentence"
        assert isinstance(QualityIndicator().to_dict()["overall_quality"], float)
