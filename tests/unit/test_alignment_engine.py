"""
Unit tests for the alignment engine (position and dynamic-programming modes).
"""

import pytest

from panesync.alignment import (
    AlignmentConfig,
    AlignmentEngine,
    AlignmentEntry,
    AlignmentMethod,
    AlignmentResult,
    AlignmentStatistics,
    CancellationToken,
    FeatureVector,
    FeatureWeights,
    ValidationStatus,
)
from panesync.alignment.engine import DIAGONAL, SKIP_SOURCE, SKIP_TARGET, _tie_break_key
from panesync.alignment.features import (
    content_similarity,
    expected_length_ratio,
    length_deviation,
    position_similarity,
    punctuation_overlap,
)
from panesync.errors import AlignmentCancelledError
from panesync.language import BUILTIN_PROFILES


class TestFeatures:
    """Feature functions"""

    def test_position_similarity(self):
        """Relative midpoints closer together score higher"""
        assert position_similarity(0, 3, 0, 3) == pytest.approx(1.0)
        assert position_similarity(0, 3, 2, 3) == pytest.approx(1 / 3)
        assert position_similarity(0, 0, 0, 3) == 0.0

    def test_expected_length_ratio(self):
        """Expected ratio comes from profile average sentence lengths"""
        ratio = expected_length_ratio(BUILTIN_PROFILES["en"], BUILTIN_PROFILES["es"])
        assert ratio == pytest.approx(95 / 85)

    def test_length_deviation(self):
        """Deviation is relative to the expected ratio"""
        assert length_deviation(10, 20, 2.0) == pytest.approx(0.0)
        assert length_deviation(10, 40, 2.0) == pytest.approx(1.0)

    def test_punctuation_overlap(self):
        """Shared ASCII punctuation, 1.0 when neither side has any"""
        assert punctuation_overlap("Hi!", "Hola!") == 1.0
        assert punctuation_overlap("No punctuation", "Sin puntuacion") == 1.0
        assert punctuation_overlap("Hi.", "Hola!") == 0.0

    def test_content_similarity_uses_numbers(self, segment):
        """Matching numbers raise content similarity"""
        src = segment("It costs 25 dollars.", "en").sentences[0]
        same = segment("Cuesta 25 dólares.", "es").sentences[0]
        other = segment("Cuesta 30 dólares.", "es").sentences[0]
        assert content_similarity(src, same) > content_similarity(src, other)

    def test_weights_normalized(self):
        """Weights built from a mapping sum to 1"""
        weights = FeatureWeights.from_mapping({"position": 2, "length": 1, "structure": 1, "content": 0})
        assert sum(weights.as_tuple()) == pytest.approx(1.0)
        assert weights.position == pytest.approx(0.5)

    def test_degenerate_weights_become_uniform(self):
        """All-zero weights after clipping fall back to uniform"""
        weights = FeatureWeights(-1.0, -1.0, 0.0, 0.0).normalized()
        assert weights.as_tuple() == (0.25, 0.25, 0.25, 0.25)

    def test_score_clipped(self):
        """Scores stay within [0, 1]"""
        weights = FeatureWeights(0.25, 0.25, 0.25, 0.25)
        assert weights.score(FeatureVector(1, 1, 1, 1)) == pytest.approx(1.0)
        assert weights.score(FeatureVector(0, 0, 0, 0)) == 0.0


class TestModeSelection:
    """Divergence-based mode selection"""

    def test_divergence(self):
        """Relative sentence count difference"""
        assert AlignmentEngine.divergence(3, 3) == 0.0
        assert AlignmentEngine.divergence(3, 2) == pytest.approx(1 / 3)
        assert AlignmentEngine.divergence(0, 0) == 0.0

    def test_select_mode(self, engine):
        """Close counts use position mode, others use DP"""
        assert engine.select_mode(10, 9) == AlignmentMethod.POSITION
        assert engine.select_mode(3, 2) == AlignmentMethod.DYNAMIC_PROGRAMMING


class TestPositionMode:
    """Proportional mapping when counts are close"""

    def test_greeting_scenario(self, engine, segment, en_greeting, es_greeting):
        """Three greeting sentences align one to one with high confidence"""
        source, target = segment(en_greeting, "en"), segment(es_greeting, "es")
        result = engine.align(source, target)

        assert result.method == AlignmentMethod.POSITION
        assert [e.pair for e in result.entries] == [(0, 0), (1, 1), (2, 2)]
        assert all(e.confidence > 0.7 for e in result.entries)
        assert result.unmatched_targets == []
        assert all(e.status == ValidationStatus.AUTO_VALIDATED for e in result.entries[:2])

    def test_proportional_indices(self, engine, segment):
        """Source i maps to round(i * m / n)"""
        source = segment(" ".join(f"Sentence number {i} is here." for i in range(10)), "en")
        target = segment(" ".join(f"Frase numero {i} esta aqui." for i in range(9)), "es")
        result = engine.align(source, target)
        assert result.method == AlignmentMethod.POSITION
        assert [e.target_index for e in result.entries] == [0, 1, 2, 3, 4, 5, 5, 6, 7, 8]
        assert result.unmatched_targets == []

    def test_forced_method(self, engine, segment, en_greeting, es_greeting_missing):
        """force_method skips mode selection"""
        source, target = segment(en_greeting, "en"), segment(es_greeting_missing, "es")
        result = engine.align(source, target, force_method=AlignmentMethod.POSITION)
        assert result.method == AlignmentMethod.POSITION
        assert result.forced
        assert len(result.entries) == 3


class TestDynamicProgramming:
    """Minimum-cost alignment with gaps"""

    def test_missing_sentence(self, engine, segment, en_greeting, es_greeting_missing):
        """A dropped target sentence leaves its source unmatched"""
        source, target = segment(en_greeting, "en"), segment(es_greeting_missing, "es")
        result = engine.align(source, target)

        assert result.method == AlignmentMethod.DYNAMIC_PROGRAMMING
        assert [e.pair for e in result.entries] == [(0, 0), (1, None), (2, 1)]
        assert result.entries[1].confidence == 0.0
        assert result.entries[1].status == ValidationStatus.NEEDS_REVIEW
        assert result.unmatched_targets == []

    def test_extra_target_sentence(self, engine, segment, en_greeting, es_greeting):
        """Targets left over by the path are reported as unmatched"""
        source = segment("Hello world! I hope you're doing well.", "en")
        target = segment(es_greeting, "es")
        result = engine.align(source, target)

        assert result.method == AlignmentMethod.DYNAMIC_PROGRAMMING
        assert len(result.entries) == 2
        matched = {e.target_index for e in result.entries if e.target_index is not None}
        assert set(result.unmatched_targets) == set(range(3)) - matched

    def test_monotonic_path(self, engine, segment):
        """Without content evidence for a crossing the path keeps index order"""
        source = segment("One here. Two here. Three here. Four here. Five here.", "en")
        target = segment("Uno aqui. Tres aqui.", "es")
        result = engine.align(source, target)
        targets = [e.target_index for e in result.entries if e.target_index is not None]
        assert targets == sorted(targets)


class TestTieBreaks:
    """Ordering of equal-cost DP moves"""

    def test_diagonal_preferred_on_equal_cost(self):
        """Diagonal wins an exact cost tie"""
        candidates = [(1.0, 0.9, SKIP_SOURCE), (1.0, 0.5, DIAGONAL), (1.0, 0.9, SKIP_TARGET)]
        assert min(candidates, key=_tie_break_key)[2] == DIAGONAL

    def test_higher_aggregate_confidence_next(self):
        """Between skips, higher aggregate confidence wins"""
        candidates = [(1.0, 0.2, SKIP_SOURCE), (1.0, 0.7, SKIP_TARGET)]
        assert min(candidates, key=_tie_break_key)[2] == SKIP_TARGET

    def test_skip_source_before_skip_target(self):
        """Fully tied skips prefer skipping the source sentence"""
        candidates = [(1.0, 0.5, SKIP_TARGET), (1.0, 0.5, SKIP_SOURCE)]
        assert min(candidates, key=_tie_break_key)[2] == SKIP_SOURCE

    def test_rounding_noise_counts_as_tie(self):
        """Float noise below the rounding precision is a tie"""
        candidates = [(1.0 + 1e-12, 0.5, DIAGONAL), (1.0, 0.5, SKIP_SOURCE)]
        assert min(candidates, key=_tie_break_key)[2] == DIAGONAL

    def test_lower_cost_always_wins(self):
        """Cost dominates every other key"""
        candidates = [(0.9, 0.0, SKIP_TARGET), (1.0, 5.0, DIAGONAL)]
        assert min(candidates, key=_tie_break_key)[2] == SKIP_TARGET


class TestCrossingRematch:
    """Content evidence pulling non-monotonic matches"""

    def test_question_swap_rematched(self, engine, segment, en_meeting, es_meeting_swapped):
        """Swapped question and statement are matched across each other"""
        source, target = segment(en_meeting, "en"), segment(es_meeting_swapped, "es")
        result = engine.align(source, target)

        assert result.method == AlignmentMethod.POSITION
        assert [e.pair for e in result.entries] == [(0, 0), (1, 2), (2, 1)]
        assert result.unmatched_targets == []

    def test_weak_evidence_keeps_monotonic_order(self, engine, segment, en_report, es_report_swapped):
        """Length differences alone do not justify a crossing"""
        source, target = segment(en_report, "en"), segment(es_report_swapped, "es")
        result = engine.align(source, target)
        assert [e.pair for e in result.entries] == [(0, 0), (1, 1), (2, 2)]

    def test_zero_window_disables_rematch(self, segment, en_meeting, es_meeting_swapped):
        """reorder_window 0 keeps the monotonic path"""
        engine = AlignmentEngine(AlignmentConfig(reorder_window=0))
        result = engine.align(segment(en_meeting, "en"), segment(es_meeting_swapped, "es"))
        assert [e.pair for e in result.entries] == [(0, 0), (1, 1), (2, 2)]

    def test_margin_above_gain_keeps_order(self, segment, en_meeting, es_meeting_swapped):
        """A gain that does not exceed reorder_margin loses to monotonic order"""
        engine = AlignmentEngine(AlignmentConfig(reorder_margin=1.0))
        result = engine.align(segment(en_meeting, "en"), segment(es_meeting_swapped, "es"))
        assert [e.pair for e in result.entries] == [(0, 0), (1, 1), (2, 2)]

    def test_dp_rematch_keeps_targets_unique(self, engine, segment):
        """Each target is matched or unmatched exactly once after DP re-matching"""
        source = segment("The meeting starts now. Did you bring the report? "
                         "We will review it together. Thanks.", "en")
        target = segment("La reunión empieza ahora. Lo revisaremos junto. ¿Trajiste el informe?", "es")
        result = engine.align(source, target)

        assert result.method == AlignmentMethod.DYNAMIC_PROGRAMMING
        matched = [e.target_index for e in result.entries if e.target_index is not None]
        assert len(set(matched)) == len(matched)
        assert sorted(matched + result.unmatched_targets) == [0, 1, 2]

    def test_crossed_entry_scored_with_full_weights(self, engine, segment, en_meeting, es_meeting_swapped):
        """Crossed entries still carry their full weighted confidence"""
        source, target = segment(en_meeting, "en"), segment(es_meeting_swapped, "es")
        result = engine.align(source, target)
        crossed = result.entry_for(1)
        assert crossed.confidence == pytest.approx(
            engine.default_weights().score(engine.features(source, target, 1, 2)))


class TestEdgeCases:
    """Empty input, cancellation, determinism"""

    def test_empty_source(self, engine, segment, es_greeting):
        """No source sentences leaves every target unmatched"""
        result = engine.align(segment("", "en"), segment(es_greeting, "es"))
        assert result.entries == []
        assert result.unmatched_targets == [0, 1, 2]

    def test_empty_target(self, engine, segment, en_greeting):
        """No target sentences leaves every source unmatched"""
        result = engine.align(segment(en_greeting, "en"), segment("", "es"))
        assert [e.pair for e in result.entries] == [(0, None), (1, None), (2, None)]

    def test_both_empty(self, engine, segment):
        """Two empty documents give an empty result"""
        result = engine.align(segment("", "en"), segment("", "es"))
        assert result.entries == []
        assert result.average_confidence == 0.0

    @pytest.mark.parametrize("source_text,target_text", [
        ("A.", "B. C. D. E. F."),
        ("One. Two. Three. Four. Five. Six.", "Uno."),
        ("# Title\n\n- item one\n- item two", "Título\n\nTexto."),
        ("Same. Same. Same.", "Igual. Igual. Igual."),
    ])
    def test_completeness_and_ranges(self, engine, segment, source_text, target_text):
        """One entry per source sentence, indices and confidences in range"""
        source, target = segment(source_text, "en"), segment(target_text, "es")
        result = engine.align(source, target)
        assert sorted(e.source_index for e in result.entries) == list(range(len(source)))
        for entry in result.entries:
            assert 0.0 <= entry.confidence <= 1.0
            assert entry.target_index is None or 0 <= entry.target_index < len(target)

    def test_cancelled_token_raises(self, engine, segment, en_greeting, es_greeting):
        """A cancelled token stops alignment with its reason"""
        token = CancellationToken()
        token.cancel("superseded")
        with pytest.raises(AlignmentCancelledError) as exc_info:
            engine.align(segment(en_greeting, "en"), segment(es_greeting, "es"), cancel_token=token)
        assert exc_info.value.reason == "superseded"

    def test_deterministic(self, engine, segment, en_greeting, es_greeting_missing):
        """Same input gives the same result"""
        source, target = segment(en_greeting, "en"), segment(es_greeting_missing, "es")
        assert engine.align(source, target).to_dict() == engine.align(source, target).to_dict()


class TestClassification:
    """Validation status of computed entries"""

    @pytest.mark.parametrize("confidence,deviation,expected", [
        (0.95, 0.1, ValidationStatus.AUTO_VALIDATED),
        (0.8, 0.1, ValidationStatus.PENDING),
        (0.5, 0.1, ValidationStatus.NEEDS_REVIEW),
        (0.95, 3.0, ValidationStatus.NEEDS_REVIEW),
        (0.95, None, ValidationStatus.NEEDS_REVIEW),
    ])
    def test_classify(self, engine, confidence, deviation, expected):
        """Thresholds and length deviation decide the status"""
        assert engine.classify(confidence, deviation) == expected


class TestModels:
    """Alignment config and result models"""

    def test_config_validation(self):
        """Invalid weights and thresholds are rejected"""
        with pytest.raises(ValueError):
            AlignmentConfig(position_weight=-0.1)
        with pytest.raises(ValueError):
            AlignmentConfig(position_weight=0, length_weight=0, structure_weight=0, content_weight=0)
        with pytest.raises(ValueError):
            AlignmentConfig(confidence_threshold=1.5)
        with pytest.raises(ValueError):
            AlignmentConfig(reorder_window=-1)

    def test_fingerprint_changes_with_thresholds(self):
        """Fingerprint is stable and follows threshold changes"""
        config = AlignmentConfig()
        assert config.fingerprint() == AlignmentConfig().fingerprint()
        assert config.fingerprint() != config.with_thresholds(confidence_threshold=0.8).fingerprint()
        assert config.fingerprint() != config.with_thresholds(reorder_margin=0.5).fingerprint()

    def test_entry_dict_roundtrip(self):
        """Entries survive to_dict/from_dict"""
        entry = AlignmentEntry(2, None, 0.0, AlignmentMethod.DYNAMIC_PROGRAMMING, ValidationStatus.NEEDS_REVIEW)
        assert AlignmentEntry.from_dict(entry.to_dict()) == entry

    def test_statistics(self):
        """Statistics count aligned, validated and accuracy"""
        entries = [
            AlignmentEntry(0, 0, 0.9, AlignmentMethod.POSITION),
            AlignmentEntry(1, 1, 0.5, AlignmentMethod.POSITION),
            AlignmentEntry(2, 2, 0.8, AlignmentMethod.POSITION, ValidationStatus.VALIDATED),
        ]
        stats = AlignmentStatistics.from_entries(entries, 0.7, language_pair=("en", "es"))
        assert stats.total_sentences == 3
        assert stats.aligned_sentences == 2
        assert stats.validated_alignments == 1
        assert stats.alignment_accuracy == pytest.approx(2 / 3)

        result = AlignmentResult(entries, AlignmentMethod.POSITION, 3, 3)
        assert result.entry_for(1).confidence == 0.5
