"""Unit tests for confidence scoring utilities and ConfidenceScores."""

from __future__ import annotations

import pytest

from rag_studio.models.documents import ConfidenceScores
from rag_studio.utils.confidence import (
    ConfidenceLevel,
    calculate_confidence,
    clamp_score,
    confidence_to_level,
)


class TestClampScore:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (42, 42.0),
            ("87.5", 87.5),
            (150, 100.0),
            (-3, 0.0),
            (None, 0.0),
            ("haute", 0.0),
            ({"nested": 1}, 0.0),
            (True, 0.0),
            (float("nan"), 0.0),
        ],
    )
    def test_values_are_coerced_into_range(self, raw: object, expected: float) -> None:
        assert clamp_score(raw) == expected


class TestCalculateConfidence:
    def test_equal_weights(self) -> None:
        assert calculate_confidence([80, 60, 100]) == pytest.approx(80.0)

    def test_weighted(self) -> None:
        assert calculate_confidence([100, 0], weights=[3, 1]) == pytest.approx(75.0)

    def test_empty_scores_rejected(self) -> None:
        with pytest.raises(ValueError):
            calculate_confidence([])

    def test_mismatched_weights_rejected(self) -> None:
        with pytest.raises(ValueError):
            calculate_confidence([10, 20], weights=[1])

    def test_zero_total_weight(self) -> None:
        assert calculate_confidence([90], weights=[0]) == 0.0


class TestConfidenceLevels:
    @pytest.mark.parametrize(
        ("score", "level"),
        [(95, ConfidenceLevel.HIGH), (80, ConfidenceLevel.HIGH), (79.9, ConfidenceLevel.MEDIUM),
         (50, ConfidenceLevel.MEDIUM), (49, ConfidenceLevel.LOW), (0, ConfidenceLevel.LOW)],
    )
    def test_thresholds(self, score: float, level: ConfidenceLevel) -> None:
        assert confidence_to_level(score) is level

    def test_generic_and_sourced_labels_differ(self) -> None:
        assert ConfidenceLevel.HIGH.label == "Haute confiance"
        assert ConfidenceLevel.HIGH.source_label == "Source officielle"
        assert ConfidenceLevel.MEDIUM.source_label == "À vérifier"
        assert ConfidenceLevel.LOW.label == "Faible confiance"


class TestConfidenceScores:
    def test_from_raw_keeps_explicit_overall(self) -> None:
        scores = ConfidenceScores.from_raw({"product_code": 95, "dci": 90, "overall": 88})
        assert scores.overall == 88.0
        assert scores.for_field("dci") == 90.0
        assert "overall" not in scores.per_field
        assert scores.failed is False

    def test_from_raw_derives_overall_from_fields(self) -> None:
        scores = ConfidenceScores.from_raw({"product_code": 90, "dci": 70})
        assert scores.overall == pytest.approx(80.0)
        assert scores.level is ConfidenceLevel.HIGH

    def test_from_raw_clamps_values(self) -> None:
        scores = ConfidenceScores.from_raw({"dci": 250, "overall": "n/a"})
        assert scores.for_field("dci") == 100.0
        assert scores.overall == 0.0

    def test_empty_map(self) -> None:
        scores = ConfidenceScores.from_raw(None)
        assert scores.per_field == {}
        assert scores.overall == 0.0

    def test_failure_flag_is_not_a_field(self) -> None:
        failure = ConfidenceScores.failure()
        assert failure.failed is True
        assert failure.for_field("error") is None
        # A provider field literally named "error" is still just a field.
        scores = ConfidenceScores.from_raw({"error": 40})
        assert scores.failed is False
        assert scores.for_field("error") == 40.0
