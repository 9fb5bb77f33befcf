"""
Tests for the confidence model.
"""

from decimal import Decimal

import pytest

from docintake.pipeline.confidence import (
    REVIEW_THRESHOLD,
    ConfidenceBand,
    confidence_band,
    needs_review,
    overall_confidence,
    score_fields,
)


class TestOverallConfidence:
    """Mean of present scores, rounded half-up."""

    def test_simple_mean(self):
        assert overall_confidence([90, 80, 70]) == 80

    def test_rounds_half_up(self):
        # 85.5 -> 86, not banker's 86/85
        assert overall_confidence([85, 86]) == 86
        assert overall_confidence([84, 85]) == 85

    def test_rounds_down_below_half(self):
        assert overall_confidence([90, 90, 91]) == 90  # 90.33

    def test_absent_scores_are_excluded(self):
        assert overall_confidence([90, None, 80]) == 85

    def test_no_scores_is_none_not_zero(self):
        assert overall_confidence([]) is None
        assert overall_confidence([None, None, None]) is None

    def test_zero_is_a_real_score(self):
        assert overall_confidence([0, 0, 0]) == 0

    def test_accepts_float_and_decimal(self):
        assert overall_confidence([Decimal("84.5"), 85.5]) == 85

    def test_accepts_generator(self):
        assert overall_confidence(s for s in (100, 50)) == 75


class TestNeedsReview:

    def test_threshold_is_85(self):
        assert REVIEW_THRESHOLD == 85

    @pytest.mark.parametrize("score,expected", [(84, True), (85, False), (100, False), (0, True)])
    def test_strictly_below_threshold(self, score, expected):
        assert needs_review(score) is expected

    def test_absent_score_never_needs_review(self):
        assert needs_review(None) is False


class TestConfidenceBand:

    @pytest.mark.parametrize(
        "score,band",
        [
            (100, ConfidenceBand.HIGH),
            (90, ConfidenceBand.HIGH),
            (89, ConfidenceBand.MEDIUM),
            (85, ConfidenceBand.MEDIUM),
            (84, ConfidenceBand.LOW),
            (0, ConfidenceBand.LOW),
            (None, ConfidenceBand.NOT_AVAILABLE),
        ],
    )
    def test_bands(self, score, band):
        assert confidence_band(score) == band


class TestScoreFields:

    def test_low_field_pulls_document_into_review(self):
        result = score_fields({"date": 95, "reading_type": 60, "kwh": 90})
        assert result.overall_confidence == 82
        assert result.needs_review is True
        assert result.band == ConfidenceBand.LOW

    def test_clean_extraction_skips_review(self):
        result = score_fields({"date": 95, "reading_type": 92, "kwh": 90})
        assert result.overall_confidence == 92
        assert result.needs_review is False
        assert result.field_scores == {"date": 95.0, "reading_type": 92.0, "kwh": 90.0}
