"""
Tests for self-report questionnaire integration.
"""
import pytest

from adhd_screen.core.diagnostics._types import Presentation, QuestionnaireResult
from adhd_screen.core.diagnostics.self_report import (
    classify_presentation,
    classify_severity,
    count_often_items,
    integrate_self_report,
)
from adhd_screen.core.diagnostics.thresholds import DEFAULT_THRESHOLDS

SELF_REPORT = DEFAULT_THRESHOLDS.self_report


class TestCountOftenItems:
    def test_counts_often_and_very_often(self):
        assert count_often_items([0, 1, 2, 3, 4, 3], 3) == 3

    def test_empty(self):
        assert count_often_items([], 3) == 0


class TestClassifyPresentation:
    @pytest.mark.parametrize(
        "inattention, hyperactivity, expected",
        [
            (7, 7, Presentation.COMBINED),
            (6, 6, Presentation.COMBINED),
            (7, 2, Presentation.INATTENTIVE),
            (2, 6, Presentation.HYPERACTIVE_IMPULSIVE),
            (4, 1, Presentation.OTHER_SPECIFIED),
            (3, 3, Presentation.DOES_NOT_MEET),
            (0, 0, Presentation.DOES_NOT_MEET),
        ],
    )
    def test_presentation(self, inattention, hyperactivity, expected):
        assert classify_presentation(inattention, hyperactivity, SELF_REPORT) == expected


class TestClassifySeverity:
    @pytest.mark.parametrize(
        "severity, band",
        [(0.0, "minimal"), (24.9, "minimal"), (25.0, "mild"), (60.0, "moderate"),
         (79.9, "high"), (80.0, "severe")],
    )
    def test_bands(self, severity, band):
        assert classify_severity(severity, SELF_REPORT) == band


class TestIntegrateSelfReport:
    """Tests for integrate_self_report()."""

    def test_not_completed(self):
        result = integrate_self_report(None, SELF_REPORT)

        assert not result.available
        assert result.severity is None
        assert result.severity_band == "unavailable"

    def test_no_usable_values(self):
        result = integrate_self_report(QuestionnaireResult(max_score=72.0), SELF_REPORT)

        assert not result.available

    def test_severity_with_impairment(self):
        questionnaire = QuestionnaireResult(
            inattention_count=7,
            hyperactivity_count=3,
            total_score=36.0,
            max_score=72.0,
            impairment_score=3.0,
        )

        result = integrate_self_report(questionnaire, SELF_REPORT)

        # 0.8 * 50 + 0.2 * 100
        assert result.severity == 60.0
        assert result.severity_band == "moderate"
        assert result.impairment_present
        assert result.presentation == Presentation.INATTENTIVE

    def test_severity_without_impairment(self):
        questionnaire = QuestionnaireResult(
            inattention_count=2,
            hyperactivity_count=2,
            total_score=36.0,
            max_score=72.0,
            impairment_score=1.0,
        )

        result = integrate_self_report(questionnaire, SELF_REPORT)

        # 0.8 * 50 + 0.2 * (1 / 3 * 100)
        assert result.severity == pytest.approx(46.7)
        assert not result.impairment_present

    def test_items_take_precedence_over_counts(self):
        questionnaire = QuestionnaireResult(
            inattention_count=0,
            inattention_items=(3, 3, 3, 3, 4, 4, 0, 1, 2),
            hyperactivity_items=(0, 0, 0, 0, 0, 0, 0, 0, 0),
        )

        result = integrate_self_report(questionnaire, SELF_REPORT)

        assert result.inattention_count == 6
        assert result.hyperactivity_count == 0
        assert result.presentation == Presentation.INATTENTIVE
        # Total derived from the item responses
        assert result.total_score == 23.0
        assert result.max_score == SELF_REPORT.default_max_score

    def test_severity_capped_at_100(self):
        questionnaire = QuestionnaireResult(
            inattention_count=9,
            hyperactivity_count=9,
            total_score=90.0,
            max_score=72.0,
            impairment_score=3.0,
        )

        assert integrate_self_report(questionnaire, SELF_REPORT).severity == 100.0

    def test_threshold_reported(self):
        questionnaire = QuestionnaireResult(inattention_count=1, hyperactivity_count=0)

        result = integrate_self_report(questionnaire, SELF_REPORT)

        assert result.symptom_threshold == 6
        assert result.severity == 0.0
