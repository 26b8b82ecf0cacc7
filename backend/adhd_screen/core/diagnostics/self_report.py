"""
Self-report questionnaire integration.

Symptom counts come from item responses when they are supplied (items scored
"often" or "very often" count toward their domain) and from the reported
counts otherwise. Presentation uses a fixed 6-of-9 rule per domain; severity
blends the raw symptom score with the functional impairment rating.
"""

import logging
from typing import Optional, Sequence

from ._types import Presentation, QuestionnaireResult, SelfReportMetrics
from .thresholds import SelfReportThresholds

logger = logging.getLogger(__name__)

SEVERITY_LABELS = ("minimal", "mild", "moderate", "high", "severe")

PRESENTATION_INTERPRETATIONS = {
    Presentation.COMBINED: (
        "Symptoms reported in both inattention and hyperactivity-impulsivity domains"
    ),
    Presentation.INATTENTIVE: "Symptoms reported primarily in the inattention domain",
    Presentation.HYPERACTIVE_IMPULSIVE: (
        "Symptoms reported primarily in the hyperactivity-impulsivity domain"
    ),
    Presentation.OTHER_SPECIFIED: (
        "Several symptoms reported, below the full threshold in both domains"
    ),
    Presentation.DOES_NOT_MEET: "Reported symptoms below screening thresholds",
}


def count_often_items(items: Sequence[int], often_score: int) -> int:
    """Number of item responses at or above often_score."""
    return sum(1 for score in items if score >= often_score)


def classify_presentation(
    inattention_count: int,
    hyperactivity_count: int,
    thresholds: SelfReportThresholds,
) -> Presentation:
    """Classify symptom presentation from per-domain counts."""
    inattentive = inattention_count >= thresholds.symptom_threshold
    hyperactive = hyperactivity_count >= thresholds.symptom_threshold

    if inattentive and hyperactive:
        return Presentation.COMBINED
    if inattentive:
        return Presentation.INATTENTIVE
    if hyperactive:
        return Presentation.HYPERACTIVE_IMPULSIVE
    if (
        inattention_count >= thresholds.other_specified_threshold
        or hyperactivity_count >= thresholds.other_specified_threshold
    ):
        return Presentation.OTHER_SPECIFIED
    return Presentation.DOES_NOT_MEET


def classify_severity(severity: float, thresholds: SelfReportThresholds) -> str:
    for band, label in zip(thresholds.severity_bands, SEVERITY_LABELS):
        if severity < band:
            return label
    return SEVERITY_LABELS[-1]


def _domain_count(
    items: Optional[Sequence[int]], count: Optional[int], often_score: int
) -> int:
    if items is not None:
        return count_often_items(items, often_score)
    return count or 0


def integrate_self_report(
    questionnaire: Optional[QuestionnaireResult],
    thresholds: SelfReportThresholds,
) -> SelfReportMetrics:
    """
    Interpret the self-report questionnaire.

    severity = symptom_weight * (total / max * 100)
               + impairment_weight * impairment indicator

    where the impairment indicator is 100 when impairment is present and
    impairment_score / impairment_max * 100 otherwise.

    Args:
        questionnaire: Normalized questionnaire result, or None.
        thresholds: Self-report thresholds.

    Returns:
        SelfReportMetrics; available is False when no questionnaire was
        completed or it carries no usable values.
    """
    if questionnaire is None:
        return SelfReportMetrics(
            available=False,
            symptom_threshold=thresholds.symptom_threshold,
            interpretation="Self-report questionnaire not completed",
        )

    q = questionnaire
    has_data = any(
        v is not None
        for v in (
            q.inattention_count,
            q.hyperactivity_count,
            q.inattention_items,
            q.hyperactivity_items,
            q.total_score,
        )
    )
    if not has_data:
        logger.warning("Questionnaire result present but carries no usable values")
        return SelfReportMetrics(
            available=False,
            symptom_threshold=thresholds.symptom_threshold,
            interpretation="Self-report questionnaire contained no scorable responses",
        )

    inattention = _domain_count(q.inattention_items, q.inattention_count, thresholds.item_often_score)
    hyperactivity = _domain_count(
        q.hyperactivity_items, q.hyperactivity_count, thresholds.item_often_score
    )

    total_score = q.total_score
    if total_score is None:
        total_score = float(sum(q.inattention_items or ()) + sum(q.hyperactivity_items or ()))
    max_score = q.max_score or thresholds.default_max_score

    impairment_score = q.impairment_score or 0.0
    impairment_present = impairment_score >= thresholds.impairment_threshold
    impairment_indicator = (
        100.0 if impairment_present else impairment_score / thresholds.impairment_max * 100
    )

    symptom_pct = min(100.0, total_score / max_score * 100)
    severity = round(
        thresholds.symptom_weight * symptom_pct
        + thresholds.impairment_weight * min(100.0, impairment_indicator),
        1,
    )
    presentation = classify_presentation(inattention, hyperactivity, thresholds)

    return SelfReportMetrics(
        available=True,
        inattention_count=inattention,
        hyperactivity_count=hyperactivity,
        symptom_threshold=thresholds.symptom_threshold,
        presentation=presentation,
        impairment_present=impairment_present,
        impairment_score=impairment_score,
        total_score=total_score,
        max_score=max_score,
        severity=severity,
        severity_band=classify_severity(severity, thresholds),
        interpretation=PRESENTATION_INTERPRETATIONS[presentation],
    )
