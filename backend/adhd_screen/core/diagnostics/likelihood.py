"""
Likelihood synthesis.

Combines the consistency index, the cognitive-cost index and self-report
severity into one bounded likelihood score. The computation is a fixed,
ordered sequence of steps, each recorded in the result trace:

    1. contributions  Remap each source score into likelihood direction.
    2. corrections    Environmental corrections scale individual
                      contributions (slow device or anxiety, exhaustion).
    3. base           Weighted sum of the corrected contributions.
    4. evidence       combine_evidence() folds detector and hidden-marker
                      Evidence into one additive adjustment.
    5. floors         Self-report coherence floors; the highest applicable
                      floor wins. Floors run after corrections and evidence,
                      so a strong self-report is never undone by them.
    6. clamp          Clamp to [score_min, score_max] and round.

The score is a pure function of its inputs; uncertainty is expressed only
through the fixed confidence interval.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ._types import (
    FULL_PRESENTATIONS,
    AppliedRule,
    CompositeScore,
    Evidence,
    LikelihoodResult,
    Presentation,
    SelfReportMetrics,
)
from .composite_indices import SCORE_MAX, SCORE_MIN, clamp_score
from .thresholds import LikelihoodThresholds

logger = logging.getLogger(__name__)

CATEGORIES = (
    ("ADHD Unlikely", "High"),
    ("Possible ADHD", "Moderate"),
    ("Likely ADHD", "Moderate-High"),
    ("ADHD with Compensation", "High"),
    ("ADHD – High Severity", "Very High"),
)


def consistency_contribution(consistency: float, t: LikelihoodThresholds) -> float:
    """Remap the consistency index: lower consistency contributes more."""
    if consistency < t.consistency_low:
        value = t.consistency_low_base + (t.consistency_low - consistency)
    elif consistency < t.consistency_mid:
        value = t.consistency_mid_base + (t.consistency_mid - consistency)
    elif consistency < t.consistency_high:
        value = t.consistency_high_base + (t.consistency_high - consistency)
    else:
        value = t.consistency_high_base - (consistency - t.consistency_high)
    return clamp_score(value)


def cognitive_cost_contribution(cognitive_cost: float, t: LikelihoodThresholds) -> float:
    """Remap the cognitive-cost index: higher cost contributes more."""
    if cognitive_cost > t.cognitive_cost_high:
        value = t.cognitive_cost_high_base + t.cognitive_cost_high_slope * (
            cognitive_cost - t.cognitive_cost_high
        )
    elif cognitive_cost > t.cognitive_cost_mid:
        value = t.cognitive_cost_mid_base + t.cognitive_cost_mid_slope * (
            cognitive_cost - t.cognitive_cost_mid
        )
    elif cognitive_cost > t.cognitive_cost_low:
        value = t.cognitive_cost_low_base + t.cognitive_cost_low_slope * (
            cognitive_cost - t.cognitive_cost_low
        )
    else:
        value = cognitive_cost
    return clamp_score(value)


def apply_environmental_corrections(
    contributions: Mapping[str, float],
    avg_rt: Optional[float],
    avg_fatigue_slope: Optional[float],
    t: LikelihoodThresholds,
) -> Tuple[Dict[str, float], List[AppliedRule]]:
    """
    Scale contributions for conditions that mimic attention problems.

    - Average RT above severe_lag_rt_ms (else above slow_device_rt_ms)
      suggests device lag or anxiety: the cognitive-cost contribution is
      scaled by severe_lag_factor (else slow_device_factor).
    - Average fatigue slope above exhaustion_slope suggests exhaustion: the
      consistency contribution is scaled by exhaustion_factor.
    """
    corrected = dict(contributions)
    trace: List[AppliedRule] = []

    if avg_rt is not None:
        factor: Optional[float] = None
        rule = ""
        if avg_rt > t.severe_lag_rt_ms:
            factor, rule = t.severe_lag_factor, "severe_lag"
        elif avg_rt > t.slow_device_rt_ms:
            factor, rule = t.slow_device_factor, "slow_device"
        if factor is not None:
            before = corrected["cognitive_cost"]
            corrected["cognitive_cost"] = before * factor
            trace.append(
                AppliedRule(
                    step="correction",
                    rule=rule,
                    before=round(before, 2),
                    after=round(corrected["cognitive_cost"], 2),
                    detail=f"average RT {avg_rt:.0f} ms; cognitive-cost contribution x{factor}",
                )
            )

    if avg_fatigue_slope is not None and avg_fatigue_slope > t.exhaustion_slope:
        before = corrected["consistency"]
        corrected["consistency"] = before * t.exhaustion_factor
        trace.append(
            AppliedRule(
                step="correction",
                rule="exhaustion",
                before=round(before, 2),
                after=round(corrected["consistency"], 2),
                detail=(
                    f"average fatigue slope {avg_fatigue_slope:.1f} ms/trial; "
                    f"consistency contribution x{t.exhaustion_factor}"
                ),
            )
        )

    return corrected, trace


def combine_evidence(
    score: float,
    evidence: Sequence[Evidence],
    adjustments: Mapping[str, float],
) -> Tuple[float, List[AppliedRule]]:
    """
    Fold Evidence values into the score.

    Each detected Evidence whose name appears in adjustments adds that amount
    (negative amounts subtract). Evidence without an entry is informational
    and leaves the score unchanged.

    Returns:
        (adjusted score, trace of applied adjustments)
    """
    trace: List[AppliedRule] = []
    for item in evidence:
        if not item.detected or item.name not in adjustments:
            continue
        before = score
        score += adjustments[item.name]
        trace.append(
            AppliedRule(
                step="evidence",
                rule=item.name,
                before=round(before, 2),
                after=round(score, 2),
                detail=item.evidence or item.explanation,
            )
        )
    return score, trace


def apply_floor_rules(
    score: float,
    self_report: SelfReportMetrics,
    avg_tau: Optional[float],
    t: LikelihoodThresholds,
) -> Tuple[float, List[AppliedRule]]:
    """
    Raise the score to the highest applicable self-report coherence floor.

    Floors (default thresholds):
        severity >= 75, Combined presentation, impairment -> 65
        severity >= 60, any full presentation, impairment -> 55
        severity >= 45, any presentation except Does Not Meet -> 45
        average tau > 70 ms with severity >= 45 -> 50
    """
    if not self_report.available or self_report.severity is None:
        return score, []

    severity = self_report.severity
    presentation = self_report.presentation
    candidates: List[Tuple[str, float]] = []

    if (
        severity >= t.floor_combined_severity
        and presentation == Presentation.COMBINED
        and self_report.impairment_present
    ):
        candidates.append(("combined_severe", t.floor_combined_score))
    if (
        severity >= t.floor_full_presentation_severity
        and presentation in FULL_PRESENTATIONS
        and self_report.impairment_present
    ):
        candidates.append(("full_presentation", t.floor_full_presentation_score))
    if (
        severity >= t.floor_any_presentation_severity
        and presentation != Presentation.DOES_NOT_MEET
    ):
        candidates.append(("any_presentation", t.floor_any_presentation_score))
    if (
        avg_tau is not None
        and avg_tau > t.floor_tau_ms
        and severity >= t.floor_tau_severity
    ):
        candidates.append(("tail_excess", t.floor_tau_score))

    if not candidates:
        return score, []

    rule, floor = max(candidates, key=lambda c: c[1])
    if score >= floor:
        return score, []

    return floor, [
        AppliedRule(
            step="floor",
            rule=rule,
            before=round(score, 2),
            after=floor,
            detail=(
                f"self-report severity {severity:.0f}, {presentation.value}; "
                f"applicable floors: {', '.join(name for name, _ in candidates)}"
            ),
        )
    ]


def categorize_score(score: float, t: LikelihoodThresholds) -> Tuple[str, str]:
    """Return (category, confidence label); higher scores never map to a milder category."""
    for band, category in zip(t.category_bands, CATEGORIES):
        if score <= band:
            return category
    return CATEGORIES[-1]


def synthesize_likelihood(
    consistency: CompositeScore,
    cognitive_cost: CompositeScore,
    self_report: SelfReportMetrics,
    evidence: Sequence[Evidence],
    avg_rt: Optional[float],
    avg_fatigue_slope: Optional[float],
    avg_tau: Optional[float],
    t: LikelihoodThresholds,
) -> LikelihoodResult:
    """
    Compute the likelihood score.

    Args:
        consistency: Consistency index (neutral default when unavailable).
        cognitive_cost: Cognitive-cost index (neutral default when unavailable).
        self_report: Self-report metrics (default 0 severity when unavailable).
        evidence: Detector and hidden-marker Evidence, in any order.
        avg_rt: Average mean RT across reaction-time tasks, if any.
        avg_fatigue_slope: Average hidden-marker fatigue slope, if any.
        avg_tau: Average tail excess across reaction-time tasks, if any.
        t: Likelihood thresholds.

    Returns:
        LikelihoodResult with the full derivation trace.
    """
    mc = consistency.value if consistency.available and consistency.value is not None else t.default_consistency
    cpi = (
        cognitive_cost.value
        if cognitive_cost.available and cognitive_cost.value is not None
        else t.default_cognitive_cost
    )
    sss = (
        self_report.severity
        if self_report.available and self_report.severity is not None
        else t.default_self_report
    )

    contributions = {
        "consistency": consistency_contribution(mc, t),
        "cognitive_cost": cognitive_cost_contribution(cpi, t),
        "self_report": clamp_score(sss),
    }
    trace = [
        AppliedRule(
            step="contribution",
            rule=name,
            before=round(source, 2),
            after=round(contributions[name], 2),
        )
        for name, source in (("consistency", mc), ("cognitive_cost", cpi), ("self_report", sss))
    ]

    contributions, corrections = apply_environmental_corrections(
        contributions, avg_rt, avg_fatigue_slope, t
    )
    trace.extend(corrections)

    base = sum(t.weights[name] * value for name, value in contributions.items())
    trace.append(AppliedRule(step="base", rule="weighted_sum", before=0.0, after=round(base, 2)))

    score, adjustments = combine_evidence(base, evidence, t.adjustments)
    trace.extend(adjustments)

    score, floors = apply_floor_rules(score, self_report, avg_tau, t)
    trace.extend(floors)

    clamped = clamp_score(score, t.score_min, t.score_max)
    final = int(round(clamped))
    trace.append(
        AppliedRule(
            step="clamp",
            rule="bounds",
            before=round(score, 2),
            after=float(final),
            detail=f"[{t.score_min:.0f}, {t.score_max:.0f}]",
        )
    )

    category, confidence_label = categorize_score(final, t)
    lower = int(clamp_score(final - t.confidence_margin, SCORE_MIN, SCORE_MAX))
    upper = int(clamp_score(final + t.confidence_margin, SCORE_MIN, SCORE_MAX))

    logger.info(
        f"Likelihood synthesized: score={final} ({category}), base={base:.1f}, "
        f"corrections={len(corrections)}, adjustments={len(adjustments)}, floors={len(floors)}"
    )

    return LikelihoodResult(
        score=final,
        lower_bound=lower,
        upper_bound=upper,
        category=category,
        confidence_label=confidence_label,
        contributions={k: round(v, 2) for k, v in contributions.items()},
        base_score=round(base, 2),
        trace=trace,
    )
