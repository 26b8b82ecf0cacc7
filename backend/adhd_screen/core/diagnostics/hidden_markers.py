"""
Hidden marker analysis computed directly from raw reaction-time sequences.

These metrics are independent of the distribution decomposition and target
patterns that accuracy and mean reaction time do not reveal:

- Jitter index (MSSD): root mean square of successive differences between
  adjacent trials. Measures short-range volatility.
- Fatigue slope: least-squares slope of reaction time against trial index.
  Positive values mean slowing down, negative values mean speeding up.
- Bursts: trials slower than 2x (burst) or 3x (severe burst) the task mean,
  treated as attention-lapse episodes.
- Inverse efficiency score (IES): mean reaction time divided by the
  proportion of correct responses.

The session-level hidden-ADHD score sums banded contributions from the
average jitter, average slope and average burst rate across the available
reaction-time tasks, capped at score_cap.
"""

import logging
from typing import List, Mapping, Optional, Sequence

import numpy as np
from scipy.stats import linregress

from ._types import (
    RT_TASKS,
    BurstAnalysis,
    EfficiencyScore,
    Evidence,
    FatigueSlope,
    HiddenMarkerSummary,
    JitterIndex,
    PerTaskMetrics,
    TaskHiddenMarkers,
    TaskName,
)
from .extraction import available_metrics
from .temporal_patterns import quarter_means
from .thresholds import DEFAULT_THRESHOLDS, HiddenMarkerThresholds, ScoringThresholds

logger = logging.getLogger(__name__)

JITTER_LABELS = ("very_stable", "stable", "elevated", "high", "severe")
IES_LABELS = ("efficient", "normal", "high", "severe")

# Minimum points for a meaningful regression line
_MIN_SLOPE_POINTS = 3


def _band_below(value: float, bands: Sequence[float], labels: Sequence[str]) -> str:
    for band, label in zip(bands, labels):
        if value < band:
            return label
    return labels[-1]


def calculate_jitter_index(
    reaction_times: Sequence[float],
    thresholds: HiddenMarkerThresholds,
) -> JitterIndex:
    """
    Root mean square of successive differences.

    Pairs whose absolute difference exceeds jitter_max_diff_ms are excluded.
    Bands: < 120 very_stable, 120-200 stable, 200-350 elevated, 350-500 high,
    above 500 severe (default thresholds).
    """
    arr = np.asarray(reaction_times, dtype=float)
    diffs = np.diff(arr)
    diffs = diffs[np.abs(diffs) <= thresholds.jitter_max_diff_ms]

    value = float(np.sqrt(np.mean(diffs**2))) if diffs.size else 0.0
    return JitterIndex(
        value=round(value, 2),
        band=_band_below(value, thresholds.jitter_bands, JITTER_LABELS),
        pair_count=int(diffs.size),
    )


def classify_slope(slope: float, thresholds: HiddenMarkerThresholds) -> str:
    """Classify a fatigue slope in ms/trial."""
    if slope >= thresholds.slope_severe:
        return "severe_fatigue"
    if slope >= thresholds.slope_moderate:
        return "moderate_fatigue"
    if slope >= thresholds.slope_mild:
        return "mild_fatigue"
    if slope <= thresholds.slope_impulsive:
        return "impulsive_acceleration"
    return "stable"


def calculate_fatigue_slope(
    reaction_times: Sequence[float],
    thresholds: HiddenMarkerThresholds,
) -> FatigueSlope:
    """
    Regress reaction time on trial index.

    Returns the slope (ms/trial), its classification, R-squared as a
    significance indicator and the percent change from the first-quarter mean
    to the last-quarter mean.
    """
    arr = np.asarray(reaction_times, dtype=float)
    if arr.size < _MIN_SLOPE_POINTS:
        return FatigueSlope(
            slope=0.0,
            classification="stable",
            r_squared=0.0,
            significant=False,
            pct_change=0.0,
        )

    fit = linregress(np.arange(arr.size, dtype=float), arr)
    slope = float(fit.slope)
    r_squared = float(fit.rvalue) ** 2

    means = quarter_means(arr)
    pct_change = (
        (means[-1] - means[0]) / means[0] * 100 if means and means[0] > 0 else 0.0
    )

    return FatigueSlope(
        slope=round(slope, 3),
        classification=classify_slope(slope, thresholds),
        r_squared=round(r_squared, 3),
        significant=r_squared >= thresholds.r_squared_significant,
        pct_change=round(pct_change, 2),
    )


def classify_burst_rate(rate_pct: float, thresholds: HiddenMarkerThresholds) -> str:
    if rate_pct > thresholds.burst_rate_severe_pct:
        return "severe"
    if rate_pct >= thresholds.burst_rate_moderate_pct:
        return "moderate"
    if rate_pct >= thresholds.burst_rate_mild_pct:
        return "mild"
    return "none"


def analyze_bursts(
    reaction_times: Sequence[float],
    thresholds: HiddenMarkerThresholds,
) -> BurstAnalysis:
    """Count attention-lapse bursts relative to the sequence mean."""
    arr = np.asarray(reaction_times, dtype=float)
    if arr.size == 0:
        return BurstAnalysis(
            burst_count=0, severe_burst_count=0, rate_pct=0.0, band="none", burst_trials=[]
        )

    mean_rt = float(arr.mean())
    burst_mask = arr > mean_rt * thresholds.burst_ratio
    severe_mask = arr > mean_rt * thresholds.severe_burst_ratio
    rate_pct = float(burst_mask.sum()) / arr.size * 100

    return BurstAnalysis(
        burst_count=int(burst_mask.sum()),
        severe_burst_count=int(severe_mask.sum()),
        rate_pct=round(rate_pct, 2),
        band=classify_burst_rate(rate_pct, thresholds),
        burst_trials=[int(i) + 1 for i in np.flatnonzero(burst_mask)],
    )


def calculate_inverse_efficiency(
    mean_rt: float,
    accuracy: Optional[float],
    thresholds: HiddenMarkerThresholds,
) -> EfficiencyScore:
    """IES = mean RT / (accuracy / 100); lower is more efficient."""
    if accuracy is None or accuracy <= 0:
        return EfficiencyScore(value=None, rating="unavailable")
    value = mean_rt / (accuracy / 100)
    for band, label in zip(thresholds.ies_bands, IES_LABELS):
        if value <= band:
            return EfficiencyScore(value=round(value, 1), rating=label)
    return EfficiencyScore(value=round(value, 1), rating=IES_LABELS[-1])


def analyze_task_hidden_markers(
    m: PerTaskMetrics,
    thresholds: HiddenMarkerThresholds,
) -> TaskHiddenMarkers:
    return TaskHiddenMarkers(
        task=m.task,
        jitter=calculate_jitter_index(m.reaction_times, thresholds),
        fatigue=calculate_fatigue_slope(m.reaction_times, thresholds),
        bursts=analyze_bursts(m.reaction_times, thresholds),
        efficiency=calculate_inverse_efficiency(m.mean_rt, m.accuracy, thresholds),
    )


def _points_confidence(points: Mapping[str, float], label: str) -> float:
    top = max(points.values()) if points else 0.0
    return round(points.get(label, 0.0) / top * 100, 1) if top > 0 else 0.0


def _not_available() -> HiddenMarkerSummary:
    explanation = "No reaction-time tasks available for hidden-marker analysis"
    return HiddenMarkerSummary(
        available=False,
        tasks=[],
        avg_jitter=0.0,
        jitter_band="unavailable",
        avg_slope=0.0,
        slope_classification="unavailable",
        avg_burst_rate_pct=0.0,
        burst_band="unavailable",
        hidden_adhd_score=0,
        evidence=[
            Evidence(name=name, detected=False, explanation=explanation)
            for name in (
                "hidden_volatility",
                "hidden_fatigue",
                "hidden_lapses",
                "hidden_combined_pattern",
            )
        ],
        summary=explanation,
    )


def analyze_hidden_markers(
    metrics: Mapping[TaskName, PerTaskMetrics],
    thresholds: ScoringThresholds = DEFAULT_THRESHOLDS,
) -> HiddenMarkerSummary:
    """
    Compute per-task hidden markers and the session-level summary.

    The summary carries four Evidence values consumed by the likelihood
    synthesizer: hidden_volatility (average jitter at or above
    volatility_jitter_ms), hidden_fatigue (average slope at or above
    fatigue_slope), hidden_lapses (moderate or severe burst rate) and
    hidden_combined_pattern (volatility and fatigue together).
    """
    limits = thresholds.hidden_markers
    tasks = available_metrics(metrics, RT_TASKS)
    if not tasks:
        return _not_available()

    per_task: List[TaskHiddenMarkers] = [analyze_task_hidden_markers(m, limits) for m in tasks]

    avg_jitter = float(np.mean([t.jitter.value for t in per_task]))
    avg_slope = float(np.mean([t.fatigue.slope for t in per_task]))
    avg_burst_rate = float(np.mean([t.bursts.rate_pct for t in per_task]))

    jitter_band = _band_below(avg_jitter, limits.jitter_bands, JITTER_LABELS)
    slope_class = classify_slope(avg_slope, limits)
    burst_band = classify_burst_rate(avg_burst_rate, limits)

    score = min(
        limits.score_cap,
        limits.jitter_points.get(jitter_band, 0.0)
        + limits.slope_points.get(slope_class, 0.0)
        + limits.burst_points.get(burst_band, 0.0),
    )

    volatility = avg_jitter >= limits.volatility_jitter_ms
    fatigue = avg_slope >= limits.fatigue_slope
    lapses = burst_band in ("moderate", "severe")

    volatility_confidence = _points_confidence(limits.jitter_points, jitter_band)
    fatigue_confidence = _points_confidence(limits.slope_points, slope_class)

    evidence = [
        Evidence(
            name="hidden_volatility",
            detected=volatility,
            confidence=volatility_confidence if volatility else 0.0,
            evidence=f"Average jitter index {avg_jitter:.0f} ms ({jitter_band})" if volatility else None,
            explanation="Trial-to-trial volatility is elevated" if volatility else "Trial-to-trial volatility within range",
            details={"avg_jitter": round(avg_jitter, 2), "band": jitter_band},
        ),
        Evidence(
            name="hidden_fatigue",
            detected=fatigue,
            confidence=fatigue_confidence if fatigue else 0.0,
            evidence=f"Average fatigue slope {avg_slope:+.1f} ms/trial ({slope_class})" if fatigue else None,
            explanation="Responses slow down across tasks" if fatigue else "No progressive slowing",
            details={"avg_slope": round(avg_slope, 3), "classification": slope_class},
        ),
        Evidence(
            name="hidden_lapses",
            detected=lapses,
            confidence=_points_confidence(limits.burst_points, burst_band) if lapses else 0.0,
            evidence=f"Average burst rate {avg_burst_rate:.1f}% ({burst_band})" if lapses else None,
            explanation="Frequent attention-lapse episodes" if lapses else "Attention lapses infrequent",
            details={"avg_burst_rate_pct": round(avg_burst_rate, 2), "band": burst_band},
        ),
        Evidence(
            name="hidden_combined_pattern",
            detected=volatility and fatigue,
            confidence=(
                round((volatility_confidence + fatigue_confidence) / 2, 1)
                if volatility and fatigue
                else 0.0
            ),
            evidence="Volatility and fatigue elevated together" if volatility and fatigue else None,
            explanation=(
                "Combined volatility and fatigue pattern"
                if volatility and fatigue
                else "No combined volatility and fatigue pattern"
            ),
        ),
    ]

    detected = [e.name for e in evidence if e.detected]
    summary = (
        f"Hidden markers elevated: {', '.join(detected)}"
        if detected
        else "No hidden attention markers elevated"
    )
    logger.info(
        f"Hidden markers: score={int(round(score))}, jitter={avg_jitter:.1f} ({jitter_band}), "
        f"slope={avg_slope:.2f} ({slope_class}), bursts={avg_burst_rate:.1f}% ({burst_band})"
    )

    return HiddenMarkerSummary(
        available=True,
        tasks=per_task,
        avg_jitter=round(avg_jitter, 2),
        jitter_band=jitter_band,
        avg_slope=round(avg_slope, 3),
        slope_classification=slope_class,
        avg_burst_rate_pct=round(avg_burst_rate, 2),
        burst_band=burst_band,
        hidden_adhd_score=int(round(score)),
        evidence=evidence,
        summary=summary,
    )
