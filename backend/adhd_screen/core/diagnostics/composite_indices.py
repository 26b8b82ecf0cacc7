"""
Composite index calculation.

Consistency index (MC)
    Weighted blend of six 0-100 sub-scores over the available reaction-time
    tasks: SD, tail excess, drift, error clustering, cross-task CV spread and
    vigilance stability. Higher means more stable attention.

Cognitive-cost index (CPI)
    Average of up to four per-task cost terms (working memory, inhibition,
    conflict, switching). It measures the cost of control demands rather than
    correctness, so perfect accuracy does not pull it to zero. Missing tasks
    only shrink the divisor; the index is unavailable when no term exists.

Domain-stability scores
    One fixed blend per task of accuracy, inverse CV, inverse tail excess,
    inverse drift and inverse error clustering.
"""

import logging
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from ._types import RT_TASKS, CompositeScore, PerTaskMetrics, TaskName
from .extraction import available_metrics
from .temporal_patterns import sample_sd
from .thresholds import (
    CognitiveCostThresholds,
    ConsistencyThresholds,
    DomainThresholds,
)

logger = logging.getLogger(__name__)

SCORE_MIN = 0.0
SCORE_MAX = 100.0
_MS_PER_SECOND = 1000.0

DOMAIN_NAMES: Dict[TaskName, str] = {
    TaskName.CPT: "sustained_attention",
    TaskName.GO_NO_GO: "impulse_control",
    TaskName.N_BACK: "working_memory",
    TaskName.FLANKER: "interference_control",
    TaskName.TRAIL: "cognitive_flexibility",
}

CONSISTENCY_INTERPRETATIONS = (
    "High consistency - stable attention across tasks",
    "Moderate-high consistency - minor fluctuations",
    "Moderate consistency - some attention variability",
    "Low consistency - notable attention variability",
    "Very low consistency - significant attention fluctuation",
)

COGNITIVE_COST_INTERPRETATIONS = (
    "Minimal cognitive cost - control demands handled efficiently",
    "Low cognitive cost",
    "Moderate cognitive cost - some strain under control demands",
    "High cognitive cost - executive demands are effortful",
    "Very high cognitive cost - executive control is overloaded",
)

DOMAIN_INTERPRETATIONS = (
    "Excellent",
    "Good",
    "Average",
    "Below average",
    "Significant difficulty",
)


def clamp_score(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def _band_at_least(value: float, bands: Sequence[float], labels: Sequence[str]) -> str:
    """Label for the first band with value >= band; last label otherwise."""
    for band, label in zip(bands, labels):
        if value >= band:
            return label
    return labels[-1]


def _band_at_most(value: float, bands: Sequence[float], labels: Sequence[str]) -> str:
    """Label for the first band with value <= band; last label otherwise."""
    for band, label in zip(bands, labels):
        if value <= band:
            return label
    return labels[-1]


# =============================================================================
# CONSISTENCY INDEX
# =============================================================================


def _vigilance_stability(m: PerTaskMetrics, thresholds: ConsistencyThresholds) -> float:
    score = SCORE_MAX
    if m.drift is not None:
        if m.drift.direction == "increasing":
            score -= thresholds.vigilance_drift_penalty
        if m.drift.fatigue_bursts > thresholds.vigilance_max_bursts:
            score -= thresholds.vigilance_burst_penalty
    return clamp_score(score)


def calculate_consistency_index(
    metrics: Mapping[TaskName, PerTaskMetrics],
    thresholds: ConsistencyThresholds,
) -> CompositeScore:
    """
    Calculate the consistency index over the available reaction-time tasks.

    Sub-scores (each clamped to 0-100):
        sd: 100 - sd_scale * (avg SD / avg mean * 100)
        tau: 100 - tau_scale * avg tau
        drift: 100 - drift_scale * avg drift magnitude
        error_cluster: 100 - error_cluster_scale * avg clustering index
        cross_task: 100 - cross_task_scale * SD of per-task CVs
            (cross_task_neutral with fewer than two tasks)
        vigilance: per task 100, minus a penalty for increasing drift and
            another for too many fatigue bursts, averaged

    Returns:
        CompositeScore; unavailable when no reaction-time task is available.
    """
    tasks = available_metrics(metrics, RT_TASKS)
    if not tasks:
        return CompositeScore(
            value=None,
            available=False,
            interpretation="Insufficient data for consistency analysis",
        )

    avg_mean = float(np.mean([m.mean_rt for m in tasks]))
    avg_sd = float(np.mean([m.sd_rt for m in tasks]))
    avg_tau = float(np.mean([m.tau for m in tasks]))
    avg_drift = float(np.mean([m.drift_magnitude for m in tasks]))
    avg_cluster = float(np.mean([m.error_cluster_index for m in tasks]))
    cvs = [m.cv_pct for m in tasks]

    relative_sd = avg_sd / avg_mean * 100 if avg_mean > 0 else 0.0
    cross_task = (
        thresholds.cross_task_neutral
        if len(tasks) < 2
        else SCORE_MAX - thresholds.cross_task_scale * sample_sd(cvs)
    )

    components = {
        "sd": SCORE_MAX - thresholds.sd_scale * relative_sd,
        "tau": SCORE_MAX - thresholds.tau_scale * avg_tau,
        "drift": SCORE_MAX - thresholds.drift_scale * avg_drift,
        "error_cluster": SCORE_MAX - thresholds.error_cluster_scale * avg_cluster,
        "cross_task": cross_task,
        "vigilance": float(np.mean([_vigilance_stability(m, thresholds) for m in tasks])),
    }
    components = {k: round(clamp_score(v), 2) for k, v in components.items()}

    weighted = sum(thresholds.weights[k] * v for k, v in components.items())
    value = int(round(clamp_score(weighted)))

    return CompositeScore(
        value=value,
        available=True,
        interpretation=_band_at_least(
            value, thresholds.interpretation_bands, CONSISTENCY_INTERPRETATIONS
        ),
        components=components,
        raw_values={
            "tasks_used": [m.task.value for m in tasks],
            "avg_mean_rt": round(avg_mean, 2),
            "avg_sd_rt": round(avg_sd, 2),
            "avg_tau": round(avg_tau, 2),
            "avg_drift": round(avg_drift, 2),
            "avg_error_cluster": round(avg_cluster, 3),
            "cv_values": cvs,
        },
    )


# =============================================================================
# COGNITIVE-COST INDEX
# =============================================================================


def micro_stall_penalty(
    segment_times: Sequence[float],
    thresholds: CognitiveCostThresholds,
) -> Tuple[float, int, int]:
    """
    Penalty for stalls within a trail sequence.

    Outliers are segments longer than segment_outlier_ratio x the median
    segment; a slow run is slow_run_length or more consecutive segments longer
    than slow_segment_ratio x the median.

    Returns:
        (penalty, outlier_count, slow_run_count)
    """
    if not segment_times:
        return 0.0, 0, 0

    median = float(np.median(segment_times))
    outliers = sum(1 for s in segment_times if s > median * thresholds.segment_outlier_ratio)

    runs = 0
    streak = 0
    for s in segment_times:
        if s > median * thresholds.slow_segment_ratio:
            streak += 1
            if streak == thresholds.slow_run_length:
                runs += 1
        else:
            streak = 0

    penalty = min(
        thresholds.micro_stall_cap,
        outliers * thresholds.micro_stall_outlier_points
        + runs * thresholds.micro_stall_run_points,
    )
    return penalty, outliers, runs


def _accuracy_or_ceiling(value: Optional[float]) -> float:
    return SCORE_MAX if value is None else value


def _working_memory_cost(m: PerTaskMetrics, thresholds: CognitiveCostThresholds) -> float:
    tau_ratio = m.tau / m.mean_rt if m.mean_rt > 0 else 0.0
    shortfall = SCORE_MAX - _accuracy_or_ceiling(m.accuracy)
    return min(
        thresholds.term_cap,
        tau_ratio * thresholds.wm_tau_ratio_scale
        + shortfall * thresholds.accuracy_shortfall_scale,
    )


def _inhibition_cost(m: PerTaskMetrics, thresholds: CognitiveCostThresholds) -> float:
    nogo_accuracy = m.extras.get("nogo_accuracy")
    if nogo_accuracy is None:
        nogo_accuracy = m.accuracy
    return min(
        thresholds.term_cap,
        m.commission_errors * thresholds.commission_penalty
        + min(thresholds.variability_cap, m.sd_rt / thresholds.variability_divisor)
        + (SCORE_MAX - _accuracy_or_ceiling(nogo_accuracy)),
    )


def _conflict_cost(m: PerTaskMetrics, thresholds: CognitiveCostThresholds) -> Optional[float]:
    effect = m.extras.get("flanker_effect")
    if effect is None:
        return None
    congruent = m.extras.get("congruent_accuracy")
    incongruent = m.extras.get("incongruent_accuracy")
    accuracy_gap = (
        abs(congruent - incongruent)
        if congruent is not None and incongruent is not None
        else 0.0
    )
    return min(
        thresholds.term_cap,
        abs(effect) / thresholds.conflict_rt_span_ms * SCORE_MAX + accuracy_gap,
    )


def _switch_cost(
    m: PerTaskMetrics, thresholds: CognitiveCostThresholds
) -> Tuple[Optional[float], Dict[str, float]]:
    time_per_item = m.extras.get("time_per_item_ms")
    if time_per_item is None:
        return None, {}
    penalty, outliers, runs = micro_stall_penalty(m.reaction_times, thresholds)
    seconds = time_per_item / _MS_PER_SECOND
    cost = min(
        thresholds.term_cap,
        seconds / thresholds.switch_seconds_span * thresholds.switch_seconds_points
        + m.extras.get("errors", 0) * thresholds.switch_error_penalty
        + penalty,
    )
    return cost, {
        "micro_stall_penalty": penalty,
        "segment_outliers": outliers,
        "slow_runs": runs,
    }


def calculate_cognitive_cost_index(
    metrics: Mapping[TaskName, PerTaskMetrics],
    thresholds: CognitiveCostThresholds,
) -> CompositeScore:
    """
    Calculate the cognitive-cost index from whichever cost terms are available.

    Terms (each capped at term_cap):
        working_memory (n-back): tau / mean * wm_tau_ratio_scale
            + accuracy shortfall * accuracy_shortfall_scale
        inhibition (go/no-go): commission errors * commission_penalty
            + min(variability_cap, SD / variability_divisor)
            + no-go accuracy shortfall
        conflict (flanker): |flanker effect| / conflict_rt_span_ms * 100
            + |congruent accuracy - incongruent accuracy|
        switching (trail): time per item (s) / switch_seconds_span
            * switch_seconds_points + errors * switch_error_penalty
            + micro-stall penalty

    Returns:
        CompositeScore; unavailable only when no term can be computed.
    """
    terms: Dict[str, float] = {}
    raw: Dict[str, float] = {}

    n_back = metrics.get(TaskName.N_BACK)
    if n_back is not None and n_back.available:
        terms["working_memory"] = _working_memory_cost(n_back, thresholds)

    go_no_go = metrics.get(TaskName.GO_NO_GO)
    if go_no_go is not None and go_no_go.available:
        terms["inhibition"] = _inhibition_cost(go_no_go, thresholds)

    flanker = metrics.get(TaskName.FLANKER)
    if flanker is not None and flanker.available:
        conflict = _conflict_cost(flanker, thresholds)
        if conflict is not None:
            terms["conflict"] = conflict

    trail = metrics.get(TaskName.TRAIL)
    if trail is not None and trail.available:
        switch, stall_details = _switch_cost(trail, thresholds)
        if switch is not None:
            terms["switching"] = switch
            raw.update(stall_details)

    if not terms:
        return CompositeScore(
            value=None,
            available=False,
            interpretation="Insufficient data for cognitive-cost analysis",
        )

    value = int(round(clamp_score(float(np.mean(list(terms.values()))))))
    components = {k: round(clamp_score(v), 2) for k, v in terms.items()}
    raw["terms_used"] = len(terms)

    return CompositeScore(
        value=value,
        available=True,
        interpretation=_band_at_most(
            value, thresholds.interpretation_bands, COGNITIVE_COST_INTERPRETATIONS
        ),
        components=components,
        raw_values=raw,
    )


# =============================================================================
# DOMAIN-STABILITY SCORES
# =============================================================================


def calculate_domain_score(m: PerTaskMetrics, thresholds: DomainThresholds) -> CompositeScore:
    """
    Blend one task's metrics into its domain-stability score.

    When the task reported no accuracy the remaining weights are rescaled to
    sum to 1.
    """
    if not m.available:
        return CompositeScore(
            value=None,
            available=False,
            interpretation=m.reason or "Task not completed",
        )

    components: Dict[str, float] = {
        "cv": SCORE_MAX - thresholds.cv_scale * m.cv_pct,
        "tau": SCORE_MAX - thresholds.tau_scale * m.tau,
        "drift": SCORE_MAX - thresholds.drift_scale * m.drift_magnitude,
        "error_cluster": SCORE_MAX - thresholds.error_cluster_scale * m.error_cluster_index,
    }
    if m.accuracy is not None:
        components["accuracy"] = m.accuracy
    components = {k: round(clamp_score(v), 2) for k, v in components.items()}

    total_weight = sum(thresholds.weights[k] for k in components)
    weighted = sum(thresholds.weights[k] * v for k, v in components.items()) / total_weight
    value = int(round(clamp_score(weighted)))

    return CompositeScore(
        value=value,
        available=True,
        interpretation=_band_at_least(
            value, thresholds.interpretation_bands, DOMAIN_INTERPRETATIONS
        ),
        components=components,
        raw_values={"task": m.task.value},
    )


def calculate_domain_scores(
    metrics: Mapping[TaskName, PerTaskMetrics],
    thresholds: DomainThresholds,
) -> Dict[str, CompositeScore]:
    """Domain-stability score for every task, keyed by domain name."""
    return {
        DOMAIN_NAMES[task]: calculate_domain_score(m, thresholds)
        for task, m in metrics.items()
    }
