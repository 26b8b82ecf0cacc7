"""
Per-task metric extraction.

Turns canonical TaskTelemetry into the uniform PerTaskMetrics record every
later stage consumes. Reaction times are filtered to the plausible range
before any statistic is computed; a task with no telemetry, or with fewer than
min_valid_samples values left after filtering, is returned with
available=False and is skipped by every aggregate downstream.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import norm

from ._types import PerTaskMetrics, SessionTelemetry, TaskName, TaskTelemetry
from .temporal_patterns import (
    analyze_drift,
    decompose_distribution,
    sample_sd,
    split_halves,
)
from .thresholds import DEFAULT_THRESHOLDS, ExtractionThresholds, ScoringThresholds

logger = logging.getLogger(__name__)


def filter_reaction_times(
    reaction_times: Sequence[float],
    thresholds: ExtractionThresholds,
) -> Tuple[float, ...]:
    """Keep values strictly between rt_floor_ms and rt_ceiling_ms, in order."""
    return tuple(
        float(rt)
        for rt in reaction_times
        if thresholds.rt_floor_ms < rt < thresholds.rt_ceiling_ms
    )


def signal_detection_sensitivity(
    hits: Optional[int],
    misses: Optional[int],
    false_alarms: Optional[int],
    correct_rejections: Optional[int],
    thresholds: ExtractionThresholds,
) -> Optional[float]:
    """
    Compute d' = z(hit rate) - z(false-alarm rate).

    Rates are clamped to [sdt_rate_floor, sdt_rate_ceiling] so perfect or
    empty cells do not produce infinite z-scores.

    Returns:
        d' rounded to 3 decimals, or None when either signal or noise trials
        are missing.
    """
    if hits is None or correct_rejections is None:
        return None
    signal_trials = hits + (misses or 0)
    noise_trials = (false_alarms or 0) + correct_rejections
    if signal_trials <= 0 or noise_trials <= 0:
        return None

    def clamp(rate: float) -> float:
        return min(thresholds.sdt_rate_ceiling, max(thresholds.sdt_rate_floor, rate))

    hit_rate = clamp(hits / signal_trials)
    fa_rate = clamp((false_alarms or 0) / noise_trials)
    return round(float(norm.ppf(hit_rate) - norm.ppf(fa_rate)), 3)


def _count_errors(task: TaskName, telemetry: TaskTelemetry, total_trials: int) -> int:
    if task == TaskName.TRAIL:
        return telemetry.errors or 0

    errors = telemetry.omission_errors + telemetry.commission_errors
    if (
        task == TaskName.FLANKER
        and errors == 0
        and telemetry.accuracy is not None
        and telemetry.total_trials
    ):
        # The flanker task reports accuracy without error counts
        errors = int(round((100 - telemetry.accuracy) / 100 * total_trials))
    return max(0, errors)


def _switching_rating(ratio: float, thresholds: ExtractionThresholds) -> str:
    if ratio > thresholds.switching_ratio_severe:
        return "severe"
    if ratio > thresholds.switching_ratio_elevated:
        return "elevated"
    return "normal"


def _task_extras(
    task: TaskName,
    telemetry: TaskTelemetry,
    reaction_times: Tuple[float, ...],
    thresholds: ExtractionThresholds,
) -> Dict[str, Any]:
    """Task-specific values that do not fit the uniform record."""
    extras: Dict[str, Any] = {}

    if task in (TaskName.CPT, TaskName.N_BACK):
        extras["hits"] = telemetry.hits
        extras["correct_rejections"] = telemetry.correct_rejections
        extras["d_prime"] = signal_detection_sensitivity(
            telemetry.hits,
            telemetry.omission_errors,
            telemetry.commission_errors,
            telemetry.correct_rejections,
            thresholds,
        )
    if task == TaskName.N_BACK:
        extras["n_back_level"] = telemetry.n_back_level or thresholds.default_n_back_level

    elif task == TaskName.GO_NO_GO:
        extras["go_accuracy"] = telemetry.go_accuracy
        extras["nogo_accuracy"] = telemetry.nogo_accuracy

    elif task == TaskName.FLANKER:
        extras["congruent_rt"] = telemetry.congruent_rt
        extras["incongruent_rt"] = telemetry.incongruent_rt
        extras["congruent_accuracy"] = telemetry.congruent_accuracy
        extras["incongruent_accuracy"] = telemetry.incongruent_accuracy
        if telemetry.congruent_rt is not None and telemetry.incongruent_rt is not None:
            effect = telemetry.incongruent_rt - telemetry.congruent_rt
            extras["flanker_effect"] = round(effect, 2)
            extras["conflict_cost"] = round(abs(effect), 2)

    elif task == TaskName.TRAIL:
        time_per_item = telemetry.time_per_item_ms
        if time_per_item is None and reaction_times:
            time_per_item = float(np.mean(reaction_times))
        extras["errors"] = telemetry.errors or 0
        extras["completion_time_ms"] = telemetry.completion_time_ms
        extras["time_per_item_ms"] = (
            round(time_per_item, 2) if time_per_item is not None else None
        )
        if telemetry.trail_a_time_ms and telemetry.trail_b_time_ms:
            ratio = telemetry.trail_b_time_ms / telemetry.trail_a_time_ms
            extras["switching_ratio"] = round(ratio, 2)
            extras["switching_rating"] = _switching_rating(ratio, thresholds)

    return extras


def extract_task_metrics(
    task: TaskName,
    telemetry: Optional[TaskTelemetry],
    thresholds: ScoringThresholds = DEFAULT_THRESHOLDS,
) -> PerTaskMetrics:
    """
    Extract the uniform metric record for one task.

    Args:
        task: Which task the telemetry belongs to.
        telemetry: Canonical telemetry, or None if the task was not completed.
        thresholds: Scoring thresholds (extraction, decomposition and drift
            sections are used).

    Returns:
        PerTaskMetrics. Never raises for missing or sparse data; instead
        available is False and reason explains why.
    """
    limits = thresholds.extraction

    if telemetry is None:
        return PerTaskMetrics(task=task, available=False, reason="No telemetry recorded")

    valid = filter_reaction_times(telemetry.reaction_times, limits)
    excluded = len(telemetry.reaction_times) - len(valid)

    if len(valid) < limits.min_valid_samples:
        logger.debug(
            f"{task.value}: {len(valid)} valid samples, "
            f"below minimum of {limits.min_valid_samples}"
        )
        return PerTaskMetrics(
            task=task,
            available=False,
            reason=(
                f"Insufficient data: {len(valid)} valid reaction times "
                f"(minimum {limits.min_valid_samples})"
            ),
            sample_count=len(valid),
            excluded_count=excluded,
            accuracy=telemetry.accuracy,
            reaction_times=valid,
        )

    arr = np.asarray(valid, dtype=float)
    mean_rt = float(arr.mean())
    sd_rt = sample_sd(arr)
    cv_pct = sd_rt / mean_rt * 100 if mean_rt > 0 else 0.0

    drift = analyze_drift(valid, thresholds.drift)
    total_trials = telemetry.total_trials or limits.default_total_trials
    error_count = _count_errors(task, telemetry, total_trials)
    error_rate = error_count / max(1, total_trials)

    accuracy = telemetry.accuracy
    if accuracy is None and telemetry.total_trials:
        accuracy = max(0.0, (1 - error_rate) * 100)

    fatigue_detected = (
        len(valid) >= limits.fatigue_min_samples
        and drift.direction == "increasing"
        and drift.magnitude_ms > limits.fatigue_drift_ms
    )

    return PerTaskMetrics(
        task=task,
        available=True,
        sample_count=len(valid),
        excluded_count=excluded,
        accuracy=round(accuracy, 2) if accuracy is not None else None,
        mean_rt=round(mean_rt, 2),
        median_rt=round(float(np.median(arr)), 2),
        sd_rt=round(sd_rt, 2),
        cv_pct=round(cv_pct, 2),
        decomposition=decompose_distribution(valid, thresholds.decomposition),
        drift=drift,
        half_split=split_halves(valid),
        error_count=error_count,
        error_rate=round(error_rate, 4),
        error_cluster_index=round(
            min(limits.error_cluster_cap, error_rate * limits.error_cluster_scale), 3
        ),
        omission_errors=telemetry.omission_errors,
        commission_errors=telemetry.commission_errors,
        fatigue_detected=fatigue_detected,
        reaction_times=valid,
        extras=_task_extras(task, telemetry, valid, limits),
    )


def available_metrics(
    metrics: Mapping[TaskName, PerTaskMetrics],
    tasks: Optional[Iterable[TaskName]] = None,
) -> List[PerTaskMetrics]:
    """Available task metrics, optionally restricted to the given tasks, in battery order."""
    wanted = set(tasks) if tasks is not None else set(TaskName)
    return [m for task, m in metrics.items() if task in wanted and m.available]


def extract_session_metrics(
    session: SessionTelemetry,
    thresholds: ScoringThresholds = DEFAULT_THRESHOLDS,
) -> Dict[TaskName, PerTaskMetrics]:
    """Extract metrics for every task in the battery, in battery order."""
    metrics = {
        task: extract_task_metrics(task, session.tasks.get(task), thresholds)
        for task in TaskName
    }
    available = [t.value for t, m in metrics.items() if m.available]
    logger.info(
        f"Metric extraction complete: {len(available)}/{len(metrics)} tasks available "
        f"({', '.join(available) or 'none'})"
    )
    return metrics
