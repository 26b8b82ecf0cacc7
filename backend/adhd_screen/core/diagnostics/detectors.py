"""
Anti-gaming detector suite.

Each detector inspects the available per-task metrics independently and
returns an Evidence value. None of them reads another detector's result; the
likelihood synthesizer is the only consumer that combines them.

Detectors:
    practice_effect: genuine second-half improvement together with suppressed
        variability. Low variability alone never fires it.
    hyperfocus: high accuracy that hides a slow tail, large spread or drift
        ("classic"), or a tight spread with a persistent slow tail ("robotic").
    compensated: near-perfect accuracy on most tasks while the consistency
        index is below its ceiling.
    masking: tight spread combined with a slow tail on several tasks.
    executive_overload, high_variability: informational flags derived from
        the cognitive-cost index and the average tail excess.
"""

import logging
from typing import Dict, List, Mapping

import numpy as np

from ._types import RT_TASKS, CompositeScore, Evidence, PerTaskMetrics, TaskName
from .extraction import available_metrics
from .thresholds import DEFAULT_THRESHOLDS, DetectorThresholds, ScoringThresholds

logger = logging.getLogger(__name__)

# Display labels for the active-flag list, in report order
FLAG_LABELS: Dict[str, str] = {
    "hyperfocus": "Hyperfocus compensation",
    "compensated": "Compensated performance",
    "masking": "Masking / overcontrol",
    "practice_effect": "Practice effect",
    "executive_overload": "Executive overload",
    "high_variability": "High attention variability",
}


def _task_names(tasks: List[PerTaskMetrics]) -> str:
    return ", ".join(m.task.value for m in tasks)


def detect_practice_effect(
    metrics: Mapping[TaskName, PerTaskMetrics],
    thresholds: DetectorThresholds,
) -> Evidence:
    """
    Detect a practice (learning) effect.

    A task shows improvement evidence when its second half is at least
    practice_speedup_pct faster than the first half AND either its second-half
    SD is practice_sd_tightening_pct tighter, or its tail excess is near zero
    at near-ceiling accuracy.

    The detector fires only when improvement evidence exists on at least one
    task AND the average coefficient of variation is below
    practice_cv_ceiling_pct. Naturally consistent performers show CVs in the
    same range, so the CV check on its own is never sufficient.
    """
    tasks = available_metrics(metrics, RT_TASKS)
    if not tasks:
        return Evidence(
            name="practice_effect",
            detected=False,
            explanation="No reaction-time tasks available for practice-effect analysis",
        )

    avg_cv = float(np.mean([m.cv_pct for m in tasks]))
    improving: List[PerTaskMetrics] = []
    for m in tasks:
        split = m.half_split
        if split is None or split.speedup_pct < thresholds.practice_speedup_pct:
            continue
        tighter = split.sd_tightening_pct >= thresholds.practice_sd_tightening_pct
        ceiling = (
            m.tau <= thresholds.practice_tau_ceiling_ms
            and m.accuracy is not None
            and m.accuracy >= thresholds.practice_accuracy_ceiling
        )
        if tighter or ceiling:
            improving.append(m)

    suppressed = avg_cv < thresholds.practice_cv_ceiling_pct
    detected = suppressed and bool(improving)

    details = {
        "average_cv_pct": round(avg_cv, 2),
        "variability_suppressed": suppressed,
        "improving_tasks": [m.task.value for m in improving],
        "tasks_checked": len(tasks),
    }

    if detected:
        return Evidence(
            name="practice_effect",
            detected=True,
            confidence=round(len(improving) / len(tasks) * 100, 1),
            evidence=(
                f"Second-half speed-up with tighter responding on {_task_names(improving)} "
                f"(average CV {avg_cv:.1f}%)"
            ),
            explanation="Performance improved within the session while variability stayed suppressed",
            details=details,
        )

    if improving:
        explanation = "Within-session improvement without suppressed variability"
    elif suppressed:
        explanation = "Low variability without within-session improvement"
    else:
        explanation = "No practice effect pattern"
    return Evidence(
        name="practice_effect", detected=False, explanation=explanation, details=details
    )


def _burst_trials(m: PerTaskMetrics, ratio: float) -> List[int]:
    """1-based trial numbers slower than ratio x the task mean."""
    limit = m.mean_rt * ratio
    return [i + 1 for i, rt in enumerate(m.reaction_times) if rt > limit]


def detect_hyperfocus(
    metrics: Mapping[TaskName, PerTaskMetrics],
    thresholds: DetectorThresholds,
) -> Evidence:
    """
    Detect hyperfocus compensation on high-accuracy tasks.

    Only tasks at or above hyperfocus_accuracy are checked. A task signals when
    it shows either pattern:
        classic: tau > hyperfocus_tau_ms, or SD > hyperfocus_sd_ms, or drift
            magnitude > hyperfocus_drift_ms
        robotic: SD < robotic_sd_ms together with tau > robotic_tau_ms

    Detection requires hyperfocus_min_signals signalling tasks, or a single
    signal when no more than hyperfocus_small_battery tasks were checked.
    """
    checked = [
        m
        for m in available_metrics(metrics, RT_TASKS)
        if m.accuracy is not None and m.accuracy >= thresholds.hyperfocus_accuracy
    ]
    if not checked:
        return Evidence(
            name="hyperfocus",
            detected=False,
            explanation="No high-accuracy tasks to check for hyperfocus",
            details={"subtype": "none", "tasks_checked": 0},
        )

    classic_only: List[PerTaskMetrics] = []
    robotic: List[PerTaskMetrics] = []
    for m in checked:
        is_robotic = m.sd_rt < thresholds.robotic_sd_ms and m.tau > thresholds.robotic_tau_ms
        is_classic = (
            m.tau > thresholds.hyperfocus_tau_ms
            or m.sd_rt > thresholds.hyperfocus_sd_ms
            or m.drift_magnitude > thresholds.hyperfocus_drift_ms
        )
        if is_robotic:
            robotic.append(m)
        elif is_classic:
            classic_only.append(m)

    signals = classic_only + robotic
    if classic_only and robotic:
        subtype = "mixed"
    elif robotic:
        subtype = "robotic"
    elif classic_only:
        subtype = "classic"
    else:
        subtype = "none"

    detected = len(signals) >= thresholds.hyperfocus_min_signals or (
        len(signals) >= 1 and len(checked) <= thresholds.hyperfocus_small_battery
    )

    details = {
        "subtype": subtype,
        "tasks_checked": len(checked),
        "signal_tasks": [m.task.value for m in signals],
        "classic_tasks": [m.task.value for m in classic_only],
        "robotic_tasks": [m.task.value for m in robotic],
    }

    if not detected:
        return Evidence(
            name="hyperfocus",
            detected=False,
            confidence=0.0,
            explanation="High accuracy without hidden variability",
            details=details,
        )

    strongest = max(signals, key=lambda m: m.tau)
    bursts = _burst_trials(strongest, thresholds.hyperfocus_burst_ratio)
    evidence = (
        f"High accuracy with elevated slow tail on {_task_names(signals)} "
        f"(strongest: {strongest.task.value}, tau {strongest.tau:.0f} ms)"
    )
    if thresholds.hyperfocus_burst_min_trials <= len(bursts) <= thresholds.hyperfocus_burst_max_trials:
        details["burst_trials"] = bursts
        evidence += f"; slow bursts at trials {', '.join(str(t) for t in bursts)}"

    return Evidence(
        name="hyperfocus",
        detected=True,
        confidence=round(len(signals) / len(checked) * 100, 1),
        evidence=evidence,
        explanation=f"Accuracy maintained through effortful focus ({subtype} pattern)",
        details=details,
    )


def detect_compensated_pattern(
    metrics: Mapping[TaskName, PerTaskMetrics],
    consistency: CompositeScore,
    thresholds: DetectorThresholds,
) -> Evidence:
    """Flag near-perfect accuracy on most tasks while consistency stays below its ceiling."""
    perfect = [
        m
        for m in available_metrics(metrics)
        if m.accuracy is not None and m.accuracy >= thresholds.compensated_accuracy
    ]
    details = {
        "perfect_tasks": [m.task.value for m in perfect],
        "consistency_index": consistency.value,
    }

    if not consistency.available or consistency.value is None:
        return Evidence(
            name="compensated",
            detected=False,
            explanation="Consistency index unavailable; compensation cannot be assessed",
            details=details,
        )

    detected = (
        len(perfect) >= thresholds.compensated_min_tasks
        and consistency.value < thresholds.compensated_consistency_ceiling
    )
    if not detected:
        return Evidence(
            name="compensated",
            detected=False,
            explanation="Accuracy and consistency are in agreement",
            details=details,
        )

    confidence = min(
        100.0,
        thresholds.compensated_points_per_task * len(perfect)
        + (thresholds.compensated_consistency_ceiling - consistency.value),
    )
    return Evidence(
        name="compensated",
        detected=True,
        confidence=round(confidence, 1),
        evidence=(
            f"{len(perfect)} tasks at >= {thresholds.compensated_accuracy:.0f}% accuracy "
            f"with consistency index {consistency.value}"
        ),
        explanation="Accuracy is hiding underlying instability",
        details=details,
    )


def detect_masking(
    metrics: Mapping[TaskName, PerTaskMetrics],
    thresholds: DetectorThresholds,
) -> Evidence:
    """Flag tight spread combined with a slow tail on at least masking_min_tasks tasks."""
    tasks = available_metrics(metrics, RT_TASKS)
    signals = [
        m
        for m in tasks
        if m.sd_rt < thresholds.masking_sd_ms and m.tau > thresholds.masking_tau_ms
    ]
    details = {"signal_tasks": [m.task.value for m in signals], "tasks_checked": len(tasks)}

    if len(signals) < thresholds.masking_min_tasks:
        return Evidence(
            name="masking",
            detected=False,
            explanation="No overcontrolled responding pattern",
            details=details,
        )

    return Evidence(
        name="masking",
        detected=True,
        confidence=round(len(signals) / len(tasks) * 100, 1),
        evidence=f"Tight responding with a persistent slow tail on {_task_names(signals)}",
        explanation="Overcontrolled responding may be masking attention lapses",
        details=details,
    )


def detect_executive_overload(
    cognitive_cost: CompositeScore,
    thresholds: DetectorThresholds,
) -> Evidence:
    """Informational flag: cognitive-cost index above executive_overload_cognitive_cost."""
    detected = (
        cognitive_cost.available
        and cognitive_cost.value is not None
        and cognitive_cost.value > thresholds.executive_overload_cognitive_cost
    )
    return Evidence(
        name="executive_overload",
        detected=detected,
        confidence=float(cognitive_cost.value or 0) if detected else 0.0,
        evidence=(
            f"Cognitive-cost index {cognitive_cost.value}" if detected else None
        ),
        explanation=(
            "Executive control demands are unusually costly"
            if detected
            else "Executive control cost within expected range"
        ),
    )


def detect_high_variability(
    metrics: Mapping[TaskName, PerTaskMetrics],
    thresholds: DetectorThresholds,
) -> Evidence:
    """Informational flag: average tail excess above high_variability_tau_ms."""
    tasks = available_metrics(metrics, RT_TASKS)
    if not tasks:
        return Evidence(
            name="high_variability",
            detected=False,
            explanation="No reaction-time tasks available",
        )
    avg_tau = float(np.mean([m.tau for m in tasks]))
    detected = avg_tau > thresholds.high_variability_tau_ms
    return Evidence(
        name="high_variability",
        detected=detected,
        confidence=round(min(100.0, avg_tau), 1) if detected else 0.0,
        evidence=f"Average tail excess {avg_tau:.0f} ms" if detected else None,
        explanation=(
            "Frequent slow responses across tasks"
            if detected
            else "Slow-response frequency within expected range"
        ),
        details={"average_tau_ms": round(avg_tau, 2)},
    )


def run_detectors(
    metrics: Mapping[TaskName, PerTaskMetrics],
    consistency: CompositeScore,
    cognitive_cost: CompositeScore,
    thresholds: ScoringThresholds = DEFAULT_THRESHOLDS,
) -> Dict[str, Evidence]:
    """Run every detector and return results keyed by evidence name."""
    limits = thresholds.detectors
    results = [
        detect_hyperfocus(metrics, limits),
        detect_compensated_pattern(metrics, consistency, limits),
        detect_masking(metrics, limits),
        detect_practice_effect(metrics, limits),
        detect_executive_overload(cognitive_cost, limits),
        detect_high_variability(metrics, limits),
    ]
    detected = [e.name for e in results if e.detected]
    logger.info(f"Detector suite complete: {len(detected)} flags ({', '.join(detected) or 'none'})")
    return {e.name: e for e in results}


def active_flag_labels(flags: Mapping[str, Evidence]) -> List[str]:
    """Display labels for detected flags, in FLAG_LABELS order."""
    return [
        label for name, label in FLAG_LABELS.items() if name in flags and flags[name].detected
    ]
