"""
Temporal pattern analysis of reaction-time sequences.

Provides the distribution-shape and drift-over-time features consumed by the
detectors, composite indices and likelihood synthesis:

- Distribution decomposition: a three-zone percentile split standing in for an
  ex-Gaussian fit. Values below P10 are fast outliers, the P10-P75 band gives
  the central tendency (mu, sigma) and values above P75 form the slow tail
  whose excess is reported as tau.
- Drift: quarter means, drift direction and a vigilance curve label.
- Micro-drift: jumps between adjacent non-overlapping 5- and 10-trial windows.
- Fatigue bursts: 10-trial windows much slower than the task average.
- Half split: first-half versus second-half speed and spread, used by the
  practice-effect detector.

All functions expect a filtered sequence (see extraction.filter_reaction_times)
and are pure.
"""

import logging
from typing import List, Sequence

import numpy as np

from ._types import (
    DistributionDecomposition,
    DriftProfile,
    HalfSplitProfile,
    MicroDriftEvent,
)
from .thresholds import DecompositionThresholds, DriftThresholds

logger = logging.getLogger(__name__)

QUARTERS = 4


def sample_sd(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1), 0.0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float), ddof=1))


def decompose_distribution(
    reaction_times: Sequence[float],
    thresholds: DecompositionThresholds,
) -> DistributionDecomposition:
    """
    Estimate the slow-tail excess (tau) of a reaction-time distribution.

    tau = slow_tail_weight * (mean(slow tail) - P75)
          + tail_spread_weight * (P90 - P75)

    Two corrections are applied in order:
        1. Bimodality: when P75 - median exceeds bimodality_sigma_ratio * sigma
           the gap itself signals a second, slower mode, so
           bimodality_gap_weight * gap is added.
        2. Central spread: when sigma / overall SD reaches central_spread_ratio
           the central band already explains most of the spread (gradual
           drift rather than a true tail), so tau is scaled by
           central_spread_scale.

    The result is floored at zero and also reported as a percentage of the
    mean reaction time, banded normal / elevated / high.

    Args:
        reaction_times: Filtered reaction times in ms (at least two values).
        thresholds: Decomposition cutoffs.

    Returns:
        DistributionDecomposition for the sequence.
    """
    arr = np.asarray(reaction_times, dtype=float)
    mean_rt = float(arr.mean())
    overall_sd = sample_sd(arr)

    p10, p75, p90 = (
        float(v)
        for v in np.percentile(
            arr,
            [
                thresholds.fast_percentile,
                thresholds.central_upper_percentile,
                thresholds.tail_percentile,
            ],
        )
    )
    median_rt = float(np.median(arr))

    fast = arr[arr < p10]
    central = arr[(arr >= p10) & (arr <= p75)]
    slow = arr[arr > p75]

    mu = float(central.mean()) if central.size else mean_rt
    sigma = sample_sd(central)

    slow_excess = float(slow.mean()) - p75 if slow.size else 0.0
    tau = (
        thresholds.slow_tail_weight * slow_excess
        + thresholds.tail_spread_weight * (p90 - p75)
    )

    gap = p75 - median_rt
    bimodality_corrected = gap > 0 and gap > thresholds.bimodality_sigma_ratio * sigma
    if bimodality_corrected:
        tau += thresholds.bimodality_gap_weight * gap

    spread_corrected = (
        overall_sd > 0 and sigma / overall_sd >= thresholds.central_spread_ratio
    )
    if spread_corrected:
        tau *= thresholds.central_spread_scale

    tau = max(0.0, tau)
    tau_pct = tau / mean_rt * 100 if mean_rt > 0 else 0.0

    if tau_pct > thresholds.tau_pct_high:
        tau_band = "high"
    elif tau_pct >= thresholds.tau_pct_elevated:
        tau_band = "elevated"
    else:
        tau_band = "normal"

    return DistributionDecomposition(
        mu=round(mu, 2),
        sigma=round(sigma, 2),
        tau=round(tau, 2),
        tau_pct=round(tau_pct, 2),
        tau_band=tau_band,
        p10=round(p10, 2),
        p75=round(p75, 2),
        p90=round(p90, 2),
        fast_outlier_count=int(fast.size),
        slow_tail_count=int(slow.size),
        bimodality_corrected=bool(bimodality_corrected),
        spread_corrected=bool(spread_corrected),
    )


def quarter_means(reaction_times: Sequence[float]) -> List[float]:
    """Means of the first, second, third and last quarter (empty if n < 4)."""
    arr = np.asarray(reaction_times, dtype=float)
    size = len(arr) // QUARTERS
    if size == 0:
        return []
    quarters = [arr[:size], arr[size : 2 * size], arr[2 * size : 3 * size], arr[-size:]]
    return [round(float(q.mean()), 2) for q in quarters]


def classify_vigilance_curve(
    means: Sequence[float],
    mean_rt: float,
    thresholds: DriftThresholds,
) -> str:
    """
    Label the shape of reaction time across the four quarters.

    Rules are evaluated in this order, first match wins:
        1. stable: all quarter means within the tolerance band
        2. crash: first three quarters flat, then a sudden slowdown
        3. u_shaped: middle of the session faster than both ends
        4. inverted_u: middle of the session slower than both ends
        5. progressive: overall slowdown from first to last quarter
        6. improving: overall speed-up from first to last quarter
        7. stable otherwise

    The tolerance is the larger of vigilance_tolerance_ms and
    vigilance_tolerance_pct of the mean reaction time.
    """
    if len(means) != QUARTERS:
        return "stable"

    tolerance = max(
        thresholds.vigilance_tolerance_ms,
        mean_rt * thresholds.vigilance_tolerance_pct / 100,
    )
    q1, q2, q3, q4 = means

    if max(means) - min(means) <= tolerance:
        return "stable"

    first_three = (q1, q2, q3)
    if (
        max(first_three) - min(first_three) <= tolerance
        and q4 - max(first_three) > tolerance
    ):
        return "crash"

    middle = (q2 + q3) / 2
    if middle < q1 - tolerance and middle < q4 - tolerance:
        return "u_shaped"
    if middle > q1 + tolerance and middle > q4 + tolerance:
        return "inverted_u"
    if q4 - q1 > tolerance:
        return "progressive"
    if q1 - q4 > tolerance:
        return "improving"
    return "stable"


def _window_means(arr: np.ndarray, window: int) -> List[float]:
    return [
        float(arr[start : start + window].mean())
        for start in range(0, len(arr) - window + 1, window)
    ]


def detect_micro_drift(
    reaction_times: Sequence[float],
    thresholds: DriftThresholds,
) -> List[MicroDriftEvent]:
    """
    Find jumps between adjacent window means larger than micro_drift_jump_ms.

    Each configured window size is scanned independently; trial_index is the
    first trial of the later window.
    """
    arr = np.asarray(reaction_times, dtype=float)
    events: List[MicroDriftEvent] = []

    for window in thresholds.micro_drift_windows:
        means = _window_means(arr, window)
        for i in range(1, len(means)):
            delta = means[i] - means[i - 1]
            if abs(delta) > thresholds.micro_drift_jump_ms:
                events.append(
                    MicroDriftEvent(
                        window_size=window,
                        trial_index=i * window,
                        delta_ms=round(delta, 2),
                    )
                )

    return events


def count_fatigue_bursts(
    reaction_times: Sequence[float],
    thresholds: DriftThresholds,
) -> int:
    """Count burst_window-sized windows whose mean exceeds burst_mean_ratio x the overall mean."""
    arr = np.asarray(reaction_times, dtype=float)
    if arr.size == 0:
        return 0
    limit = float(arr.mean()) * thresholds.burst_mean_ratio
    return sum(1 for m in _window_means(arr, thresholds.burst_window) if m > limit)


def analyze_drift(
    reaction_times: Sequence[float],
    thresholds: DriftThresholds,
) -> DriftProfile:
    """Build the drift profile: quarter drift, vigilance curve, micro-drift and bursts."""
    arr = np.asarray(reaction_times, dtype=float)
    means = quarter_means(arr)
    delta = means[-1] - means[0] if means else 0.0

    if delta > thresholds.direction_ms:
        direction = "increasing"
    elif delta < -thresholds.direction_ms:
        direction = "decreasing"
    else:
        direction = "stable"

    mean_rt = float(arr.mean()) if arr.size else 0.0

    return DriftProfile(
        delta_ms=round(delta, 2),
        magnitude_ms=round(abs(delta), 2),
        direction=direction,
        quarter_means=means,
        vigilance_curve=classify_vigilance_curve(means, mean_rt, thresholds),
        micro_drift_events=detect_micro_drift(arr, thresholds),
        fatigue_bursts=count_fatigue_bursts(arr, thresholds),
    )


def split_halves(reaction_times: Sequence[float]) -> HalfSplitProfile:
    """Compare the first and second halves of the sequence."""
    arr = np.asarray(reaction_times, dtype=float)
    half = len(arr) // 2
    first, second = arr[:half], arr[half:]

    first_mean = float(first.mean()) if first.size else 0.0
    second_mean = float(second.mean()) if second.size else 0.0
    first_sd = sample_sd(first)
    second_sd = sample_sd(second)

    speedup = (first_mean - second_mean) / first_mean * 100 if first_mean > 0 else 0.0
    tightening = (first_sd - second_sd) / first_sd * 100 if first_sd > 0 else 0.0

    return HalfSplitProfile(
        first_mean=round(first_mean, 2),
        second_mean=round(second_mean, 2),
        first_sd=round(first_sd, 2),
        second_sd=round(second_sd, 2),
        speedup_pct=round(speedup, 2),
        sd_tightening_pct=round(tightening, 2),
    )
