"""
Scoring threshold configuration for the screening pipeline.

Every numeric cutoff used by the diagnostic stages lives here, grouped into one
frozen section per stage. Stages receive a ``ScoringThresholds`` instance (the
module-level ``DEFAULT_THRESHOLDS`` unless a caller supplies another) and never
hard-code cutoffs of their own, so the scoring behavior can be tuned and tested
without touching the scoring logic.

Overrides can be loaded from a JSON document whose top-level keys mirror the
section names below; any key left out keeps its default value, including
keys inside mapping fields such as weights and adjustments:

    {
        "hidden_markers": {"jitter_bands": [110.0, 200.0, 350.0, 500.0]},
        "likelihood": {"confidence_margin": 5.0}
    }

Loading is driven by ``settings.SCORING_THRESHOLDS_PATH`` through
``get_scoring_thresholds()``.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Self, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)

# Tolerance for floating-point weight summation checks
_WEIGHT_SUM_TOLERANCE = 1e-6

# Mapping fields whose overrides may introduce new keys (adjustments are keyed
# by evidence name, and any detector or hidden-marker Evidence may get one)
_OPEN_MAPPING_FIELDS = frozenset({"adjustments"})


def _check_weights(name: str, weights: Dict[str, float]) -> None:
    """Raise ValueError unless weights are non-negative and sum to 1.0."""
    for key, value in weights.items():
        if value < 0:
            raise ValueError(f"{name} weight for '{key}' must be non-negative")
    total = sum(weights.values())
    if abs(total - 1.0) > _WEIGHT_SUM_TOLERANCE:
        raise ValueError(f"{name} weights must sum to 1.0, got {total}")


def _check_descending(name: str, bands: Tuple[float, ...]) -> None:
    if any(upper <= lower for upper, lower in zip(bands, bands[1:])):
        raise ValueError(f"{name} must be strictly descending, got {bands}")


def _check_ascending(name: str, bands: Tuple[float, ...]) -> None:
    if any(lower >= upper for lower, upper in zip(bands, bands[1:])):
        raise ValueError(f"{name} must be strictly ascending, got {bands}")


class _Section(BaseModel):
    """
    Base class for an immutable threshold section.

    Mapping-valued fields (weights, band points, adjustments) accept partial
    overrides: the supplied keys are merged over the field's defaults.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def merge_mapping_overrides(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        merged = dict(data)
        for name, field_info in cls.model_fields.items():
            override = merged.get(name)
            if not isinstance(override, dict) or field_info.default_factory is None:
                continue
            default = field_info.default_factory()
            if not isinstance(default, dict):
                continue
            unknown = set(override) - set(default)
            if unknown and name not in _OPEN_MAPPING_FIELDS:
                raise ValueError(
                    f"{name} has unknown keys {sorted(unknown)}; "
                    f"expected a subset of {sorted(default)}"
                )
            merged[name] = {**default, **override}
        return merged


# =============================================================================
# METRIC EXTRACTION
# =============================================================================


class ExtractionThresholds(_Section):
    """Sample filtering and per-task metric extraction."""

    # Reaction times must satisfy rt_floor_ms < rt < rt_ceiling_ms
    rt_floor_ms: float = 0.0
    rt_ceiling_ms: float = 5000.0
    min_valid_samples: int = Field(default=10, ge=2)

    # Fatigue flag: enough samples and a sizeable slowdown between quarters
    fatigue_min_samples: int = 20
    fatigue_drift_ms: float = 30.0

    # Error clustering index = min(cap, error_rate * scale)
    error_cluster_scale: float = 10.0
    error_cluster_cap: float = 5.0
    default_total_trials: int = 50

    default_n_back_level: int = 2

    # Hit and false-alarm rates are clamped before the inverse normal
    sdt_rate_floor: float = 0.01
    sdt_rate_ceiling: float = 0.99

    # Trail B / Trail A completion-time ratio
    switching_ratio_elevated: float = 2.0
    switching_ratio_severe: float = 2.5


# =============================================================================
# DISTRIBUTION DECOMPOSITION AND DRIFT
# =============================================================================


class DecompositionThresholds(_Section):
    """Three-zone percentile split used to estimate the slow tail (tau)."""

    fast_percentile: float = 10.0
    central_upper_percentile: float = 75.0
    tail_percentile: float = 90.0

    slow_tail_weight: float = 0.6
    tail_spread_weight: float = 0.4

    # Bimodality correction: P75 - median > ratio * sigma adds weight * gap
    bimodality_sigma_ratio: float = 1.5
    bimodality_gap_weight: float = 0.3

    # Central band carrying most of the spread means drift, not a true tail
    central_spread_ratio: float = 0.6
    central_spread_scale: float = 0.7

    # Tau as a percentage of mean RT
    tau_pct_elevated: float = 10.0
    tau_pct_high: float = 20.0


class DriftThresholds(_Section):
    """Quarter drift, vigilance curve shape, micro-drift and fatigue bursts."""

    direction_ms: float = 20.0

    # Vigilance tolerance = max(tolerance_ms, tolerance_pct of mean RT)
    vigilance_tolerance_ms: float = 20.0
    vigilance_tolerance_pct: float = 5.0

    micro_drift_windows: Tuple[int, ...] = (5, 10)
    micro_drift_jump_ms: float = 50.0

    burst_window: int = 10
    burst_mean_ratio: float = 1.3


# =============================================================================
# ANTI-GAMING DETECTORS
# =============================================================================


class DetectorThresholds(_Section):
    """Cutoffs for the practice, hyperfocus, compensated and masking detectors."""

    # Practice effect
    practice_speedup_pct: float = 8.0
    practice_sd_tightening_pct: float = 15.0
    practice_tau_ceiling_ms: float = 10.0
    practice_accuracy_ceiling: float = 97.0
    practice_cv_ceiling_pct: float = 15.0

    # Hyperfocus
    hyperfocus_accuracy: float = 90.0
    hyperfocus_tau_ms: float = 50.0
    hyperfocus_sd_ms: float = 150.0
    hyperfocus_drift_ms: float = 20.0
    robotic_sd_ms: float = 80.0
    robotic_tau_ms: float = 60.0
    hyperfocus_min_signals: int = 2
    # With this many checked tasks or fewer, a single signal is enough
    hyperfocus_small_battery: int = 2
    hyperfocus_burst_ratio: float = 1.5
    hyperfocus_burst_min_trials: int = 3
    hyperfocus_burst_max_trials: int = 10

    # Compensated pattern
    compensated_accuracy: float = 98.0
    compensated_min_tasks: int = 3
    compensated_consistency_ceiling: float = 80.0
    compensated_points_per_task: float = 20.0

    # Masking / overcontrol
    masking_sd_ms: float = 100.0
    masking_tau_ms: float = 40.0
    masking_min_tasks: int = 2

    # Informational flags
    executive_overload_cognitive_cost: float = 60.0
    high_variability_tau_ms: float = 60.0


# =============================================================================
# COMPOSITE INDICES
# =============================================================================


class ConsistencyThresholds(_Section):
    """Consistency index (MC) sub-score transforms and weights."""

    weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "sd": 0.20,
            "tau": 0.20,
            "drift": 0.15,
            "error_cluster": 0.15,
            "cross_task": 0.25,
            "vigilance": 0.05,
        }
    )
    sd_scale: float = 2.0
    tau_scale: float = 1.0
    drift_scale: float = 2.0
    error_cluster_scale: float = 20.0
    cross_task_scale: float = 2.0
    # Cross-task score when fewer than two tasks are available
    cross_task_neutral: float = 50.0
    vigilance_drift_penalty: float = 30.0
    vigilance_burst_penalty: float = 30.0
    vigilance_max_bursts: int = 2

    # Interpretation bands (score >= band), highest first
    interpretation_bands: Tuple[float, ...] = (80.0, 65.0, 50.0, 35.0)

    @model_validator(mode="after")
    def validate_weights(self) -> Self:
        _check_weights("consistency", self.weights)
        _check_descending("consistency interpretation_bands", self.interpretation_bands)
        return self


class CognitiveCostThresholds(_Section):
    """Cognitive-cost index (CPI) term transforms."""

    term_cap: float = 100.0

    # Working memory: tau / mean * scale + accuracy shortfall * penalty
    wm_tau_ratio_scale: float = 200.0
    accuracy_shortfall_scale: float = 2.0

    # Inhibition
    commission_penalty: float = 10.0
    variability_divisor: float = 3.0
    variability_cap: float = 50.0

    # Conflict: |flanker effect| / span * 100 + accuracy gap
    conflict_rt_span_ms: float = 150.0

    # Switch: time per item (s) / span * points + errors * penalty + micro-stalls
    switch_seconds_span: float = 3.0
    switch_seconds_points: float = 50.0
    switch_error_penalty: float = 10.0
    segment_outlier_ratio: float = 2.0
    slow_segment_ratio: float = 1.5
    slow_run_length: int = 3
    micro_stall_outlier_points: float = 5.0
    micro_stall_run_points: float = 10.0
    micro_stall_cap: float = 30.0

    # Interpretation bands (score <= band), lowest first
    interpretation_bands: Tuple[float, ...] = (15.0, 30.0, 50.0, 70.0)

    @model_validator(mode="after")
    def validate_bands(self) -> Self:
        _check_ascending("cognitive cost interpretation_bands", self.interpretation_bands)
        return self


class DomainThresholds(_Section):
    """Per-task domain stability blend."""

    weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "accuracy": 0.30,
            "cv": 0.25,
            "tau": 0.20,
            "drift": 0.15,
            "error_cluster": 0.10,
        }
    )
    cv_scale: float = 2.0
    tau_scale: float = 1.0
    drift_scale: float = 2.0
    error_cluster_scale: float = 20.0
    interpretation_bands: Tuple[float, ...] = (80.0, 65.0, 50.0, 35.0)

    @model_validator(mode="after")
    def validate_weights(self) -> Self:
        _check_weights("domain", self.weights)
        _check_descending("domain interpretation_bands", self.interpretation_bands)
        return self


# =============================================================================
# HIDDEN MARKERS
# =============================================================================


class HiddenMarkerThresholds(_Section):
    """Jitter, fatigue slope, burst and efficiency bands."""

    # Successive differences larger than this are dropped from the jitter index
    jitter_max_diff_ms: float = 5000.0
    # Upper bounds for very_stable, stable, elevated, high (above is severe)
    jitter_bands: Tuple[float, ...] = (120.0, 200.0, 350.0, 500.0)

    slope_severe: float = 10.0
    slope_moderate: float = 5.0
    slope_mild: float = 3.0
    slope_impulsive: float = -3.0
    r_squared_significant: float = 0.3

    burst_ratio: float = 2.0
    severe_burst_ratio: float = 3.0
    burst_rate_severe_pct: float = 15.0
    burst_rate_moderate_pct: float = 8.0
    burst_rate_mild_pct: float = 3.0

    jitter_points: Dict[str, float] = Field(
        default_factory=lambda: {
            "very_stable": 0.0,
            "stable": 10.0,
            "elevated": 25.0,
            "high": 35.0,
            "severe": 45.0,
        }
    )
    slope_points: Dict[str, float] = Field(
        default_factory=lambda: {
            "stable": 0.0,
            "mild_fatigue": 10.0,
            "moderate_fatigue": 20.0,
            "severe_fatigue": 30.0,
            "impulsive_acceleration": 10.0,
        }
    )
    burst_points: Dict[str, float] = Field(
        default_factory=lambda: {
            "none": 0.0,
            "mild": 8.0,
            "moderate": 16.0,
            "severe": 25.0,
        }
    )
    score_cap: float = 100.0

    # Session-level evidence
    volatility_jitter_ms: float = 200.0
    fatigue_slope: float = 3.0

    # Inverse efficiency score bands (upper bounds for efficient, normal, high)
    ies_bands: Tuple[float, ...] = (500.0, 750.0, 900.0)

    @model_validator(mode="after")
    def validate_bands(self) -> Self:
        _check_ascending("jitter_bands", self.jitter_bands)
        _check_ascending("ies_bands", self.ies_bands)
        if not self.slope_severe > self.slope_moderate > self.slope_mild > 0:
            raise ValueError("fatigue slope bands must be positive and descending")
        if self.slope_impulsive >= 0:
            raise ValueError("slope_impulsive must be negative")
        return self


# =============================================================================
# SELF-REPORT
# =============================================================================


class SelfReportThresholds(_Section):
    """Questionnaire counting, presentation and severity."""

    # Item responses use a 0-4 scale; "often" and "very often" are >= 3
    item_often_score: int = 3
    symptom_threshold: int = 6
    other_specified_threshold: int = 4
    impairment_threshold: float = 2.0
    impairment_max: float = 3.0
    default_max_score: float = 72.0

    symptom_weight: float = 0.80
    impairment_weight: float = 0.20

    # Upper bounds for minimal, mild, moderate, high (above is severe)
    severity_bands: Tuple[float, ...] = (25.0, 45.0, 65.0, 80.0)

    @model_validator(mode="after")
    def validate_weights(self) -> Self:
        _check_weights(
            "self report",
            {"symptom": self.symptom_weight, "impairment": self.impairment_weight},
        )
        _check_ascending("severity_bands", self.severity_bands)
        return self


# =============================================================================
# LIKELIHOOD SYNTHESIS
# =============================================================================


class LikelihoodThresholds(_Section):
    """Contribution remaps, corrections, evidence adjustments and floors."""

    weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "consistency": 0.40,
            "cognitive_cost": 0.35,
            "self_report": 0.25,
        }
    )

    # Neutral values used when a source score is unavailable
    default_consistency: float = 50.0
    default_cognitive_cost: float = 30.0
    default_self_report: float = 0.0

    # Consistency remap: lower consistency means higher likelihood
    consistency_low: float = 40.0
    consistency_mid: float = 55.0
    consistency_high: float = 70.0
    consistency_low_base: float = 90.0
    consistency_mid_base: float = 70.0
    consistency_high_base: float = 40.0

    # Cognitive-cost remap: higher cost means higher likelihood
    cognitive_cost_high: float = 60.0
    cognitive_cost_mid: float = 45.0
    cognitive_cost_low: float = 30.0
    cognitive_cost_high_base: float = 90.0
    cognitive_cost_mid_base: float = 60.0
    cognitive_cost_low_base: float = 30.0
    cognitive_cost_high_slope: float = 0.5
    cognitive_cost_mid_slope: float = 1.0
    cognitive_cost_low_slope: float = 2.0

    # Environmental corrections
    slow_device_rt_ms: float = 750.0
    slow_device_factor: float = 0.90
    severe_lag_rt_ms: float = 900.0
    severe_lag_factor: float = 0.80
    exhaustion_slope: float = 30.0
    exhaustion_factor: float = 0.85

    # Additive adjustments keyed by evidence name
    adjustments: Dict[str, float] = Field(
        default_factory=lambda: {
            "hyperfocus": 10.0,
            "compensated": 15.0,
            "masking": 8.0,
            "practice_effect": -5.0,
            "hidden_volatility": 5.0,
            "hidden_fatigue": 5.0,
            "hidden_combined_pattern": 5.0,
        }
    )

    # Floor rules, applied after evidence adjustments
    floor_combined_severity: float = 75.0
    floor_combined_score: float = 65.0
    floor_full_presentation_severity: float = 60.0
    floor_full_presentation_score: float = 55.0
    floor_any_presentation_severity: float = 45.0
    floor_any_presentation_score: float = 45.0
    floor_tau_ms: float = 70.0
    floor_tau_severity: float = 45.0
    floor_tau_score: float = 50.0

    score_min: float = 3.0
    score_max: float = 97.0
    confidence_margin: float = 4.0

    # Category upper bounds: unlikely, possible, likely, compensated
    category_bands: Tuple[float, ...] = (30.0, 50.0, 70.0, 85.0)

    @model_validator(mode="after")
    def validate_synthesis(self) -> Self:
        _check_weights("likelihood", self.weights)
        _check_ascending("category_bands", self.category_bands)
        if self.score_min >= self.score_max:
            raise ValueError("score_min must be below score_max")
        if self.severe_lag_rt_ms <= self.slow_device_rt_ms:
            raise ValueError("severe_lag_rt_ms must exceed slow_device_rt_ms")
        return self


# =============================================================================
# NARRATIVE
# =============================================================================


class NarrativeThresholds(_Section):
    """Strength/weakness gates, coherence check and recommendation triggers."""

    strength_score: float = 70.0
    weakness_score: float = 55.0
    consistency_weakness: float = 55.0

    # Coherence between self-report severity and the consistency index
    coherent_high_severity: float = 45.0
    coherent_stable_consistency: float = 65.0
    coherent_low_severity: float = 25.0
    coherent_unstable_consistency: float = 50.0

    evaluation_score: float = 50.0
    treatment_score: float = 70.0
    borderline_low: float = 50.0
    borderline_high: float = 70.0
    borderline_consistency: float = 60.0
    dissociation_cognitive_cost: float = 50.0
    dissociation_consistency: float = 60.0
    max_recommendations: int = 8

    @model_validator(mode="after")
    def validate_gates(self) -> Self:
        if self.weakness_score > self.strength_score:
            raise ValueError("weakness_score must not exceed strength_score")
        return self


# =============================================================================
# AGGREGATE
# =============================================================================


class ScoringThresholds(_Section):
    """All tunable cutoffs for one pipeline run."""

    extraction: ExtractionThresholds = Field(default_factory=ExtractionThresholds)
    decomposition: DecompositionThresholds = Field(default_factory=DecompositionThresholds)
    drift: DriftThresholds = Field(default_factory=DriftThresholds)
    detectors: DetectorThresholds = Field(default_factory=DetectorThresholds)
    consistency: ConsistencyThresholds = Field(default_factory=ConsistencyThresholds)
    cognitive_cost: CognitiveCostThresholds = Field(default_factory=CognitiveCostThresholds)
    domains: DomainThresholds = Field(default_factory=DomainThresholds)
    hidden_markers: HiddenMarkerThresholds = Field(default_factory=HiddenMarkerThresholds)
    self_report: SelfReportThresholds = Field(default_factory=SelfReportThresholds)
    likelihood: LikelihoodThresholds = Field(default_factory=LikelihoodThresholds)
    narrative: NarrativeThresholds = Field(default_factory=NarrativeThresholds)


DEFAULT_THRESHOLDS = ScoringThresholds()


def load_scoring_thresholds(path: Optional[str]) -> ScoringThresholds:
    """
    Load threshold overrides from a JSON file.

    Args:
        path: Path to a JSON document with section overrides, or None/empty
            for the defaults.

    Returns:
        A validated ScoringThresholds instance.

    Raises:
        FileNotFoundError: If path is set but does not exist.
        ValueError: If the document is not valid JSON or fails validation.
    """
    if not path:
        return DEFAULT_THRESHOLDS

    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Scoring thresholds file not found: {path}")

    try:
        overrides = json.loads(file_path.read_text(encoding="utf-8"))
        thresholds = ScoringThresholds.model_validate(overrides)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid scoring thresholds in {path}: {e}") from e

    logger.info(
        f"Loaded scoring threshold overrides from {path} "
        f"(sections: {', '.join(sorted(overrides)) or 'none'})"
    )
    return thresholds


@lru_cache(maxsize=1)
def get_scoring_thresholds() -> ScoringThresholds:
    """Return the thresholds configured for this process (cached)."""
    from adhd_screen.core.config import settings

    return load_scoring_thresholds(settings.SCORING_THRESHOLDS_PATH)
