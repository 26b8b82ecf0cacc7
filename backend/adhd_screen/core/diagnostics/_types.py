"""
Data types shared across the screening pipeline stages.

Canonical inputs (TaskTelemetry, QuestionnaireResult) are produced by the
telemetry adapter; every other type is a stage result. All of them are plain
dataclasses created fresh for a single pipeline run.
"""

from dataclasses import asdict, dataclass, field, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class TaskName(str, Enum):
    """Cognitive tasks in the screening battery."""

    CPT = "cpt"
    GO_NO_GO = "go_no_go"
    N_BACK = "n_back"
    FLANKER = "flanker"
    TRAIL = "trail"


# Tasks whose sequences are trial-by-trial reaction times. Trail sequences are
# segment times between targets and are kept out of the variability indices.
RT_TASKS: Tuple[TaskName, ...] = (
    TaskName.CPT,
    TaskName.GO_NO_GO,
    TaskName.N_BACK,
    TaskName.FLANKER,
)


class Presentation(str, Enum):
    """Self-report symptom presentation."""

    COMBINED = "Combined"
    INATTENTIVE = "Predominantly Inattentive"
    HYPERACTIVE_IMPULSIVE = "Predominantly Hyperactive-Impulsive"
    OTHER_SPECIFIED = "Other Specified"
    DOES_NOT_MEET = "Does Not Meet Criteria"


FULL_PRESENTATIONS = (
    Presentation.COMBINED,
    Presentation.INATTENTIVE,
    Presentation.HYPERACTIVE_IMPULSIVE,
)


# =============================================================================
# CANONICAL INPUT
# =============================================================================


@dataclass(frozen=True)
class TaskTelemetry:
    """
    Normalized telemetry for one completed task.

    Only reaction_times is common to every task; the remaining fields are
    populated when the producing task reports them. Accuracy values are
    percentages on a 0-100 scale.
    """

    reaction_times: Tuple[float, ...] = ()
    accuracy: Optional[float] = None
    total_trials: Optional[int] = None
    hits: Optional[int] = None
    omission_errors: int = 0
    commission_errors: int = 0
    correct_rejections: Optional[int] = None
    # Go/no-go
    go_accuracy: Optional[float] = None
    nogo_accuracy: Optional[float] = None
    # N-back
    n_back_level: Optional[int] = None
    # Flanker
    congruent_rt: Optional[float] = None
    incongruent_rt: Optional[float] = None
    congruent_accuracy: Optional[float] = None
    incongruent_accuracy: Optional[float] = None
    # Trail making
    errors: Optional[int] = None
    completion_time_ms: Optional[float] = None
    time_per_item_ms: Optional[float] = None
    trail_a_time_ms: Optional[float] = None
    trail_b_time_ms: Optional[float] = None


@dataclass(frozen=True)
class QuestionnaireResult:
    """Normalized self-report questionnaire outcome."""

    inattention_count: Optional[int] = None
    hyperactivity_count: Optional[int] = None
    total_score: Optional[float] = None
    max_score: Optional[float] = None
    impairment_score: Optional[float] = None
    inattention_items: Optional[Tuple[int, ...]] = None
    hyperactivity_items: Optional[Tuple[int, ...]] = None


@dataclass(frozen=True)
class SessionTelemetry:
    """Everything collected in one screening session."""

    tasks: Dict[TaskName, Optional[TaskTelemetry]]
    questionnaire: Optional[QuestionnaireResult] = None


# =============================================================================
# TEMPORAL PATTERNS
# =============================================================================


@dataclass
class DistributionDecomposition:
    """Three-zone decomposition of a reaction-time distribution."""

    mu: float
    sigma: float
    tau: float
    tau_pct: float
    tau_band: str
    p10: float
    p75: float
    p90: float
    fast_outlier_count: int
    slow_tail_count: int
    bimodality_corrected: bool
    spread_corrected: bool


@dataclass
class MicroDriftEvent:
    """Jump between two adjacent non-overlapping windows."""

    window_size: int
    trial_index: int
    delta_ms: float


@dataclass
class DriftProfile:
    """How reaction time evolves across the task."""

    delta_ms: float
    magnitude_ms: float
    direction: str
    quarter_means: List[float]
    vigilance_curve: str
    micro_drift_events: List[MicroDriftEvent]
    fatigue_bursts: int


@dataclass
class HalfSplitProfile:
    """First-half versus second-half comparison."""

    first_mean: float
    second_mean: float
    first_sd: float
    second_sd: float
    speedup_pct: float
    sd_tightening_pct: float


# =============================================================================
# STAGE RESULTS
# =============================================================================


@dataclass
class PerTaskMetrics:
    """
    Uniform per-task metric record.

    When available is False every statistic is zero/None and reason says why;
    downstream stages must skip the task.
    """

    task: TaskName
    available: bool
    reason: Optional[str] = None
    sample_count: int = 0
    excluded_count: int = 0
    accuracy: Optional[float] = None
    mean_rt: float = 0.0
    median_rt: float = 0.0
    sd_rt: float = 0.0
    cv_pct: float = 0.0
    decomposition: Optional[DistributionDecomposition] = None
    drift: Optional[DriftProfile] = None
    half_split: Optional[HalfSplitProfile] = None
    error_count: int = 0
    error_rate: float = 0.0
    error_cluster_index: float = 0.0
    omission_errors: int = 0
    commission_errors: int = 0
    fatigue_detected: bool = False
    reaction_times: Tuple[float, ...] = ()
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def tau(self) -> float:
        return self.decomposition.tau if self.decomposition else 0.0

    @property
    def drift_magnitude(self) -> float:
        return self.drift.magnitude_ms if self.drift else 0.0


@dataclass
class Evidence:
    """
    Typed outcome of a detector or hidden-marker check.

    Every anti-gaming detector and every hidden-marker sub-metric produces one
    of these. The likelihood synthesizer folds a list of them into a single
    adjustment keyed by name.
    """

    name: str
    detected: bool
    confidence: float = 0.0
    evidence: Optional[str] = None
    explanation: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CompositeScore:
    """Bounded 0-100 score with an availability flag."""

    value: Optional[int]
    available: bool
    interpretation: str
    components: Dict[str, float] = field(default_factory=dict)
    raw_values: Dict[str, Any] = field(default_factory=dict)


@dataclass
class JitterIndex:
    value: float
    band: str
    pair_count: int


@dataclass
class FatigueSlope:
    slope: float
    classification: str
    r_squared: float
    significant: bool
    pct_change: float


@dataclass
class BurstAnalysis:
    burst_count: int
    severe_burst_count: int
    rate_pct: float
    band: str
    burst_trials: List[int]


@dataclass
class EfficiencyScore:
    """Inverse efficiency: mean RT divided by proportion correct."""

    value: Optional[float]
    rating: str


@dataclass
class TaskHiddenMarkers:
    task: TaskName
    jitter: JitterIndex
    fatigue: FatigueSlope
    bursts: BurstAnalysis
    efficiency: EfficiencyScore


@dataclass
class HiddenMarkerSummary:
    """Session-level hidden-marker result."""

    available: bool
    tasks: List[TaskHiddenMarkers]
    avg_jitter: float
    jitter_band: str
    avg_slope: float
    slope_classification: str
    avg_burst_rate_pct: float
    burst_band: str
    hidden_adhd_score: int
    evidence: List[Evidence]
    summary: str


@dataclass
class SelfReportMetrics:
    """Self-report questionnaire interpretation."""

    available: bool
    inattention_count: int = 0
    hyperactivity_count: int = 0
    symptom_threshold: int = 6
    presentation: Presentation = Presentation.DOES_NOT_MEET
    impairment_present: bool = False
    impairment_score: float = 0.0
    total_score: float = 0.0
    max_score: float = 0.0
    severity: Optional[float] = None
    severity_band: str = "unavailable"
    interpretation: str = ""


@dataclass
class AppliedRule:
    """One step recorded in the likelihood trace."""

    step: str
    rule: str
    before: float
    after: float
    detail: str = ""


@dataclass
class LikelihoodResult:
    """Final likelihood score with its full derivation trace."""

    score: int
    lower_bound: int
    upper_bound: int
    category: str
    confidence_label: str
    contributions: Dict[str, float]
    base_score: float
    trace: List[AppliedRule]


@dataclass
class Narrative:
    main_text: str
    coherence: str
    strengths: List[str]
    weaknesses: List[str]
    recommendations: List[str]
    clinical_note: str
    # Everyday consequences of elevated hidden markers
    life_impact: List[str] = field(default_factory=list)


@dataclass
class DiagnosticReport:
    """
    Complete screening report.

    This is the only contract with rendering and persistence layers, which
    read it through to_dict().
    """

    diagnosis: Dict[str, Any]
    summary_scores: Dict[str, Any]
    domain_scores: Dict[str, CompositeScore]
    hidden_markers: HiddenMarkerSummary
    flags: Dict[str, Any]
    self_report: SelfReportMetrics
    narrative: Narrative
    raw_metrics: Dict[str, PerTaskMetrics]
    disclaimer: Dict[str, Any]
    metadata: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return to_serializable(self)


def to_serializable(value: Any) -> Any:
    """Convert nested dataclasses, enums and tuples into JSON-ready values."""
    if is_dataclass(value) and not isinstance(value, type):
        return to_serializable(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {to_serializable(k): to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_serializable(v) for v in value]
    return value
