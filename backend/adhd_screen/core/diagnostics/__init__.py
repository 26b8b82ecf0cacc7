r"""
ADHD screening pipeline.

Turns the telemetry of one screening session (five timed cognitive tasks and a
self-report questionnaire) into a bounded likelihood score with supporting
sub-metrics and a templated narrative:

- Telemetry adapter: producer payloads -> canonical TaskTelemetry
- Metric extraction: filtered per-task statistics, drift and decomposition
- Composite indices: consistency index, cognitive-cost index, domain scores
- Hidden markers: jitter, fatigue slope, bursts, inverse efficiency
- Anti-gaming detectors: practice effect, hyperfocus, compensated, masking
- Self-report integration: presentation, impairment, severity
- Likelihood synthesis: ordered corrections, evidence and floors
- Narrative: strengths, weaknesses, recommendations, clinical note

This is a screening aid, not a diagnostic instrument.

Usage Example
-------------
Generate a report from raw producer payloads:

    from adhd_screen.core.diagnostics import generate_diagnostic_report

    report = generate_diagnostic_report(
        {
            "cpt": {"results": {"reactionTimesMs": [412, 398, 455, ...], "accuracy": 0.96}},
            "goNoGo": {"results": {"reactionTimes": [...], "commissionErrors": 3}},
        },
        {"results": {"inattentionCount": 7, "hyperactivityCount": 4,
                     "totalScore": 48, "maxScore": 72, "impairmentScore": 2}},
    )

    print(report.diagnosis["category"], report.diagnosis["score"])
    for step in report.summary_scores["likelihood"].trace:
        print(step.step, step.rule, step.before, "->", step.after)

    payload = report.to_dict()  # JSON-ready mapping

Tune thresholds without touching the scoring code:

    from adhd_screen.core.diagnostics import ScoringThresholds

    strict = ScoringThresholds.model_validate(
        {"likelihood": {"confidence_margin": 6.0}}
    )
    report = generate_diagnostic_report(telemetry, questionnaire, thresholds=strict)
"""

from ._types import (
    RT_TASKS,
    AppliedRule,
    CompositeScore,
    DiagnosticReport,
    Evidence,
    HiddenMarkerSummary,
    LikelihoodResult,
    Narrative,
    PerTaskMetrics,
    Presentation,
    QuestionnaireResult,
    SelfReportMetrics,
    SessionTelemetry,
    TaskName,
    TaskTelemetry,
)
from .adapter import build_session_telemetry, normalize_questionnaire, normalize_task_telemetry
from .composite_indices import (
    calculate_cognitive_cost_index,
    calculate_consistency_index,
    calculate_domain_scores,
)
from .detectors import active_flag_labels, run_detectors
from .extraction import extract_session_metrics, extract_task_metrics, filter_reaction_times
from .hidden_markers import analyze_hidden_markers
from .likelihood import combine_evidence, synthesize_likelihood
from .narrative import generate_narrative
from .pipeline import ALGORITHM_VERSION, generate_diagnostic_report
from .self_report import integrate_self_report
from .thresholds import (
    DEFAULT_THRESHOLDS,
    ScoringThresholds,
    get_scoring_thresholds,
    load_scoring_thresholds,
)

__all__ = [
    # Types
    "RT_TASKS",
    "AppliedRule",
    "CompositeScore",
    "DiagnosticReport",
    "Evidence",
    "HiddenMarkerSummary",
    "LikelihoodResult",
    "Narrative",
    "PerTaskMetrics",
    "Presentation",
    "QuestionnaireResult",
    "SelfReportMetrics",
    "SessionTelemetry",
    "TaskName",
    "TaskTelemetry",
    # Thresholds
    "DEFAULT_THRESHOLDS",
    "ScoringThresholds",
    "get_scoring_thresholds",
    "load_scoring_thresholds",
    # Stages
    "build_session_telemetry",
    "normalize_task_telemetry",
    "normalize_questionnaire",
    "filter_reaction_times",
    "extract_task_metrics",
    "extract_session_metrics",
    "calculate_consistency_index",
    "calculate_cognitive_cost_index",
    "calculate_domain_scores",
    "analyze_hidden_markers",
    "run_detectors",
    "active_flag_labels",
    "integrate_self_report",
    "combine_evidence",
    "synthesize_likelihood",
    "generate_narrative",
    # Entry point
    "ALGORITHM_VERSION",
    "generate_diagnostic_report",
]
