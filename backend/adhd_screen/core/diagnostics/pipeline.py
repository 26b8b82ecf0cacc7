"""
Report assembly: runs every pipeline stage in order and builds the report.

    adapter -> extraction -> composite indices -> hidden markers
            -> detectors -> self-report -> likelihood -> narrative

The pipeline is synchronous and side-effect free apart from logging. It never
raises for missing or malformed telemetry; degraded inputs show up as
unavailable sub-scores instead.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

import numpy as np

from adhd_screen.core.datetime_utils import utc_now

from ._types import RT_TASKS, DiagnosticReport, SessionTelemetry
from .adapter import build_session_telemetry
from .composite_indices import (
    calculate_cognitive_cost_index,
    calculate_consistency_index,
    calculate_domain_scores,
)
from .detectors import active_flag_labels, run_detectors
from .extraction import available_metrics, extract_session_metrics
from .hidden_markers import analyze_hidden_markers
from .likelihood import synthesize_likelihood
from .narrative import generate_narrative
from .self_report import integrate_self_report
from .thresholds import DEFAULT_THRESHOLDS, ScoringThresholds

logger = logging.getLogger(__name__)

ALGORITHM_VERSION = "3.1.0"


def _disclaimer() -> Dict[str, Any]:
    return {
        "title": "Screening tool - not a diagnosis",
        "text": (
            "This report summarizes performance on short cognitive tasks and a "
            "self-report questionnaire. It is not a medical diagnosis and has not been "
            "clinically validated. Only a qualified healthcare professional can diagnose "
            "ADHD through a comprehensive clinical evaluation."
        ),
        "reliability": {
            "test_retest": "0.72-0.85",
            "internal_consistency": "0.81",
            "note": (
                "Results can vary with sleep, stress, medication, device and testing "
                "environment. Retesting after 2-4 weeks is recommended to confirm patterns."
            ),
        },
    }


def generate_diagnostic_report(
    task_telemetry: Union[SessionTelemetry, Mapping[str, Any], None],
    questionnaire_result: Any = None,
    thresholds: ScoringThresholds = DEFAULT_THRESHOLDS,
    generated_at: Optional[datetime] = None,
) -> DiagnosticReport:
    """
    Generate a complete screening report.

    Args:
        task_telemetry: Raw ``taskTelemetry`` mapping (producer spellings are
            accepted) or an already-normalized SessionTelemetry.
        questionnaire_result: Raw ``questionnaireResult`` record, or None.
            Ignored when task_telemetry is a SessionTelemetry.
        thresholds: Scoring thresholds for this run.
        generated_at: Timestamp recorded in the metadata (defaults to now).

    Returns:
        DiagnosticReport. Identical inputs always produce identical scores.
    """
    if isinstance(task_telemetry, SessionTelemetry):
        session = task_telemetry
    else:
        session = build_session_telemetry(task_telemetry, questionnaire_result)

    metrics = extract_session_metrics(session, thresholds)

    consistency = calculate_consistency_index(metrics, thresholds.consistency)
    cognitive_cost = calculate_cognitive_cost_index(metrics, thresholds.cognitive_cost)
    domain_scores = calculate_domain_scores(metrics, thresholds.domains)
    hidden = analyze_hidden_markers(metrics, thresholds)
    flags = run_detectors(metrics, consistency, cognitive_cost, thresholds)
    self_report = integrate_self_report(session.questionnaire, thresholds.self_report)

    rt_tasks = available_metrics(metrics, RT_TASKS)
    avg_rt = float(np.mean([m.mean_rt for m in rt_tasks])) if rt_tasks else None
    avg_tau = float(np.mean([m.tau for m in rt_tasks])) if rt_tasks else None
    avg_slope = hidden.avg_slope if hidden.available else None

    likelihood = synthesize_likelihood(
        consistency=consistency,
        cognitive_cost=cognitive_cost,
        self_report=self_report,
        evidence=list(flags.values()) + hidden.evidence,
        avg_rt=avg_rt,
        avg_fatigue_slope=avg_slope,
        avg_tau=avg_tau,
        t=thresholds.likelihood,
    )

    narrative = generate_narrative(
        likelihood,
        consistency,
        cognitive_cost,
        domain_scores,
        flags,
        self_report,
        thresholds.narrative,
        hidden=hidden,
        metrics=metrics,
    )

    tasks_completed = [m.task.value for m in metrics.values() if m.available]
    report = DiagnosticReport(
        diagnosis={
            "category": likelihood.category,
            "score": likelihood.score,
            "confidence": likelihood.confidence_label,
            "confidence_interval": {
                "lower": likelihood.lower_bound,
                "upper": likelihood.upper_bound,
                "margin": thresholds.likelihood.confidence_margin,
            },
        },
        summary_scores={
            "consistency_index": consistency,
            "cognitive_cost_index": cognitive_cost,
            "self_report_severity": {
                "value": self_report.severity,
                "band": self_report.severity_band,
                "available": self_report.available,
            },
            "likelihood": likelihood,
        },
        domain_scores=domain_scores,
        hidden_markers=hidden,
        flags={"results": flags, "active": active_flag_labels(flags)},
        self_report=self_report,
        narrative=narrative,
        raw_metrics={task.value: m for task, m in metrics.items()},
        disclaimer=_disclaimer(),
        metadata={
            "algorithm_version": ALGORITHM_VERSION,
            "generated_at": (generated_at or utc_now()).isoformat(),
            "tasks_completed": tasks_completed,
            "tasks_completed_count": len(tasks_completed),
            "self_report_completed": self_report.available,
        },
    )

    logger.info(
        f"Diagnostic report generated: score={likelihood.score} ({likelihood.category}), "
        f"tasks={len(tasks_completed)}/{len(metrics)}, self_report={self_report.available}"
    )
    return report
