"""
Pytest configuration and shared fixtures for testing.

Telemetry is generated from seeded numpy generators so every test sees the
same sequences on every run.
"""
import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pytest
from fastapi.testclient import TestClient

from adhd_screen.core.diagnostics._types import (
    DistributionDecomposition,
    DriftProfile,
    HalfSplitProfile,
    PerTaskMetrics,
    TaskName,
)
from adhd_screen.core.diagnostics.thresholds import get_scoring_thresholds
from adhd_screen.main import app


# =============================================================================
# RAW TELEMETRY
# =============================================================================


def make_reaction_times(
    n: int = 60,
    mean: float = 450.0,
    sd: float = 40.0,
    seed: int = 7,
) -> List[float]:
    """Normally distributed reaction times, clipped to a plausible range."""
    rng = np.random.default_rng(seed)
    values = np.clip(rng.normal(mean, sd, size=n), 150.0, 4000.0)
    return [round(float(v), 1) for v in values]


def make_task_payloads(mean: float = 450.0, sd: float = 40.0, seed: int = 7) -> Dict[str, Any]:
    """Raw ``taskTelemetry`` for all five tasks, using producer spellings."""
    return {
        "cpt": {
            "results": {
                "reactionTimes": make_reaction_times(60, mean, sd, seed),
                "accuracy": 0.95,
                "totalTrials": 60,
                "hits": 45,
                "omissionErrors": 2,
                "commissionErrors": 1,
                "correctRejections": 12,
            }
        },
        "goNoGo": {
            "results": {
                "reactionTimesMs": make_reaction_times(50, mean - 40, sd, seed + 1),
                "goAccuracy": 0.96,
                "nogoAccuracy": 0.9,
                "commissionErrors": 2,
                "totalTrials": 50,
            }
        },
        "nBack": {
            "results": {
                "reactionTimes": make_reaction_times(40, mean + 150, sd * 1.5, seed + 2),
                "accuracy": 88,
                "nBackLevel": 2,
                "hits": 14,
                "misses": 2,
                "falseAlarms": 3,
                "correctRejections": 21,
                "totalTrials": 40,
            }
        },
        "flanker": {
            "results": {
                "reactionTimes": make_reaction_times(48, mean + 20, sd, seed + 3),
                "accuracy": 95,
                "congruentAvgRT": mean,
                "incongruentAvgRT": mean + 65,
                "congruentAccuracy": 98,
                "incongruentAccuracy": 92,
                "totalTrials": 48,
            }
        },
        "trailMaking": {
            "results": {
                "reactionTimes": make_reaction_times(24, 1200.0, 150.0, seed + 4),
                "errors": 1,
                "completionTimeSeconds": 29.5,
                "trailATime": 30000,
                "trailBTime": 65000,
            }
        },
    }


@pytest.fixture
def task_payloads() -> Dict[str, Any]:
    return make_task_payloads()


@pytest.fixture
def telemetry_factory():
    """Factory for raw task payloads with custom distribution parameters."""
    return make_task_payloads


@pytest.fixture
def rt_factory():
    return make_reaction_times


@pytest.fixture
def high_symptom_questionnaire() -> Dict[str, Any]:
    """Combined presentation with impairment; severity 91.1."""
    return {
        "results": {
            "inattentionCount": 8,
            "hyperactivityCount": 7,
            "totalScore": 64,
            "maxScore": 72,
            "impairmentScore": 3,
        }
    }


@pytest.fixture
def low_symptom_questionnaire() -> Dict[str, Any]:
    """Few symptoms, no impairment; severity 11.1."""
    return {
        "results": {
            "inattentionCount": 1,
            "hyperactivityCount": 0,
            "totalScore": 10,
            "maxScore": 72,
            "impairmentScore": 0,
        }
    }


# =============================================================================
# STAGE RESULTS
# =============================================================================


def make_metrics(
    task: TaskName = TaskName.CPT,
    *,
    available: bool = True,
    accuracy: Optional[float] = 95.0,
    mean_rt: float = 450.0,
    sd_rt: float = 60.0,
    cv_pct: Optional[float] = None,
    tau: float = 20.0,
    drift_delta: float = 0.0,
    fatigue_bursts: int = 0,
    speedup_pct: float = 0.0,
    sd_tightening_pct: float = 0.0,
    error_cluster_index: float = 0.0,
    commission_errors: int = 0,
    reaction_times: Optional[List[float]] = None,
    extras: Optional[Dict[str, Any]] = None,
) -> PerTaskMetrics:
    """Build a PerTaskMetrics record directly, bypassing extraction."""
    if not available:
        return PerTaskMetrics(task=task, available=False, reason="No telemetry recorded")

    if drift_delta > 20:
        direction = "increasing"
    elif drift_delta < -20:
        direction = "decreasing"
    else:
        direction = "stable"

    return PerTaskMetrics(
        task=task,
        available=True,
        sample_count=len(reaction_times) if reaction_times else 40,
        accuracy=accuracy,
        mean_rt=mean_rt,
        median_rt=mean_rt,
        sd_rt=sd_rt,
        cv_pct=cv_pct if cv_pct is not None else sd_rt / mean_rt * 100,
        decomposition=DistributionDecomposition(
            mu=mean_rt,
            sigma=sd_rt,
            tau=tau,
            tau_pct=tau / mean_rt * 100,
            tau_band="normal",
            p10=mean_rt - sd_rt,
            p75=mean_rt + sd_rt,
            p90=mean_rt + 2 * sd_rt,
            fast_outlier_count=0,
            slow_tail_count=0,
            bimodality_corrected=False,
            spread_corrected=False,
        ),
        drift=DriftProfile(
            delta_ms=drift_delta,
            magnitude_ms=abs(drift_delta),
            direction=direction,
            quarter_means=[],
            vigilance_curve="stable",
            micro_drift_events=[],
            fatigue_bursts=fatigue_bursts,
        ),
        half_split=HalfSplitProfile(
            first_mean=mean_rt,
            second_mean=mean_rt * (1 - speedup_pct / 100),
            first_sd=sd_rt,
            second_sd=sd_rt * (1 - sd_tightening_pct / 100),
            speedup_pct=speedup_pct,
            sd_tightening_pct=sd_tightening_pct,
        ),
        error_cluster_index=error_cluster_index,
        commission_errors=commission_errors,
        reaction_times=tuple(reaction_times or ()),
        extras=extras or {},
    )


@pytest.fixture
def metrics_factory():
    """Factory for PerTaskMetrics records."""
    return make_metrics


# =============================================================================
# APPLICATION
# =============================================================================


@pytest.fixture(autouse=True)
def reset_threshold_cache():
    """Thresholds are cached per process; clear around every test."""
    get_scoring_thresholds.cache_clear()
    yield
    get_scoring_thresholds.cache_clear()


@pytest.fixture
def app_logs(caplog, monkeypatch):
    """caplog that also sees the application logger (which does not propagate)."""
    monkeypatch.setattr(logging.getLogger("adhd_screen"), "propagate", True)
    caplog.set_level(logging.DEBUG, logger="adhd_screen")
    return caplog


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)
