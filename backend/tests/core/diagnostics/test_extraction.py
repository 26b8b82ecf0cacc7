"""
Tests for per-task metric extraction.
"""
from dataclasses import replace

import numpy as np
import pytest

from adhd_screen.core.diagnostics._types import SessionTelemetry, TaskName, TaskTelemetry
from adhd_screen.core.diagnostics.extraction import (
    available_metrics,
    extract_session_metrics,
    extract_task_metrics,
    filter_reaction_times,
    signal_detection_sensitivity,
)
from adhd_screen.core.diagnostics.thresholds import DEFAULT_THRESHOLDS

EXTRACTION = DEFAULT_THRESHOLDS.extraction


class TestFilterReactionTimes:
    def test_keeps_plausible_range_in_order(self):
        result = filter_reaction_times([0, -5, 100, 5000, 4999, 250], EXTRACTION)

        assert result == (100.0, 4999.0, 250.0)

    def test_empty(self):
        assert filter_reaction_times([], EXTRACTION) == ()


class TestSignalDetectionSensitivity:
    def test_d_prime(self):
        # hit rate 0.90, false-alarm rate 0.04
        d_prime = signal_detection_sensitivity(45, 5, 2, 48, EXTRACTION)

        assert d_prime == pytest.approx(3.032, abs=0.01)

    def test_perfect_rates_are_clamped(self):
        d_prime = signal_detection_sensitivity(50, 0, 0, 50, EXTRACTION)

        assert d_prime == pytest.approx(4.653, abs=0.01)

    def test_missing_cells(self):
        assert signal_detection_sensitivity(None, 5, 2, 48, EXTRACTION) is None
        assert signal_detection_sensitivity(45, 5, 2, None, EXTRACTION) is None
        assert signal_detection_sensitivity(0, 0, 2, 48, EXTRACTION) is None


class TestExtractTaskMetrics:
    """Tests for extract_task_metrics()."""

    def test_missing_telemetry_is_unavailable(self):
        metrics = extract_task_metrics(TaskName.CPT, None)

        assert not metrics.available
        assert metrics.reason == "No telemetry recorded"
        assert metrics.mean_rt == 0.0

    def test_fewer_than_ten_valid_samples_is_unavailable(self):
        """Nine valid values plus out-of-range ones are still too few."""
        telemetry = TaskTelemetry(reaction_times=(400.0,) * 9 + (0.0, 6000.0, -3.0))

        metrics = extract_task_metrics(TaskName.CPT, telemetry)

        assert not metrics.available
        assert metrics.sample_count == 9
        assert metrics.excluded_count == 3
        assert "Insufficient data" in metrics.reason
        assert metrics.decomposition is None

    def test_exactly_ten_samples_is_available(self, rt_factory):
        telemetry = TaskTelemetry(reaction_times=tuple(rt_factory(n=10)))

        metrics = extract_task_metrics(TaskName.CPT, telemetry)

        assert metrics.available
        assert metrics.sample_count == 10

    def test_basic_statistics(self, rt_factory):
        rts = rt_factory(n=60, mean=450.0, sd=40.0)
        telemetry = TaskTelemetry(reaction_times=tuple(rts), accuracy=95.0, total_trials=60)

        metrics = extract_task_metrics(TaskName.CPT, telemetry)

        assert metrics.available
        assert metrics.mean_rt == pytest.approx(np.mean(rts), abs=0.01)
        assert metrics.sd_rt == pytest.approx(np.std(rts, ddof=1), abs=0.01)
        assert metrics.cv_pct == pytest.approx(metrics.sd_rt / metrics.mean_rt * 100, abs=0.05)
        assert metrics.decomposition is not None
        assert metrics.drift is not None
        assert metrics.half_split is not None
        assert metrics.accuracy == 95.0

    def test_out_of_range_values_excluded(self, rt_factory):
        rts = rt_factory(n=20) + [0.0, 5000.0, 12000.0]

        metrics = extract_task_metrics(TaskName.CPT, TaskTelemetry(reaction_times=tuple(rts)))

        assert metrics.sample_count == 20
        assert metrics.excluded_count == 3
        assert max(metrics.reaction_times) < 5000.0

    def test_accuracy_derived_from_errors(self, rt_factory):
        telemetry = TaskTelemetry(
            reaction_times=tuple(rt_factory(n=40)),
            total_trials=50,
            omission_errors=3,
            commission_errors=2,
        )

        metrics = extract_task_metrics(TaskName.GO_NO_GO, telemetry)

        assert metrics.error_count == 5
        assert metrics.error_rate == 0.1
        assert metrics.accuracy == 90.0

    def test_errors_derived_from_accuracy(self, rt_factory):
        """Producers that only report accuracy still get an error count."""
        telemetry = TaskTelemetry(
            reaction_times=tuple(rt_factory(n=40)), accuracy=90.0, total_trials=40
        )

        metrics = extract_task_metrics(TaskName.FLANKER, telemetry)

        assert metrics.error_count == 4

    def test_accuracy_fallback_is_flanker_only(self, rt_factory):
        """Zero reported errors on other tasks are taken at face value."""
        telemetry = TaskTelemetry(
            reaction_times=tuple(rt_factory(n=40)), accuracy=90.0, total_trials=60
        )

        metrics = extract_task_metrics(TaskName.CPT, telemetry)

        assert metrics.error_count == 0
        assert metrics.error_rate == 0.0
        assert metrics.accuracy == 90.0

    def test_extraction_is_idempotent(self, rt_factory):
        """Re-extracting from the filtered reaction times changes nothing else."""
        telemetry = TaskTelemetry(
            reaction_times=tuple(rt_factory(n=40)) + (0.0, -5.0, 6000.0),
            accuracy=92.0,
            total_trials=45,
            omission_errors=2,
            commission_errors=1,
        )
        first = extract_task_metrics(TaskName.GO_NO_GO, telemetry)

        second = extract_task_metrics(
            TaskName.GO_NO_GO, replace(telemetry, reaction_times=first.reaction_times)
        )

        assert first.excluded_count == 3
        assert second.excluded_count == 0
        assert second == replace(first, excluded_count=0)


    def test_error_cluster_index_capped(self, rt_factory):
        telemetry = TaskTelemetry(
            reaction_times=tuple(rt_factory(n=20)), total_trials=20, omission_errors=20
        )

        metrics = extract_task_metrics(TaskName.CPT, telemetry)

        assert metrics.error_cluster_index == EXTRACTION.error_cluster_cap

    def test_fatigue_detected_on_slowing(self):
        telemetry = TaskTelemetry(reaction_times=tuple(np.linspace(400.0, 600.0, 40)))

        metrics = extract_task_metrics(TaskName.CPT, telemetry)

        assert metrics.fatigue_detected

    def test_no_fatigue_when_flat(self):
        telemetry = TaskTelemetry(reaction_times=(450.0,) * 40)

        metrics = extract_task_metrics(TaskName.CPT, telemetry)

        assert not metrics.fatigue_detected


class TestTaskExtras:
    """Tests for task-specific extras."""

    def test_cpt_d_prime(self, rt_factory):
        telemetry = TaskTelemetry(
            reaction_times=tuple(rt_factory(n=40)),
            hits=45,
            omission_errors=5,
            commission_errors=2,
            correct_rejections=48,
        )

        extras = extract_task_metrics(TaskName.CPT, telemetry).extras

        assert extras["hits"] == 45
        assert extras["d_prime"] == pytest.approx(3.032, abs=0.01)

    def test_n_back_default_level(self, rt_factory):
        telemetry = TaskTelemetry(reaction_times=tuple(rt_factory(n=30)))

        extras = extract_task_metrics(TaskName.N_BACK, telemetry).extras

        assert extras["n_back_level"] == 2

    def test_go_no_go_accuracies(self, rt_factory):
        telemetry = TaskTelemetry(
            reaction_times=tuple(rt_factory(n=30)), go_accuracy=96.0, nogo_accuracy=85.0
        )

        extras = extract_task_metrics(TaskName.GO_NO_GO, telemetry).extras

        assert extras == {"go_accuracy": 96.0, "nogo_accuracy": 85.0}

    def test_flanker_effect(self, rt_factory):
        telemetry = TaskTelemetry(
            reaction_times=tuple(rt_factory(n=30)),
            congruent_rt=450.0,
            incongruent_rt=515.0,
        )

        extras = extract_task_metrics(TaskName.FLANKER, telemetry).extras

        assert extras["flanker_effect"] == 65.0
        assert extras["conflict_cost"] == 65.0

    def test_negative_flanker_effect_cost_is_absolute(self, rt_factory):
        telemetry = TaskTelemetry(
            reaction_times=tuple(rt_factory(n=30)),
            congruent_rt=500.0,
            incongruent_rt=480.0,
        )

        extras = extract_task_metrics(TaskName.FLANKER, telemetry).extras

        assert extras["flanker_effect"] == -20.0
        assert extras["conflict_cost"] == 20.0

    def test_trail_switching_ratio(self, rt_factory):
        segments = rt_factory(n=24, mean=1200.0, sd=150.0)
        telemetry = TaskTelemetry(
            reaction_times=tuple(segments),
            errors=1,
            trail_a_time_ms=30000.0,
            trail_b_time_ms=65000.0,
        )

        extras = extract_task_metrics(TaskName.TRAIL, telemetry).extras

        assert extras["switching_ratio"] == 2.17
        assert extras["switching_rating"] == "elevated"
        assert extras["errors"] == 1
        # Falls back to the mean segment time
        assert extras["time_per_item_ms"] == pytest.approx(np.mean(segments), abs=0.01)

    def test_trail_error_count_uses_reported_errors(self, rt_factory):
        telemetry = TaskTelemetry(reaction_times=tuple(rt_factory(n=24)), errors=3)

        metrics = extract_task_metrics(TaskName.TRAIL, telemetry)

        assert metrics.error_count == 3


class TestSessionMetrics:
    def test_every_task_present_in_battery_order(self, rt_factory):
        session = SessionTelemetry(
            tasks={TaskName.CPT: TaskTelemetry(reaction_times=tuple(rt_factory(n=30)))}
        )

        metrics = extract_session_metrics(session)

        assert list(metrics) == list(TaskName)
        assert metrics[TaskName.CPT].available
        assert not metrics[TaskName.TRAIL].available

    def test_available_metrics_filters(self, rt_factory):
        session = SessionTelemetry(
            tasks={
                TaskName.CPT: TaskTelemetry(reaction_times=tuple(rt_factory(n=30))),
                TaskName.TRAIL: TaskTelemetry(reaction_times=tuple(rt_factory(n=30))),
            }
        )
        metrics = extract_session_metrics(session)

        assert [m.task for m in available_metrics(metrics)] == [TaskName.CPT, TaskName.TRAIL]
        assert [m.task for m in available_metrics(metrics, [TaskName.CPT])] == [TaskName.CPT]
