"""
End-to-end tests for report generation.
"""
import json
from datetime import datetime, timezone

import pytest

from adhd_screen.core.diagnostics import generate_diagnostic_report
from adhd_screen.core.diagnostics.adapter import build_session_telemetry
from adhd_screen.core.diagnostics.narrative import LIFE_IMPACT
from adhd_screen.core.diagnostics.pipeline import ALGORITHM_VERSION
from adhd_screen.core.diagnostics.thresholds import ScoringThresholds

FIXED_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

REPORT_KEYS = {
    "diagnosis",
    "summary_scores",
    "domain_scores",
    "hidden_markers",
    "flags",
    "self_report",
    "narrative",
    "raw_metrics",
    "disclaimer",
    "metadata",
}


class TestReportShape:
    """Tests for the serialized report structure."""

    def test_top_level_keys(self, task_payloads, low_symptom_questionnaire):
        report = generate_diagnostic_report(task_payloads, low_symptom_questionnaire).to_dict()

        assert set(report) == REPORT_KEYS

    def test_json_serializable(self, task_payloads, high_symptom_questionnaire):
        report = generate_diagnostic_report(task_payloads, high_symptom_questionnaire)

        encoded = json.dumps(report.to_dict())

        assert '"algorithm_version": "3.1.0"' in encoded

    def test_metadata(self, task_payloads):
        report = generate_diagnostic_report(task_payloads, generated_at=FIXED_TIME)

        assert report.metadata == {
            "algorithm_version": ALGORITHM_VERSION,
            "generated_at": "2024-03-01T12:00:00+00:00",
            "tasks_completed": ["cpt", "go_no_go", "n_back", "flanker", "trail"],
            "tasks_completed_count": 5,
            "self_report_completed": False,
        }

    def test_raw_metrics_keyed_by_task(self, task_payloads):
        report = generate_diagnostic_report(task_payloads).to_dict()

        assert set(report["raw_metrics"]) == {"cpt", "go_no_go", "n_back", "flanker", "trail"}

    def test_flags_results_and_active(self, task_payloads):
        report = generate_diagnostic_report(task_payloads).to_dict()
        results = report["flags"]["results"]

        assert "practice_effect" in results
        assert all(isinstance(v["detected"], bool) for v in results.values())
        assert isinstance(report["flags"]["active"], list)

    def test_life_impact_in_narrative(self, task_payloads):
        report = generate_diagnostic_report(task_payloads).to_dict()

        assert set(report["narrative"]["life_impact"]) <= set(LIFE_IMPACT.values())

    def test_no_life_impact_without_tasks(self):
        report = generate_diagnostic_report({}).to_dict()

        assert report["narrative"]["life_impact"] == []



class TestScoring:
    """Tests for scoring behavior across the whole pipeline."""

    def test_deterministic(self, task_payloads, high_symptom_questionnaire):
        first = generate_diagnostic_report(
            task_payloads, high_symptom_questionnaire, generated_at=FIXED_TIME
        )
        second = generate_diagnostic_report(
            task_payloads, high_symptom_questionnaire, generated_at=FIXED_TIME
        )

        assert first.to_dict() == second.to_dict()

    @pytest.mark.parametrize("seed", [1, 2, 3])
    @pytest.mark.parametrize("sd", [20.0, 80.0, 200.0])
    def test_bounds(self, telemetry_factory, seed, sd):
        report = generate_diagnostic_report(telemetry_factory(sd=sd, seed=seed))
        diagnosis = report.diagnosis

        assert 3 <= diagnosis["score"] <= 97
        interval = diagnosis["confidence_interval"]
        assert 0 <= interval["lower"] <= diagnosis["score"] <= interval["upper"] <= 100

    def test_empty_session(self):
        """No telemetry falls back to neutral defaults instead of failing."""
        report = generate_diagnostic_report({})

        assert report.diagnosis["score"] == 40
        assert report.diagnosis["category"] == "Possible ADHD"
        assert report.metadata["tasks_completed"] == []
        assert not report.summary_scores["consistency_index"].available
        assert not report.hidden_markers.available

    def test_strong_self_report_sets_floor(self, task_payloads, high_symptom_questionnaire):
        report = generate_diagnostic_report(task_payloads, high_symptom_questionnaire)

        assert report.diagnosis["score"] >= 65
        assert report.self_report.severity == pytest.approx(91.1)
        assert report.summary_scores["self_report_severity"]["band"] == "severe"

    def test_self_report_raises_score(
        self, task_payloads, low_symptom_questionnaire, high_symptom_questionnaire
    ):
        low = generate_diagnostic_report(task_payloads, low_symptom_questionnaire)
        high = generate_diagnostic_report(task_payloads, high_symptom_questionnaire)

        assert high.diagnosis["score"] > low.diagnosis["score"]

    def test_short_task_is_unavailable(self, task_payloads, rt_factory):
        task_payloads["cpt"]["results"]["reactionTimes"] = rt_factory(n=9)

        report = generate_diagnostic_report(task_payloads)
        cpt = report.raw_metrics["cpt"]

        assert not cpt.available
        assert cpt.reason.startswith("Insufficient data: 9 valid reaction times")
        assert "cpt" not in report.metadata["tasks_completed"]

    def test_malformed_task_is_isolated(self, task_payloads):
        task_payloads["flanker"] = {"results": "corrupted"}

        report = generate_diagnostic_report(task_payloads)

        assert not report.raw_metrics["flanker"].available
        assert report.metadata["tasks_completed_count"] == 4
        assert report.summary_scores["consistency_index"].available

    def test_canonical_session_matches_raw_payload(
        self, task_payloads, low_symptom_questionnaire
    ):
        from_raw = generate_diagnostic_report(
            task_payloads, low_symptom_questionnaire, generated_at=FIXED_TIME
        )
        session = build_session_telemetry(task_payloads, low_symptom_questionnaire)

        from_session = generate_diagnostic_report(session, generated_at=FIXED_TIME)

        assert from_session.to_dict() == from_raw.to_dict()

    def test_threshold_override(self, task_payloads):
        thresholds = ScoringThresholds.model_validate(
            {"likelihood": {"confidence_margin": 6.0}}
        )

        report = generate_diagnostic_report(task_payloads, thresholds=thresholds)
        interval = report.diagnosis["confidence_interval"]

        assert interval["margin"] == 6.0
        assert interval["upper"] - report.diagnosis["score"] <= 6

    def test_trace_is_reported(self, task_payloads):
        report = generate_diagnostic_report(task_payloads).to_dict()
        trace = report["summary_scores"]["likelihood"]["trace"]

        assert trace[0]["step"] == "contribution"
        assert trace[-1]["step"] == "clamp"
        assert trace[-1]["after"] == report["diagnosis"]["score"]

    def test_logs_summary(self, task_payloads, app_logs):
        generate_diagnostic_report(task_payloads)

        assert "Diagnostic report generated" in app_logs.text
