"""
Tests for the screening report endpoints.
"""
from fastapi import FastAPI
from fastapi.testclient import TestClient

from adhd_screen.core.error_responses import ErrorMessages
from adhd_screen.middleware import RequestSizeLimitMiddleware

REPORT_URL = "/v1/screening/report"
THRESHOLDS_URL = "/v1/screening/thresholds"


class TestCreateScreeningReport:
    """Tests for POST /v1/screening/report."""

    def test_full_session(self, client, task_payloads, high_symptom_questionnaire):
        """Test that a complete session returns a full report."""
        response = client.post(
            REPORT_URL,
            json={
                "taskTelemetry": task_payloads,
                "questionnaireResult": high_symptom_questionnaire,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["diagnosis"]["score"] >= 65
        assert data["metadata"]["tasks_completed_count"] == 5
        assert data["metadata"]["self_report_completed"] is True
        assert data["summary_scores"]["likelihood"]["trace"][-1]["step"] == "clamp"

    def test_snake_case_keys_accepted(self, client, task_payloads):
        camel = client.post(REPORT_URL, json={"taskTelemetry": task_payloads}).json()
        snake = client.post(REPORT_URL, json={"task_telemetry": task_payloads}).json()

        assert camel["diagnosis"] == snake["diagnosis"]

    def test_empty_body_scores_with_defaults(self, client):
        """An empty session is scored from neutral defaults, not rejected."""
        response = client.post(REPORT_URL, json={})

        assert response.status_code == 200
        data = response.json()
        assert data["metadata"]["tasks_completed"] == []
        assert data["diagnosis"]["category"] == "Possible ADHD"

    def test_malformed_task_is_reported_unavailable(self, client, task_payloads):
        task_payloads["nBack"] = {"results": {"reactionTimes": [400, 410], "hits": -3}}

        response = client.post(REPORT_URL, json={"taskTelemetry": task_payloads})

        assert response.status_code == 200
        assert response.json()["raw_metrics"]["n_back"]["available"] is False

    def test_non_object_body_rejected(self, client):
        response = client.post(REPORT_URL, json=[1, 2, 3])

        assert response.status_code == 422
        assert isinstance(response.json()["detail"], list)

    def test_invalid_questionnaire_type_rejected(self, client):
        response = client.post(REPORT_URL, json={"questionnaireResult": "seven"})

        assert response.status_code == 422
        locs = [error["loc"] for error in response.json()["detail"]]
        assert any("questionnaireResult" in loc for loc in locs)

    def test_request_id_echoed(self, client):
        response = client.post(REPORT_URL, json={}, headers={"X-Request-ID": "session-42"})

        assert response.headers["X-Request-ID"] == "session-42"

    def test_request_id_generated(self, client):
        response = client.post(REPORT_URL, json={})

        assert response.headers["X-Request-ID"]

    def test_report_logged(self, client, app_logs):
        client.post(REPORT_URL, json={})

        assert "Screening report served" in app_logs.text

    def test_invalid_threshold_configuration(self, client, monkeypatch, app_logs):
        """Test that a broken threshold override file surfaces as a 500."""

        def broken_thresholds():
            raise ValueError("Invalid scoring thresholds in overrides.json")

        monkeypatch.setattr(
            "adhd_screen.api.v1.screening.get_scoring_thresholds", broken_thresholds
        )

        response = client.post(REPORT_URL, json={})

        assert response.status_code == 500
        assert response.json() == {"detail": ErrorMessages.SCORING_CONFIGURATION_INVALID}
        assert "Scoring thresholds could not be loaded" in app_logs.text

    def test_generation_failure(self, client, monkeypatch, app_logs):
        """Test that an unexpected scoring error returns a generic message."""

        def failing_report(*args, **kwargs):
            raise RuntimeError("division by zero in stage 3")

        monkeypatch.setattr(
            "adhd_screen.api.v1.screening.generate_diagnostic_report", failing_report
        )

        response = client.post(REPORT_URL, json={})

        assert response.status_code == 500
        assert response.json() == {"detail": ErrorMessages.REPORT_GENERATION_FAILED}
        assert "division by zero" not in response.text
        assert "Screening report generation failed" in app_logs.text


class TestGetThresholds:
    """Tests for GET /v1/screening/thresholds."""

    def test_returns_defaults(self, client):
        response = client.get(THRESHOLDS_URL)

        assert response.status_code == 200
        data = response.json()
        assert data["likelihood"]["score_min"] == 3.0
        assert data["likelihood"]["score_max"] == 97.0
        assert data["likelihood"]["category_bands"] == [30.0, 50.0, 70.0, 85.0]

    def test_override_file(self, client, tmp_path, monkeypatch):
        overrides = tmp_path / "thresholds.json"
        overrides.write_text('{"likelihood": {"confidence_margin": 6.0}}')
        monkeypatch.setattr(
            "adhd_screen.core.config.settings.SCORING_THRESHOLDS_PATH", str(overrides)
        )

        response = client.get(THRESHOLDS_URL)

        assert response.json()["likelihood"]["confidence_margin"] == 6.0

    def test_missing_override_file(self, client, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "adhd_screen.core.config.settings.SCORING_THRESHOLDS_PATH",
            str(tmp_path / "missing.json"),
        )

        response = client.get(THRESHOLDS_URL)

        assert response.status_code == 500
        assert response.json()["detail"] == ErrorMessages.SCORING_CONFIGURATION_INVALID


class TestRequestSizeLimit:
    """Tests for RequestSizeLimitMiddleware."""

    def _client(self, max_body_size: int) -> TestClient:
        app = FastAPI()
        app.add_middleware(RequestSizeLimitMiddleware, max_body_size=max_body_size)

        @app.post("/echo")
        async def echo(payload: dict):
            return payload

        return TestClient(app)

    def test_oversized_body_rejected(self):
        response = self._client(10).post("/echo", json={"taskTelemetry": {"cpt": {}}})

        assert response.status_code == 413
        assert response.json() == {"detail": ErrorMessages.request_body_limit(10)}

    def test_body_within_limit(self):
        response = self._client(1024).post("/echo", json={"a": 1})

        assert response.status_code == 200
        assert response.json() == {"a": 1}
