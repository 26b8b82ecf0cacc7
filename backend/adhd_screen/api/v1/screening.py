"""
Screening report endpoints.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter

from adhd_screen.core.diagnostics import generate_diagnostic_report, get_scoring_thresholds
from adhd_screen.core.diagnostics.thresholds import ScoringThresholds
from adhd_screen.core.error_responses import ErrorMessages, raise_server_error
from adhd_screen.schemas.telemetry import ScreeningRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_thresholds() -> ScoringThresholds:
    try:
        return get_scoring_thresholds()
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Scoring thresholds could not be loaded: {e}")
        raise_server_error(ErrorMessages.SCORING_CONFIGURATION_INVALID)


@router.post("/report")
def create_screening_report(request: ScreeningRequest) -> Dict[str, Any]:
    """
    Score one screening session and return the full report.

    Tasks that are missing, malformed or too short are reported as
    unavailable; the request itself only fails validation when the body is
    not a JSON object with the documented top-level keys.
    """
    thresholds = _load_thresholds()
    try:
        report = generate_diagnostic_report(
            request.task_telemetry,
            request.questionnaire_result,
            thresholds=thresholds,
        )
    except Exception as e:
        logger.exception(f"Screening report generation failed: {e}")
        raise_server_error(ErrorMessages.REPORT_GENERATION_FAILED)

    logger.info(
        "Screening report served",
        extra={
            "tasks_completed": report.metadata["tasks_completed_count"],
            "likelihood_score": report.diagnosis["score"],
        },
    )
    return report.to_dict()


@router.get("/thresholds")
def get_thresholds() -> Dict[str, Any]:
    """Return the scoring thresholds currently in effect."""
    return _load_thresholds().model_dump(mode="json")
