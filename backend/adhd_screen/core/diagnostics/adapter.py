"""
Boundary adapter from raw producer payloads to canonical telemetry.

This is the only place that knows about producer field spellings. Each task
record is validated on its own; a record that fails validation is logged and
treated as absent so the rest of the session can still be scored.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from adhd_screen.schemas.telemetry import QuestionnaireRecordIn, TaskRecordIn

from ._types import QuestionnaireResult, SessionTelemetry, TaskName, TaskTelemetry

logger = logging.getLogger(__name__)

_MS_PER_SECOND = 1000.0

# Accepted top-level keys for each task
TASK_KEY_ALIASES: Dict[str, TaskName] = {
    "cpt": TaskName.CPT,
    "cptResults": TaskName.CPT,
    "goNoGo": TaskName.GO_NO_GO,
    "go_no_go": TaskName.GO_NO_GO,
    "gonogo": TaskName.GO_NO_GO,
    "goNoGoResults": TaskName.GO_NO_GO,
    "nback": TaskName.N_BACK,
    "nBack": TaskName.N_BACK,
    "n_back": TaskName.N_BACK,
    "nBackResults": TaskName.N_BACK,
    "flanker": TaskName.FLANKER,
    "flankerResults": TaskName.FLANKER,
    "trail": TaskName.TRAIL,
    "trailMaking": TaskName.TRAIL,
    "trail_making": TaskName.TRAIL,
    "trailMakingResults": TaskName.TRAIL,
}


def resolve_task_name(key: str) -> Optional[TaskName]:
    """Map a producer task key to its TaskName, or None if unknown."""
    return TASK_KEY_ALIASES.get(key)


def normalize_task_record(task: TaskName, raw: Any) -> Optional[TaskTelemetry]:
    """
    Validate one raw task record and convert it to TaskTelemetry.

    Args:
        task: Task the record belongs to (used for logging).
        raw: Raw record, ``{"results": {...}}`` or a bare results mapping.

    Returns:
        TaskTelemetry, or None when the record is missing or malformed.
    """
    if raw is None:
        return None
    if isinstance(raw, TaskTelemetry):
        return raw

    try:
        record = TaskRecordIn.model_validate(raw)
    except ValidationError as e:
        logger.warning(
            f"Discarding malformed {task.value} telemetry "
            f"({e.error_count()} validation errors): {e.errors()[0]['msg']}"
        )
        return None

    results = record.results
    completion_time_ms = results.completion_time_ms
    if completion_time_ms is None and results.completion_time_seconds is not None:
        completion_time_ms = results.completion_time_seconds * _MS_PER_SECOND

    return TaskTelemetry(
        reaction_times=tuple(results.reaction_times),
        accuracy=results.accuracy,
        total_trials=results.total_trials,
        hits=results.hits,
        omission_errors=results.omission_errors,
        commission_errors=results.commission_errors,
        correct_rejections=results.correct_rejections,
        go_accuracy=results.go_accuracy,
        nogo_accuracy=results.nogo_accuracy,
        n_back_level=results.n_back_level,
        congruent_rt=results.congruent_rt,
        incongruent_rt=results.incongruent_rt,
        congruent_accuracy=results.congruent_accuracy,
        incongruent_accuracy=results.incongruent_accuracy,
        errors=results.errors,
        completion_time_ms=completion_time_ms,
        time_per_item_ms=results.time_per_item_ms,
        trail_a_time_ms=results.trail_a_time_ms,
        trail_b_time_ms=results.trail_b_time_ms,
    )


def normalize_task_telemetry(
    raw: Optional[Mapping[str, Any]],
) -> Dict[TaskName, Optional[TaskTelemetry]]:
    """
    Normalize the ``taskTelemetry`` mapping.

    Returns:
        Mapping with an entry for every TaskName; tasks that were not supplied
        or failed validation map to None.
    """
    normalized: Dict[TaskName, Optional[TaskTelemetry]] = {task: None for task in TaskName}
    if not raw:
        return normalized

    for key, record in raw.items():
        task = key if isinstance(key, TaskName) else resolve_task_name(str(key))
        if task is None:
            logger.debug(f"Ignoring unknown task key '{key}'")
            continue
        if normalized[task] is not None:
            logger.warning(f"Duplicate telemetry for {task.value} under '{key}', keeping first")
            continue
        normalized[task] = normalize_task_record(task, record)

    return normalized


def normalize_questionnaire(raw: Any) -> Optional[QuestionnaireResult]:
    """Validate and normalize ``questionnaireResult``; None if absent or malformed."""
    if raw is None:
        return None
    if isinstance(raw, QuestionnaireResult):
        return raw

    try:
        record = QuestionnaireRecordIn.model_validate(raw)
    except ValidationError as e:
        logger.warning(
            f"Discarding malformed questionnaire result "
            f"({e.error_count()} validation errors): {e.errors()[0]['msg']}"
        )
        return None

    results = record.results
    return QuestionnaireResult(
        inattention_count=results.inattention_count,
        hyperactivity_count=results.hyperactivity_count,
        total_score=results.total_score,
        max_score=results.max_score,
        impairment_score=results.impairment_score,
        inattention_items=(
            tuple(results.inattention_items)
            if results.inattention_items is not None
            else None
        ),
        hyperactivity_items=(
            tuple(results.hyperactivity_items)
            if results.hyperactivity_items is not None
            else None
        ),
    )


def build_session_telemetry(
    task_telemetry: Optional[Mapping[str, Any]],
    questionnaire_result: Any = None,
) -> SessionTelemetry:
    """Normalize a whole session at the system boundary."""
    return SessionTelemetry(
        tasks=normalize_task_telemetry(task_telemetry),
        questionnaire=normalize_questionnaire(questionnaire_result),
    )
