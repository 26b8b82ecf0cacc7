"""
Pydantic schemas for incoming screening telemetry.

Task producers are inconsistent about field names (``reactionTimes`` vs
``reactionTimesMs``, ``misses`` vs ``omissionErrors`` and so on). Each field
below lists every accepted spelling through ``AliasChoices`` so the scoring
code only ever sees the canonical name.
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

_PERCENT_SCALE = 100.0


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


def _as_percentage(value: Optional[float]) -> Optional[float]:
    """Accept fractions (0-1) or percentages (0-100); return a clamped percentage."""
    if value is None:
        return None
    if 0 <= value <= 1:
        value *= _PERCENT_SCALE
    return min(_PERCENT_SCALE, max(0.0, value))


class TaskResultsIn(BaseModel):
    """Outcome block of one cognitive task."""

    model_config = ConfigDict(extra="ignore")

    reaction_times: List[float] = Field(
        default_factory=list,
        validation_alias=_alias(
            "reactionTimes", "reactionTimesMs", "rtArray", "reaction_times"
        ),
    )
    accuracy: Optional[float] = Field(
        default=None,
        validation_alias=_alias("accuracy", "overallAccuracy", "overall_accuracy"),
    )
    total_trials: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=_alias("totalTrials", "total_trials", "trials"),
    )
    hits: Optional[int] = Field(default=None, ge=0, validation_alias=_alias("hits"))
    omission_errors: int = Field(
        default=0,
        ge=0,
        validation_alias=_alias("omissionErrors", "misses", "omission_errors"),
    )
    commission_errors: int = Field(
        default=0,
        ge=0,
        validation_alias=_alias(
            "commissionErrors", "falseAlarms", "commission_errors", "false_alarms"
        ),
    )
    correct_rejections: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=_alias(
            "correctRejections", "correctReject", "correct_rejections"
        ),
    )
    go_accuracy: Optional[float] = Field(
        default=None, validation_alias=_alias("goAccuracy", "go_accuracy")
    )
    nogo_accuracy: Optional[float] = Field(
        default=None,
        validation_alias=_alias("nogoAccuracy", "noGoAccuracy", "nogo_accuracy"),
    )
    n_back_level: Optional[int] = Field(
        default=None,
        ge=1,
        validation_alias=_alias("nBackLevel", "level", "n_back_level"),
    )
    congruent_rt: Optional[float] = Field(
        default=None,
        validation_alias=_alias("congruentAvgRT", "congruentRT", "congruent_rt"),
    )
    incongruent_rt: Optional[float] = Field(
        default=None,
        validation_alias=_alias("incongruentAvgRT", "incongruentRT", "incongruent_rt"),
    )
    congruent_accuracy: Optional[float] = Field(
        default=None,
        validation_alias=_alias("congruentAccuracy", "congruent_accuracy"),
    )
    incongruent_accuracy: Optional[float] = Field(
        default=None,
        validation_alias=_alias("incongruentAccuracy", "incongruent_accuracy"),
    )
    errors: Optional[int] = Field(default=None, ge=0, validation_alias=_alias("errors"))
    completion_time_ms: Optional[float] = Field(
        default=None,
        validation_alias=_alias("completionTime", "completionTimeMs", "completion_time_ms"),
    )
    completion_time_seconds: Optional[float] = Field(
        default=None,
        validation_alias=_alias("completionTimeSeconds", "completion_time_seconds"),
    )
    time_per_item_ms: Optional[float] = Field(
        default=None,
        validation_alias=_alias("timePerItem", "timePerItemMs", "time_per_item_ms"),
    )
    trail_a_time_ms: Optional[float] = Field(
        default=None,
        validation_alias=_alias("trailATime", "trailATimeMs", "trail_a_time_ms"),
    )
    trail_b_time_ms: Optional[float] = Field(
        default=None,
        validation_alias=_alias("trailBTime", "trailBTimeMs", "trail_b_time_ms"),
    )

    @field_validator("reaction_times", mode="before")
    @classmethod
    def drop_non_numeric(cls, value: Any) -> List[float]:
        """Keep finite numeric entries; anything else is silently dropped."""
        if not isinstance(value, (list, tuple)):
            return []
        cleaned: List[float] = []
        for item in value:
            if isinstance(item, bool):
                continue
            try:
                number = float(item)
            except (TypeError, ValueError):
                continue
            if math.isfinite(number):
                cleaned.append(number)
        return cleaned

    @field_validator(
        "accuracy",
        "go_accuracy",
        "nogo_accuracy",
        "congruent_accuracy",
        "incongruent_accuracy",
    )
    @classmethod
    def normalize_accuracy(cls, value: Optional[float]) -> Optional[float]:
        return _as_percentage(value)


class TaskRecordIn(BaseModel):
    """One task entry of ``taskTelemetry``: ``{"results": {...}}``."""

    model_config = ConfigDict(extra="ignore")

    results: TaskResultsIn = Field(default_factory=TaskResultsIn)

    @model_validator(mode="before")
    @classmethod
    def wrap_bare_results(cls, data: Any) -> Any:
        """Accept a bare results mapping without the ``results`` envelope."""
        if isinstance(data, dict) and "results" not in data:
            return {"results": data}
        return data


class QuestionnaireResultsIn(BaseModel):
    """Outcome block of the self-report questionnaire."""

    model_config = ConfigDict(extra="ignore")

    inattention_count: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=_alias("inattentionCount", "inattention_count"),
    )
    hyperactivity_count: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=_alias("hyperactivityCount", "hyperactivity_count"),
    )
    total_score: Optional[float] = Field(
        default=None, ge=0, validation_alias=_alias("totalScore", "total_score")
    )
    max_score: Optional[float] = Field(
        default=None, gt=0, validation_alias=_alias("maxScore", "max_score")
    )
    impairment_score: Optional[float] = Field(
        default=None,
        ge=0,
        validation_alias=_alias("impairmentScore", "impairment", "impairment_score"),
    )
    inattention_items: Optional[List[int]] = Field(
        default=None,
        validation_alias=_alias(
            "inattentionItems", "inattentionResponses", "inattention_items"
        ),
    )
    hyperactivity_items: Optional[List[int]] = Field(
        default=None,
        validation_alias=_alias(
            "hyperactivityItems", "hyperactivityResponses", "hyperactivity_items"
        ),
    )


class QuestionnaireRecordIn(BaseModel):
    """``questionnaireResult``: ``{"results": {...}}``."""

    model_config = ConfigDict(extra="ignore")

    results: QuestionnaireResultsIn = Field(default_factory=QuestionnaireResultsIn)

    @model_validator(mode="before")
    @classmethod
    def wrap_bare_results(cls, data: Any) -> Any:
        if isinstance(data, dict) and "results" not in data:
            return {"results": data}
        return data


class ScreeningRequest(BaseModel):
    """
    Request body for report generation.

    Task entries are kept as raw mappings here and validated one by one by the
    telemetry adapter, so a single malformed task degrades to "unavailable"
    instead of rejecting the whole request.
    """

    model_config = ConfigDict(extra="ignore")

    task_telemetry: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=_alias("taskTelemetry", "task_telemetry"),
        description="Up to five task records keyed by task name",
    )
    questionnaire_result: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=_alias("questionnaireResult", "questionnaire_result"),
        description="Self-report questionnaire record",
    )
