"""
Narrative generation.

Pure template selection keyed off the likelihood category, the coherence
check between self-report and the consistency index, the domain scores, the
detected flags and the hidden timing markers. No free-text generation happens here.
"""

import logging
from typing import Dict, List, Mapping, Optional, Tuple

from ._types import (
    CompositeScore,
    Evidence,
    HiddenMarkerSummary,
    LikelihoodResult,
    Narrative,
    PerTaskMetrics,
    Presentation,
    SelfReportMetrics,
    TaskName,
)
from .likelihood import CATEGORIES
from .thresholds import NarrativeThresholds

logger = logging.getLogger(__name__)

OPENINGS: Dict[str, str] = {
    CATEGORIES[0][0]: (
        "Your results suggest ADHD is unlikely. Performance was consistent across "
        "tasks and self-reported symptoms are within the typical range."
    ),
    CATEGORIES[1][0]: (
        "Your results show some indicators worth attention. They are not conclusive, "
        "but some patterns may benefit from monitoring or further evaluation."
    ),
    CATEGORIES[2][0]: (
        "Your results show patterns consistent with ADHD. Objective task measures and "
        "self-reported symptoms both point to attention-related difficulties."
    ),
    CATEGORIES[3][0]: (
        "Your results show a compensated pattern. Accuracy was good, yet underlying "
        "timing markers show the attention variability typical of ADHD."
    ),
    CATEGORIES[4][0]: (
        "Your results show strong indicators of ADHD. Several objective and self-report "
        "measures converge on significant attention and executive difficulties."
    ),
}

COHERENCE_SENTENCES: Dict[str, str] = {
    "coherent": "Self-reported symptoms and measured performance point in the same direction.",
    "self_report_exceeds_objective": (
        "You reported more difficulty than the task measures showed; everyday demands "
        "may differ from the short, structured tasks used here."
    ),
    "objective_exceeds_self_report": (
        "The task measures showed more variability than you reported; some difficulties "
        "may be less noticeable day to day."
    ),
    "insufficient_data": "",
}

# Domain name -> (strength text, weakness text)
DOMAIN_STATEMENTS: Dict[str, Tuple[str, str]] = {
    "impulse_control": ("Strong impulse control", "Challenges with impulse control"),
    "working_memory": ("Good working memory", "Working memory limitations"),
    "interference_control": ("Effective distraction filtering", "Susceptibility to distraction"),
    "cognitive_flexibility": ("Good cognitive flexibility", "Difficulty with task switching"),
    "sustained_attention": ("Adequate sustained attention", "Difficulty sustaining attention"),
}

NO_STRENGTHS = "Assessment completed - continue monitoring"
NO_WEAKNESSES = "No significant weaknesses identified"

GENERAL_RECOMMENDATIONS = (
    "Keep a consistent sleep schedule of 7-9 hours",
    "Exercise regularly; physical activity supports attention",
    "Reduce distractions in your work and study environment",
)


# Hidden-marker condition -> everyday consequence, in emission order
LIFE_IMPACT: Dict[str, str] = {
    "attention_lapses": (
        "Brief attention lapses: you may find yourself re-reading paragraphs or asking "
        "people to repeat what they just said, even while trying to listen."
    ),
    "fatigue_drain": (
        "Mental energy drains over long tasks: projects may start strong and stall "
        "near the end, with final details such as proofreading or filing left undone."
    ),
    "speeding_up": (
        "Responses sped up as the session went on: rushing through the later parts of "
        "a task can lead to careless mistakes."
    ),
    "focus_dropouts": (
        "Sudden focus dropouts: concentration can disappear for a few seconds at a "
        "time, so middle steps of spoken instructions may be missed."
    ),
    "effort_cost": (
        "Accuracy comes at a high effort cost: ordinary days may leave you more tired "
        "than others, with afternoon crashes or weekends spent recovering."
    ),
    "switching_cost": (
        "Changing gears is expensive: moving between activities, such as from work to "
        "rest or into an appointment, may take noticeable effort."
    ),
}

_ELEVATED_JITTER = frozenset({"elevated", "high", "severe"})
_FATIGUE_SLOPES = frozenset({"moderate_fatigue", "severe_fatigue"})
_ELEVATED_BURSTS = frozenset({"moderate", "severe"})
_COSTLY_EFFICIENCY = frozenset({"high", "severe"})
_COSTLY_SWITCHING = frozenset({"elevated", "severe"})


def check_coherence(
    self_report: SelfReportMetrics,
    consistency: CompositeScore,
    t: NarrativeThresholds,
) -> str:
    """Compare self-report severity with the consistency index."""
    if (
        not self_report.available
        or self_report.severity is None
        or not consistency.available
        or consistency.value is None
    ):
        return "insufficient_data"

    if (
        self_report.severity >= t.coherent_high_severity
        and consistency.value >= t.coherent_stable_consistency
    ):
        return "self_report_exceeds_objective"
    if (
        self_report.severity < t.coherent_low_severity
        and consistency.value < t.coherent_unstable_consistency
    ):
        return "objective_exceeds_self_report"
    return "coherent"


def identify_strengths_and_weaknesses(
    domain_scores: Mapping[str, CompositeScore],
    consistency: CompositeScore,
    t: NarrativeThresholds,
) -> Tuple[List[str], List[str]]:
    """
    Threshold-gated strengths (>= strength_score) and weaknesses (< weakness_score).

    Scores in between are neutral, so one domain never appears on both lists.
    """
    strengths: List[str] = []
    weaknesses: List[str] = []

    for domain, (strength, weakness) in DOMAIN_STATEMENTS.items():
        score = domain_scores.get(domain)
        if score is None or not score.available or score.value is None:
            continue
        if score.value >= t.strength_score:
            strengths.append(strength)
        elif score.value < t.weakness_score:
            weaknesses.append(weakness)

    if (
        consistency.available
        and consistency.value is not None
        and consistency.value < t.consistency_weakness
    ):
        weaknesses.append("Significant attention variability")

    return strengths or [NO_STRENGTHS], weaknesses or [NO_WEAKNESSES]


def _detected(flags: Mapping[str, Evidence], name: str) -> bool:
    return name in flags and flags[name].detected


def generate_recommendations(
    likelihood: LikelihoodResult,
    self_report: SelfReportMetrics,
    flags: Mapping[str, Evidence],
    t: NarrativeThresholds,
) -> List[str]:
    """Recommendation templates, de-duplicated in order and capped at max_recommendations."""
    recs: List[str] = []

    if likelihood.score >= t.evaluation_score:
        recs.append(
            "Arrange a comprehensive evaluation with a qualified professional "
            "(psychiatrist, psychologist or ADHD specialist)"
        )
        recs.append("Bring this report to the appointment")
    if likelihood.score >= t.treatment_score:
        recs.append("Ask about treatment options, including behavioral therapy and medication")
        recs.append("Consider neuropsychological testing for a detailed cognitive profile")

    if self_report.available:
        if self_report.presentation in (Presentation.INATTENTIVE, Presentation.COMBINED):
            recs.append("Use planners, checklists and reminders to offload organization")
        if self_report.presentation in (
            Presentation.HYPERACTIVE_IMPULSIVE,
            Presentation.COMBINED,
        ):
            recs.append("Build in movement breaks and a short pause before acting on decisions")

    if _detected(flags, "hyperfocus") or _detected(flags, "compensated"):
        recs.append(
            "Discuss your compensation strategies with a professional; they may be "
            "costing more effort than they appear to"
        )
        recs.append("Check whether your current coping strategies are sustainable long term")

    if _detected(flags, "high_variability"):
        recs.append("Try attention training exercises or mindfulness practice")
        recs.append("Use external structure such as timers to keep effort consistent")

    recs.extend(GENERAL_RECOMMENDATIONS)
    return list(dict.fromkeys(recs))[: t.max_recommendations]


def generate_clinical_note(
    likelihood: LikelihoodResult,
    flags: Mapping[str, Evidence],
    consistency: CompositeScore,
    cognitive_cost: CompositeScore,
    t: NarrativeThresholds,
) -> str:
    notes: List[str] = []

    if _detected(flags, "compensated"):
        notes.append("Compensated pattern: high accuracy with underlying timing variability.")
    if _detected(flags, "hyperfocus"):
        subtype = flags["hyperfocus"].details.get("subtype", "classic")
        notes.append(f"Hyperfocus compensation observed ({subtype} pattern).")
    if _detected(flags, "masking"):
        notes.append("Possible masking: suppressed spread with a persistent slow response tail.")
    if _detected(flags, "practice_effect"):
        notes.append("Within-session practice effect; objective indices may understate difficulty.")

    mc = consistency.value if consistency.available else None
    cpi = cognitive_cost.value if cognitive_cost.available else None

    if (
        t.borderline_low <= likelihood.score <= t.borderline_high
        and (mc is None or mc >= t.borderline_consistency)
    ):
        notes.append("Borderline presentation; a comprehensive evaluation is needed to clarify.")
    if (
        cpi is not None
        and mc is not None
        and cpi > t.dissociation_cognitive_cost
        and mc > t.dissociation_consistency
    ):
        notes.append(
            "Consistency and cognitive-cost indices dissociate, which may point to "
            "specific executive function difficulties."
        )

    if not notes:
        return "Standard screening completed. Interpret results in clinical context."
    return " ".join(notes)


def generate_life_impact(
    hidden: Optional[HiddenMarkerSummary],
    metrics: Optional[Mapping[TaskName, PerTaskMetrics]] = None,
) -> List[str]:
    """
    Translate elevated hidden markers into everyday consequences.

    Returns an empty list when the hidden-marker stage had nothing to analyze.
    Switching cost comes from the trail-making extras when that task is present.
    """
    if hidden is None or not hidden.available:
        return []

    keys: List[str] = []
    if hidden.jitter_band in _ELEVATED_JITTER:
        keys.append("attention_lapses")
    if hidden.slope_classification in _FATIGUE_SLOPES:
        keys.append("fatigue_drain")
    elif hidden.slope_classification == "impulsive_acceleration":
        keys.append("speeding_up")
    if hidden.burst_band in _ELEVATED_BURSTS:
        keys.append("focus_dropouts")
    if any(m.efficiency.rating in _COSTLY_EFFICIENCY for m in hidden.tasks):
        keys.append("effort_cost")

    trail = (metrics or {}).get(TaskName.TRAIL)
    if trail is not None and trail.available:
        if trail.extras.get("switching_rating") in _COSTLY_SWITCHING:
            keys.append("switching_cost")

    return [LIFE_IMPACT[key] for key in keys]


def generate_narrative(

    likelihood: LikelihoodResult,
    consistency: CompositeScore,
    cognitive_cost: CompositeScore,
    domain_scores: Mapping[str, CompositeScore],
    flags: Mapping[str, Evidence],
    self_report: SelfReportMetrics,
    t: NarrativeThresholds,
    hidden: Optional[HiddenMarkerSummary] = None,
    metrics: Optional[Mapping[TaskName, PerTaskMetrics]] = None,
) -> Narrative:
    """Assemble the templated narrative for a report."""
    parts = [OPENINGS[likelihood.category]]

    if consistency.available and consistency.value is not None:
        mc = consistency.value
        if mc < t.coherent_unstable_consistency:
            parts.append(
                f"Your consistency index ({mc}) shows marked moment-to-moment "
                "fluctuation in attention."
            )
        elif mc < t.strength_score:
            parts.append(
                f"Your consistency index ({mc}) shows moderate variability in attention."
            )
        else:
            parts.append(f"Your consistency index ({mc}) shows generally stable attention.")

    if _detected(flags, "hyperfocus"):
        parts.append(
            "High accuracy was reached alongside hidden timing variability, which "
            "suggests extra effort was needed to keep performance up."
        )
    if _detected(flags, "compensated"):
        parts.append(
            "Strong accuracy appears to be compensating for underlying inconsistency, "
            "a pattern common in people with well-developed coping strategies."
        )

    coherence = check_coherence(self_report, consistency, t)
    if COHERENCE_SENTENCES[coherence]:
        parts.append(COHERENCE_SENTENCES[coherence])

    strengths, weaknesses = identify_strengths_and_weaknesses(domain_scores, consistency, t)

    return Narrative(
        main_text=" ".join(parts),
        coherence=coherence,
        strengths=strengths,
        weaknesses=weaknesses,
        recommendations=generate_recommendations(likelihood, self_report, flags, t),
        clinical_note=generate_clinical_note(likelihood, flags, consistency, cognitive_cost, t),
        life_impact=generate_life_impact(hidden, metrics),
    )
