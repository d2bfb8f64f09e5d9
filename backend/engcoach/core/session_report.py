"""Session Report — merge of synthesized outcome data onto a session record.

Invariants:
    - Caller-supplied counters (user_initiated_refinements,
      satisfaction_survey_interactions) always win over oracle values
    - Merge never touches identity, timestamps, country or original prompt
    - Pure: returns a new dict, input record is not mutated
"""

from dataclasses import dataclass

from engcoach.core.domain_types import Satisfaction

REPORT_FIELDS = (
    "user_satisfaction",
    "ai_refined_prompt",
    "ai_solution",
    "user_emotional_engagement_score",
    "engagement_rationale",
    "user_intelligence_score",
    "intelligence_rationale",
    "ai_initiated_refinements",
    "key_topics",
    "skill_areas",
    "next_steps",
)


@dataclass(frozen=True)
class ReportHints:
    """Ground truth tracked by the state machine, passed to the synthesizer."""
    satisfaction: Satisfaction
    user_initiated_refinements: int
    satisfaction_survey_interactions: int


def merge_report(record: dict, report: dict, hints: ReportHints) -> dict:
    """Overlay report fields on record, then force the authoritative counters."""
    merged = dict(record)
    for key in REPORT_FIELDS:
        if key in report:
            merged[key] = report[key]
    merged["user_initiated_refinements"] = hints.user_initiated_refinements
    merged["satisfaction_survey_interactions"] = hints.satisfaction_survey_interactions
    return merged
