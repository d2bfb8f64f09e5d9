"""Report Schema — validation of the structured report returned by the oracle.

Invariants:
    - Engagement and intelligence scores must be integers 1–3; anything else is malformed
    - Missing or blank refined prompt / solution fall back to the fixed sentinels
    - Counter fields returned by the oracle are accepted but not trusted (overwritten on merge)
"""

from pydantic import BaseModel, Field, field_validator

from engcoach.core.coach_strings import (
    REFINED_PROMPT_NOT_GENERATED, SOLUTION_NOT_PROVIDED,
)
from engcoach.core.domain_types import MAX_SCORE, MIN_SCORE, Satisfaction


def _blank(v) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


class SessionReport(BaseModel):
    """Outcome data extracted from a finished conversation."""
    user_satisfaction: Satisfaction = Satisfaction.NOT_PROVIDED
    ai_refined_prompt: str = REFINED_PROMPT_NOT_GENERATED
    ai_solution: str = SOLUTION_NOT_PROVIDED
    user_emotional_engagement_score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    engagement_rationale: str = ""
    user_intelligence_score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    intelligence_rationale: str = ""
    ai_initiated_refinements: int = Field(0, ge=0)
    user_initiated_refinements: int | None = None
    satisfaction_survey_interactions: int | None = None
    key_topics: list[str] = Field(default_factory=list)
    skill_areas: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)

    @field_validator("user_satisfaction", mode="before")
    @classmethod
    def parse_satisfaction(cls, v):
        return Satisfaction.parse(v)

    @field_validator("ai_refined_prompt", mode="before")
    @classmethod
    def default_refined_prompt(cls, v):
        return REFINED_PROMPT_NOT_GENERATED if _blank(v) else v

    @field_validator("ai_solution", mode="before")
    @classmethod
    def default_solution(cls, v):
        return SOLUTION_NOT_PROVIDED if _blank(v) else v

    def to_fields(self) -> dict:
        """Report fields for merging, without the untrusted counters."""
        return self.model_dump(
            exclude={"user_initiated_refinements", "satisfaction_survey_interactions"},
        )
