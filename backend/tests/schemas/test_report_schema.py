"""Report schema — validation of oracle report objects.

Invariants:
    - Scores outside 1–3 are rejected, not clamped
    - Blank refined prompt / solution fall back to sentinels
    - to_fields() omits the counters the caller owns
"""

import pytest
from pydantic import ValidationError

from engcoach.core.domain_types import Satisfaction
from engcoach.schemas.report import SessionReport

VALID = {
    "user_satisfaction": "Satisfied",
    "ai_refined_prompt": "Design a 40 m pedestrian bridge",
    "ai_solution": "Use a steel truss",
    "user_emotional_engagement_score": 3,
    "engagement_rationale": "Asked follow-ups",
    "user_intelligence_score": 2,
    "intelligence_rationale": "Clear but brief",
    "ai_initiated_refinements": 1,
}


def test_valid_report_parses():
    report = SessionReport.model_validate(VALID)
    assert report.user_satisfaction is Satisfaction.SATISFIED
    assert report.key_topics == []


@pytest.mark.parametrize("score", [0, 4, -1])
def test_out_of_range_engagement_rejected(score):
    with pytest.raises(ValidationError):
        SessionReport.model_validate({**VALID, "user_emotional_engagement_score": score})


def test_missing_intelligence_score_rejected():
    data = dict(VALID)
    del data["user_intelligence_score"]
    with pytest.raises(ValidationError):
        SessionReport.model_validate(data)


def test_blank_texts_get_sentinels():
    report = SessionReport.model_validate({**VALID, "ai_refined_prompt": " ", "ai_solution": None})
    assert report.ai_refined_prompt == "Not generated"
    assert report.ai_solution == "Not provided"


def test_unknown_satisfaction_label_becomes_not_provided():
    report = SessionReport.model_validate({**VALID, "user_satisfaction": "kind of"})
    assert report.user_satisfaction is Satisfaction.NOT_PROVIDED


def test_to_fields_drops_caller_counters():
    fields = SessionReport.model_validate(
        {**VALID, "user_initiated_refinements": 9, "satisfaction_survey_interactions": 9},
    ).to_fields()
    assert "user_initiated_refinements" not in fields
    assert "satisfaction_survey_interactions" not in fields
    assert fields["user_intelligence_score"] == 2
