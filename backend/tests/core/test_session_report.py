"""Session Report — tests for merging report fields onto a session record."""

from engcoach.core.domain_types import Satisfaction
from engcoach.core.session_report import ReportHints, merge_report

HINTS = ReportHints(
    satisfaction=Satisfaction.SATISFIED,
    user_initiated_refinements=2,
    satisfaction_survey_interactions=3,
)


def test_caller_counters_override_report_values():
    merged = merge_report(
        {"session_id": "s"},
        {"user_initiated_refinements": 99, "satisfaction_survey_interactions": 99},
        HINTS,
    )
    assert merged["user_initiated_refinements"] == 2
    assert merged["satisfaction_survey_interactions"] == 3


def test_identity_and_prompt_untouched():
    record = {"session_id": "s", "original_prompt": "Design a bridge", "country_of_origin": "Canada"}
    merged = merge_report(
        record,
        {"session_id": "other", "original_prompt": "hijacked", "ai_solution": "Use steel"},
        HINTS,
    )
    assert merged["session_id"] == "s"
    assert merged["original_prompt"] == "Design a bridge"
    assert merged["ai_solution"] == "Use steel"


def test_merge_does_not_mutate_input():
    record = {"session_id": "s"}
    merge_report(record, {"ai_solution": "x"}, HINTS)
    assert record == {"session_id": "s"}
