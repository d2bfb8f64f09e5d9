"""Report Synthesizer — validation, counter forcing and failure mapping."""

import pytest

from engcoach.core.chat_message import ChatMessage
from engcoach.core.domain_types import Satisfaction
from engcoach.core.errors import (
    OracleMalformedResponseError, OracleUnavailableError, ReportGenerationError,
)
from engcoach.core.session_report import ReportHints
from engcoach.services.report_synthesizer import ReportSynthesizer
from tests.services.fakes import REPORT, FakeOracle

HINTS = ReportHints(
    satisfaction=Satisfaction.SATISFIED,
    user_initiated_refinements=1,
    satisfaction_survey_interactions=2,
)
MESSAGES = [ChatMessage.user("Design a bridge"), ChatMessage.assistant("Span?")]


async def test_report_counters_forced_to_hints():
    fields = await ReportSynthesizer(FakeOracle()).synthesize(MESSAGES, "Design a bridge", HINTS)

    assert fields["user_initiated_refinements"] == 1
    assert fields["satisfaction_survey_interactions"] == 2
    assert fields["user_emotional_engagement_score"] == 3
    assert fields["key_topics"] == ["truss design"]


async def test_oracle_receives_full_transcript_and_prompt():
    oracle = FakeOracle()
    await ReportSynthesizer(oracle).synthesize(MESSAGES, "Design a bridge", HINTS)

    call = oracle.report_calls[0]
    assert call["messages"] == MESSAGES
    assert call["original_prompt"] == "Design a bridge"
    assert call["hints"] == HINTS


async def test_missing_satisfaction_defaults_to_hint():
    report = {k: v for k, v in REPORT.items() if k != "user_satisfaction"}
    fields = await ReportSynthesizer(FakeOracle(report=report)).synthesize(
        MESSAGES, "p", HINTS,
    )
    assert fields["user_satisfaction"] == Satisfaction.SATISFIED


async def test_oracle_may_override_satisfaction():
    fields = await ReportSynthesizer(
        FakeOracle(report={**REPORT, "user_satisfaction": "Unsatisfied"}),
    ).synthesize(MESSAGES, "p", HINTS)
    assert fields["user_satisfaction"] == Satisfaction.UNSATISFIED


async def test_out_of_range_score_is_generation_error():
    oracle = FakeOracle(report={**REPORT, "user_intelligence_score": 7})
    with pytest.raises(ReportGenerationError):
        await ReportSynthesizer(oracle).synthesize(MESSAGES, "p", HINTS)


@pytest.mark.parametrize("error", [
    OracleUnavailableError("boom", "connection_error"),
    OracleMalformedResponseError("no JSON object in oracle output"),
])
async def test_oracle_failures_become_generation_error(error):
    with pytest.raises(ReportGenerationError):
        await ReportSynthesizer(FakeOracle(report=error)).synthesize(MESSAGES, "p", HINTS)


async def test_missing_original_prompt_sent_as_empty_string():
    oracle = FakeOracle()
    await ReportSynthesizer(oracle).synthesize(MESSAGES, None, HINTS)
    assert oracle.report_calls[0]["original_prompt"] == ""
