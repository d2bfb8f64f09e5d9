"""Coach Oracle — request shape and response parsing over a mocked Anthropic client.

Invariants:
    - Country verdicts parsed from JSON (snake_case or camelCase keys)
    - Valid-but-unnamed country falls back to the trimmed user input
    - Coaching stream yields text deltas only, in order
    - Unparseable structured output → OracleMalformedResponseError
"""

import pytest

from engcoach.core.chat_message import ChatMessage
from engcoach.core.coach_strings import SATISFACTION_QUESTION
from engcoach.core.domain_types import Satisfaction
from engcoach.core.errors import OracleMalformedResponseError, OracleUnavailableError
from engcoach.core.session_report import ReportHints
from engcoach.services.coach_oracle import AnthropicCoachOracle
from tests.services.mock_anthropic import MockAnthropicClient, text_message, text_response

HINTS = ReportHints(Satisfaction.NOT_PROVIDED, 0, 0)


def _oracle(*responses) -> tuple[AnthropicCoachOracle, MockAnthropicClient]:
    client = MockAnthropicClient(list(responses))
    return AnthropicCoachOracle(client, "coach-model", "classifier-model"), client


async def test_valid_country_standardized():
    oracle, client = _oracle(text_message('{"is_valid": true, "country_name": "United States"}'))
    verdict = await oracle.validate_country("USA")

    assert verdict.is_valid
    assert verdict.country_name == "United States"
    assert client.calls[0]["model"] == "classifier-model"
    assert '"USA"' in client.calls[0]["messages"][0]["content"]


async def test_camel_case_keys_accepted():
    oracle, _ = _oracle(text_message('{"isValid": true, "countryName": "Canada"}'))
    assert (await oracle.validate_country("canada")).country_name == "Canada"


async def test_valid_without_name_uses_trimmed_input():
    oracle, _ = _oracle(text_message('{"is_valid": true, "country_name": ""}'))
    verdict = await oracle.validate_country("  Kenya ")
    assert verdict.country_name == "Kenya"


async def test_invalid_country():
    oracle, _ = _oracle(text_message('{"is_valid": false, "country_name": ""}'))
    verdict = await oracle.validate_country("Narnia")
    assert not verdict.is_valid
    assert verdict.country_name is None


async def test_country_garbage_is_malformed():
    oracle, _ = _oracle(text_message("I think so?"))
    with pytest.raises(OracleMalformedResponseError):
        await oracle.validate_country("Canada")


async def test_country_missing_flag_is_malformed():
    oracle, _ = _oracle(text_message('{"country_name": "Canada"}'))
    with pytest.raises(OracleMalformedResponseError):
        await oracle.validate_country("Canada")


async def test_country_oracle_unavailable_propagates():
    oracle, _ = _oracle(OracleUnavailableError("down", "connection_error"))
    with pytest.raises(OracleUnavailableError):
        await oracle.validate_country("Canada")


async def test_coaching_stream_yields_text_chunks():
    oracle, client = _oracle(text_response("What ", "span? ", SATISFACTION_QUESTION))
    history = [ChatMessage.user("Design a bridge")]

    chunks = [c async for c in oracle.stream_coaching(history)]

    assert "".join(chunks) == f"What span? {SATISFACTION_QUESTION}"
    call = client.calls[0]
    assert call["model"] == "coach-model"
    assert SATISFACTION_QUESTION in call["system"]
    assert call["messages"][0]["content"].rstrip().endswith("User: Design a bridge")


async def test_coaching_stream_error_after_partial_text():
    oracle, _ = _oracle(
        text_response("Partial", error=OracleUnavailableError("reset", "connection_error")),
    )
    received = []
    with pytest.raises(OracleUnavailableError):
        async for chunk in oracle.stream_coaching([ChatMessage.user("x")]):
            received.append(chunk)
    assert received == ["Partial"]


async def test_report_extraction_parses_fenced_json():
    oracle, client = _oracle(text_message('```json\n{"user_intelligence_score": 2}\n```'))
    report = await oracle.extract_report([ChatMessage.user("x")], "x", HINTS)

    assert report == {"user_intelligence_score": 2}
    assert "Not provided" in client.calls[0]["system"]


async def test_report_garbage_is_malformed():
    oracle, _ = _oracle(text_message("Sorry, I can't do that."))
    with pytest.raises(OracleMalformedResponseError):
        await oracle.extract_report([ChatMessage.user("x")], "x", HINTS)
