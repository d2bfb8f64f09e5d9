"""Conversation State — tests for the live-session state machine.

Tests cover:
    - Greeting seeds the log and total_messages = 1
    - Country turn: valid / invalid verdicts, +2 per turn
    - Content turns: original prompt write-once, refinements, survey counter
    - Keyword termination (always Satisfied)
    - Phase derivation and the recorded-phase cache
    - Frozen sessions reject every mutator
"""

from datetime import datetime, timedelta, timezone

import pytest

from engcoach.core.chat_message import ChatMessage
from engcoach.core.coach_strings import (
    AI_INITIAL_GREETING,
    COUNTRY_REPROMPT,
    PROBLEM_ELICITATION_PROMPT,
    SATISFACTION_QUESTION,
)
from engcoach.core.conversation_state import (
    CountryVerdict,
    LiveSession,
    coaching_history,
    is_termination_request,
    satisfaction_question_pending,
)
from engcoach.core.domain_types import ConversationAction, Phase, Satisfaction, Sender
from engcoach.core.errors import SessionTerminatedError


def _with_country(country="Canada") -> LiveSession:
    session = LiveSession.start("s-1")
    session.apply_country_turn(country, CountryVerdict(True, country))
    return session


def _coach_reply(session: LiveSession, text=f"Let's refine. {SATISFACTION_QUESTION}"):
    session.append_assistant_reply(ChatMessage.assistant(text))


# -- Start ---------------------------------------------------------------------

def test_start_logs_greeting_and_counts_it():
    session = LiveSession.start("s-1")
    assert session.total_messages == 1
    assert session.messages[0].sender == Sender.ASSISTANT
    assert session.messages[0].text == AI_INITIAL_GREETING
    assert session.phase == Phase.AWAITING_COUNTRY


def test_new_session_is_not_started():
    assert not LiveSession.start("s-1").is_started


# -- Country turn --------------------------------------------------------------

def test_valid_country_advances_to_awaiting_problem():
    session = LiveSession.start("s-1")
    action = session.apply_country_turn("canada", CountryVerdict(True, "Canada"))

    assert action == ConversationAction.ASK_FOR_PROBLEM
    assert session.country_of_origin == "Canada"
    assert session.messages[-1].text == PROBLEM_ELICITATION_PROMPT
    assert session.total_messages == 3
    assert session.phase == Phase.AWAITING_PROBLEM


def test_invalid_country_reprompts_and_stays():
    session = LiveSession.start("s-1")
    action = session.apply_country_turn("Narnia", CountryVerdict(False))

    assert action == ConversationAction.ASK_FOR_COUNTRY
    assert session.country_of_origin is None
    assert session.messages[-1].text == COUNTRY_REPROMPT
    assert session.total_messages == 3
    assert session.phase == Phase.AWAITING_COUNTRY


def test_valid_verdict_without_name_is_treated_as_invalid():
    session = LiveSession.start("s-1")
    session.apply_country_turn("x", CountryVerdict(True, ""))
    assert session.country_of_origin is None


def test_repeated_invalid_countries_count_two_each():
    session = LiveSession.start("s-1")
    for _ in range(3):
        session.apply_country_turn("Narnia", CountryVerdict(False))
    assert session.total_messages == 7


# -- Content turns -------------------------------------------------------------

def test_first_content_message_becomes_original_prompt():
    session = _with_country()
    action = session.apply_content_turn("Design a bridge")

    assert action == ConversationAction.FORWARD_TO_ORACLE
    assert session.original_prompt == "Design a bridge"
    assert session.user_initiated_refinements == 0
    assert session.phase == Phase.COACHING


def test_original_prompt_never_overwritten():
    session = _with_country()
    session.apply_content_turn("Design a bridge")
    _coach_reply(session)
    session.apply_content_turn("Actually, a tunnel")

    assert session.original_prompt == "Design a bridge"
    assert session.user_initiated_refinements == 1


def test_reply_to_satisfaction_question_counts_survey_interaction():
    session = _with_country()
    session.apply_content_turn("Design a bridge")
    _coach_reply(session)
    session.apply_content_turn("Span is 40 m")
    assert session.satisfaction_survey_interactions == 1


def test_reply_without_preceding_question_is_not_a_survey_interaction():
    session = _with_country()
    session.apply_content_turn("Design a bridge")
    _coach_reply(session, "What span do you need?")
    session.apply_content_turn("Span is 40 m")
    assert session.satisfaction_survey_interactions == 0


def test_each_coached_turn_adds_two_messages():
    session = _with_country()
    before = session.total_messages
    session.apply_content_turn("Design a bridge")
    _coach_reply(session)
    assert session.total_messages == before + 2


@pytest.mark.parametrize("text", [
    "I am satisfied now",
    "  END SESSION  ",
    "ok, i am satisfied now, thanks",
    "please end session",
])
def test_termination_keywords_match_case_insensitively(text):
    assert is_termination_request(text)


def test_non_keyword_does_not_terminate():
    assert not is_termination_request("I am not done yet")


def test_keyword_turn_begins_termination_as_satisfied():
    session = _with_country()
    session.apply_content_turn("Design a bridge")
    _coach_reply(session)
    total = session.total_messages

    action = session.apply_content_turn("end session")

    assert action == ConversationAction.END_SESSION
    assert session.termination_outcome == Satisfaction.SATISFIED
    assert session.phase == Phase.TERMINATING
    assert session.total_messages == total + 1
    assert session.satisfaction_survey_interactions == 1


def test_keyword_as_first_problem_message_is_stored_as_prompt():
    session = _with_country()
    session.apply_content_turn("end session")
    assert session.original_prompt == "end session"
    assert session.termination_outcome == Satisfaction.SATISFIED


# -- Helpers -------------------------------------------------------------------

def test_satisfaction_question_pending_needs_assistant_last():
    messages = [
        ChatMessage.assistant(SATISFACTION_QUESTION),
        ChatMessage.user("hi"),
    ]
    assert not satisfaction_question_pending(messages)
    assert satisfaction_question_pending(messages[:1])
    assert not satisfaction_question_pending([])


def test_coaching_history_starts_after_elicitation_prompt():
    session = _with_country()
    session.apply_content_turn("Design a bridge")
    history = coaching_history(session.messages)
    assert [m.text for m in history] == ["Design a bridge"]


def test_coaching_history_without_prompt_drops_greeting():
    messages = [ChatMessage.assistant(AI_INITIAL_GREETING), ChatMessage.user("x")]
    assert [m.text for m in coaching_history(messages)] == ["x"]


# -- Phase / termination ---------------------------------------------------------

def test_recorded_phase_always_matches_derived_phase():
    session = LiveSession.start("s-1")
    steps = [
        lambda: session.apply_country_turn("Narnia", CountryVerdict(False)),
        lambda: session.apply_country_turn("Canada", CountryVerdict(True, "Canada")),
        lambda: session.apply_content_turn("Design a bridge"),
        lambda: _coach_reply(session),
        lambda: session.apply_content_turn("I am satisfied now"),
        lambda: session.freeze(),
    ]
    assert session.recorded_phase == session.derive_phase()
    for step in steps:
        step()
        assert session.recorded_phase == session.derive_phase()
    assert session.phase == Phase.TERMINATED


def test_begin_termination_only_once():
    session = _with_country()
    assert session.begin_termination(Satisfaction.NOT_PROVIDED)
    assert not session.begin_termination(Satisfaction.SATISFIED)
    assert session.termination_outcome == Satisfaction.NOT_PROVIDED


def test_freeze_sets_end_time_once():
    session = _with_country()
    end = datetime(2026, 1, 1, tzinfo=timezone.utc)
    session.start_time = end - timedelta(seconds=90)
    session.freeze(end)

    assert session.end_time == end
    assert session.session_duration() == 90
    with pytest.raises(SessionTerminatedError):
        session.freeze()


def test_frozen_session_rejects_mutators():
    session = _with_country()
    session.freeze()
    with pytest.raises(SessionTerminatedError):
        session.apply_content_turn("more")
    with pytest.raises(SessionTerminatedError):
        session.apply_country_turn("Canada", CountryVerdict(True, "Canada"))
    with pytest.raises(SessionTerminatedError):
        session.append_assistant_reply(ChatMessage.assistant("late"))


def test_terminating_session_rejects_new_turns():
    session = _with_country()
    session.begin_termination(Satisfaction.NOT_PROVIDED)
    with pytest.raises(SessionTerminatedError):
        session.apply_content_turn("wait")


def test_location_is_set_once():
    session = LiveSession.start("s-1")
    session.set_location_once("Toronto, Ontario, Canada")
    session.set_location_once("Paris, IDF, France")
    assert session.user_location == "Toronto, Ontario, Canada"


# -- Export --------------------------------------------------------------------

def test_to_record_carries_pre_synthesis_fields():
    session = _with_country()
    session.apply_content_turn("Design a bridge")
    session.freeze()
    record = session.to_record()

    assert record["country_of_origin"] == "Canada"
    assert record["original_prompt"] == "Design a bridge"
    assert record["user_satisfaction"] == Satisfaction.NOT_PROVIDED
    assert record["end_time"] is not None
    assert len(record["messages"]) == session.total_messages
    assert "user_emotional_engagement_score" not in record


def test_to_view_reports_phase_value():
    view = LiveSession.start("s-1").to_view()
    assert view["phase"] == "awaiting_country"
    assert view["messages"][0]["role"] == "assistant"
