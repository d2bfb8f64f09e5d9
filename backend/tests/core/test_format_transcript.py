"""Transcript Formatting — tests for oracle request text."""

from engcoach.core.chat_message import ChatMessage
from engcoach.core.format_transcript import (
    build_coaching_request, build_country_question, build_report_request, transcript_text,
)


def test_transcript_labels_speakers():
    text = transcript_text([ChatMessage.assistant("Hi"), ChatMessage.user("Hello")])
    assert text == "AI Coach: Hi\nUser: Hello"


def test_coaching_request_ends_with_latest_message():
    request = build_coaching_request([ChatMessage.user("first"), ChatMessage.user("latest")])
    assert request.startswith("Conversation History:")
    assert request.rstrip().endswith("User: latest")


def test_country_question_quotes_input():
    assert '"Canada"' in build_country_question("Canada")


def test_report_request_carries_original_prompt_and_transcript():
    request = build_report_request("Design a bridge", [ChatMessage.user("Design a bridge")])
    assert '"Design a bridge"' in request
    assert "User: Design a bridge" in request
