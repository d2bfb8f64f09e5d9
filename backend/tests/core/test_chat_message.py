"""Chat Messages — tests for frozen log entries and the two-phase streamed reply."""

import dataclasses

import pytest

from engcoach.core.chat_message import ChatMessage, StreamingMessage
from engcoach.core.domain_types import Sender


def test_chat_message_is_frozen():
    message = ChatMessage.user("hello")
    with pytest.raises(dataclasses.FrozenInstanceError):
        message.text = "changed"


def test_to_dict_uses_role_and_content():
    data = ChatMessage.assistant("hi").to_dict()
    assert data["role"] == "assistant"
    assert data["content"] == "hi"
    assert "T" in data["timestamp"]


def test_streaming_message_accumulates_chunks():
    pending = StreamingMessage()
    pending.append("Hel")
    pending.append("lo")
    assert pending.text == "Hello"
    assert not pending.is_committed


def test_commit_keeps_id_and_timestamp():
    pending = StreamingMessage()
    pending.append("done")
    message = pending.commit()

    assert message.id == pending.id
    assert message.timestamp == pending.timestamp
    assert message.sender == Sender.ASSISTANT
    assert message.text == "done"


def test_commit_twice_raises():
    pending = StreamingMessage()
    pending.commit()
    with pytest.raises(RuntimeError):
        pending.commit()


def test_chunks_after_commit_are_dropped():
    pending = StreamingMessage()
    pending.append("a")
    message = pending.commit()

    assert pending.append("late") is False
    assert pending.text == "a"
    assert message.text == "a"


def test_empty_stream_uses_fallback():
    assert StreamingMessage().commit(fallback_text="sorry").text == "sorry"


def test_fallback_ignored_when_text_arrived():
    pending = StreamingMessage()
    pending.append("real")
    assert pending.commit(fallback_text="sorry").text == "real"


def test_replace_and_commit_discards_partial_text():
    pending = StreamingMessage()
    pending.append("half a sen")
    message = pending.replace_and_commit("sorry")
    assert message.text == "sorry"
    with pytest.raises(RuntimeError):
        pending.commit()
