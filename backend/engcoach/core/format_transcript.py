"""Transcript Formatting — renders message logs into oracle request text.

Invariants:
    - Speaker labels are "AI Coach" and "User"
    - Pure functions, no IO
"""

from engcoach.core.chat_message import ChatMessage
from engcoach.core.domain_types import Sender


def transcript_text(messages: list[ChatMessage]) -> str:
    return "\n".join(
        f"{'AI Coach' if m.sender == Sender.ASSISTANT else 'User'}: {m.text}"
        for m in messages
    )


def build_country_question(user_input: str) -> str:
    return f'Is "{user_input}" a valid country?'


def build_coaching_request(history: list[ChatMessage]) -> str:
    """Single user turn carrying the coaching history; the last line is the newest message."""
    return f"Conversation History:\n{transcript_text(history)}\n"


def build_report_request(original_prompt: str, messages: list[ChatMessage]) -> str:
    return (
        f'The user\'s original prompt was: "{original_prompt}"\n\n'
        f"Conversation Transcript:\n{transcript_text(messages)}\n\n"
        "Analyze the transcript and output a valid JSON object matching the schema."
    )
