"""Chat Schemas — live coaching conversation boundary.

Invariants:
    - ChatTurn.text: 1–10000 chars, not all whitespace, kept exactly as sent
"""

from pydantic import BaseModel, Field, field_validator


class ChatTurn(BaseModel):
    """One user message in a live session."""
    text: str = Field(min_length=1, max_length=10_000)

    @field_validator("text")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text cannot be empty or whitespace")
        return v
