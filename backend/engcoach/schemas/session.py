"""Session Schemas — Pydantic models for the Session Store CRUD boundary.

Invariants:
    - Messages accept either role/content or the legacy sender/text field names
    - sender "ai" is normalized to role "assistant"
    - SessionUpdate carries only the fields the caller set (exclude_unset on dump)
    - Scores are 1–3 when present
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from engcoach.core.domain_types import Satisfaction, Sender


class MessageCreate(BaseModel):
    """One message to append (or embed in a session create)."""
    role: Sender | None = None
    sender: str | None = None
    content: str | None = None
    text: str | None = None
    timestamp: datetime | None = None

    @model_validator(mode="after")
    def normalize_legacy_fields(self) -> "MessageCreate":
        if self.role is None:
            self.role = Sender.USER if self.sender == "user" else Sender.ASSISTANT
        if self.content is None:
            self.content = self.text
        if self.content is None:
            raise ValueError("message content is required")
        return self

    def to_store(self) -> dict:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp,
        }


class _SessionFields(BaseModel):
    user_id: str | None = None
    country_of_origin: str | None = None
    user_location: str | None = None
    original_prompt: str | None = None
    ai_refined_prompt: str | None = None
    ai_solution: str | None = None
    user_satisfaction: Satisfaction | None = None
    total_messages: int | None = Field(None, ge=0)
    session_duration: int | None = Field(None, ge=0)
    ai_initiated_refinements: int | None = Field(None, ge=0)
    user_initiated_refinements: int | None = Field(None, ge=0)
    satisfaction_survey_interactions: int | None = Field(None, ge=0)
    user_emotional_engagement_score: int | None = Field(None, ge=1, le=3)
    engagement_rationale: str | None = None
    user_intelligence_score: int | None = Field(None, ge=1, le=3)
    intelligence_rationale: str | None = None
    key_topics: list[str] | None = None
    skill_areas: list[str] | None = None
    next_steps: list[str] | None = None
    end_time: datetime | None = None

    @field_validator("user_satisfaction", mode="before")
    @classmethod
    def parse_satisfaction(cls, v):
        if v is None:
            return v
        return Satisfaction.parse(v)


class SessionCreate(_SessionFields):
    """Full session record, optionally with its embedded message log."""
    session_id: str | None = Field(None, min_length=1, max_length=100)
    start_time: datetime | None = None
    messages: list[MessageCreate] | None = None

    def to_store(self) -> dict:
        record = self.model_dump(exclude_none=True, exclude={"messages"})
        if self.messages is not None:
            record["messages"] = [m.to_store() for m in self.messages]
        return record


class SessionUpdate(_SessionFields):
    """Partial update — only fields present in the request body are applied."""

    def to_store(self) -> dict:
        return self.model_dump(exclude_unset=True)
