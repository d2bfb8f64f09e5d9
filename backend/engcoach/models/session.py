"""Session ORM — persists one coaching conversation and its outcome report.

Invariants:
    - session_id is the public identifier and primary key (client-visible, immutable)
    - end_time is NULL until termination; a non-NULL end_time freezes the row
    - user_satisfaction stored as 1 (Satisfied) / 0 (Unsatisfied) / NULL (Not provided)
    - Scores are NULL when no report was synthesized, else 1–3

Design Decisions:
    - JSON columns for key_topics/skill_areas/next_steps (plain string lists)
    - cascade delete for messages
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from engcoach.db.base import Base


class CoachingSession(Base):
    """Session aggregate root — owns its messages."""
    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        default=lambda: datetime.now(timezone.utc),
    )
    end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    country_of_origin: Mapped[str | None] = mapped_column(
        String(120), nullable=True, index=True,
    )
    user_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    original_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_refined_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_solution: Mapped[str | None] = mapped_column(Text, nullable=True)

    user_satisfaction: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_messages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    session_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ai_initiated_refinements: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    user_initiated_refinements: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    satisfaction_survey_interactions: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )

    user_emotional_engagement_score: Mapped[int | None] = mapped_column(
        Integer, nullable=True,
    )
    engagement_rationale: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_intelligence_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    intelligence_rationale: Mapped[str | None] = mapped_column(Text, nullable=True)

    key_topics: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    skill_areas: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    next_steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    messages: Mapped[list["Message"]] = relationship(
        "Message", back_populates="session",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="[Message.timestamp, Message.position]",
    )
