"""Initial schema — sessions and messages.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "sessions",
        sa.Column("session_id", sa.String(100), primary_key=True),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("country_of_origin", sa.String(120), nullable=True),
        sa.Column("user_location", sa.String(255), nullable=True),
        sa.Column("original_prompt", sa.Text, nullable=True),
        sa.Column("ai_refined_prompt", sa.Text, nullable=True),
        sa.Column("ai_solution", sa.Text, nullable=True),
        sa.Column("user_satisfaction", sa.Integer, nullable=True),
        sa.Column("total_messages", sa.Integer, nullable=False, server_default="0"),
        sa.Column("session_duration", sa.Integer, nullable=True),
        sa.Column("ai_initiated_refinements", sa.Integer, nullable=False, server_default="0"),
        sa.Column("user_initiated_refinements", sa.Integer, nullable=False, server_default="0"),
        sa.Column("satisfaction_survey_interactions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("user_emotional_engagement_score", sa.Integer, nullable=True),
        sa.Column("engagement_rationale", sa.Text, nullable=True),
        sa.Column("user_intelligence_score", sa.Integer, nullable=True),
        sa.Column("intelligence_rationale", sa.Text, nullable=True),
        sa.Column("key_topics", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("skill_areas", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("next_steps", sa.JSON, nullable=False, server_default="[]"),
    )
    op.create_index("ix_sessions_start_time", "sessions", ["start_time"])
    op.create_index("ix_sessions_country_of_origin", "sessions", ["country_of_origin"])

    op.create_table(
        "messages",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id", sa.String(100),
            sa.ForeignKey("sessions.session_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_messages_session_id", "messages", ["session_id"])


def downgrade() -> None:
    op.drop_index("ix_messages_session_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_sessions_country_of_origin", table_name="sessions")
    op.drop_index("ix_sessions_start_time", table_name="sessions")
    op.drop_table("sessions")
