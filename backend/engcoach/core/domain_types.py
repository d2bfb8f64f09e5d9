"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - SessionId wraps the public session identifier string
    - Engagement/intelligence scores are bounded 1–3
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

SessionId = NewType("SessionId", str)
MessageId = NewType("MessageId", str)


# ─── Value Types ─────────────────────────────────────────────────

Score = NewType("Score", int)   # 1–3

MIN_SCORE = 1
MAX_SCORE = 3


# ─── Enums ───────────────────────────────────────────────────────

class Sender(str, Enum):
    """Author of a chat message."""
    USER = "user"
    ASSISTANT = "assistant"


class Satisfaction(str, Enum):
    """Session outcome — stored as 1 / 0 / NULL in the database."""
    SATISFIED = "Satisfied"
    UNSATISFIED = "Unsatisfied"
    NOT_PROVIDED = "Not provided"

    def to_db(self) -> int | None:
        if self is Satisfaction.SATISFIED:
            return 1
        if self is Satisfaction.UNSATISFIED:
            return 0
        return None

    @classmethod
    def from_db(cls, value: int | None) -> "Satisfaction":
        if value == 1:
            return cls.SATISFIED
        if value == 0:
            return cls.UNSATISFIED
        return cls.NOT_PROVIDED

    @classmethod
    def parse(cls, value: object) -> "Satisfaction":
        """Lenient parse of labels coming from clients or the oracle."""
        if isinstance(value, Satisfaction):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return cls.NOT_PROVIDED


class Phase(str, Enum):
    """Conversation phases. Derived from session data, never chosen freely."""
    AWAITING_COUNTRY = "awaiting_country"
    AWAITING_PROBLEM = "awaiting_problem"
    COACHING = "coaching"
    TERMINATING = "terminating"
    TERMINATED = "terminated"


class ConversationAction(str, Enum):
    """Next system action produced by the state machine for a user turn."""
    ASK_FOR_COUNTRY = "ask_for_country"
    ASK_FOR_PROBLEM = "ask_for_problem"
    FORWARD_TO_ORACLE = "forward_to_oracle"
    END_SESSION = "end_session"
