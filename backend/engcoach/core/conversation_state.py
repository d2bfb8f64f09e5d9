"""Conversation State — in-memory state machine for one live coaching session.

Invariants:
    - Phase is derived from data (country, original prompt, end time, terminating flag);
      recorded_phase is only a cache and must always equal derive_phase()
    - The first message is the assistant greeting; total_messages starts at 1
    - country_of_origin and original_prompt are write-once
    - Once end_time is set, no mutator may change the session (SessionTerminatedError)
    - Counters only ever increase

Design Decisions:
    - Pure dataclass with mutators, no IO: the conversation engine (services/) does the
      oracle and store calls around these transitions
    - Keyword termination always carries outcome Satisfied, even for "end session";
      the user's wording is not re-checked for satisfaction
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from engcoach.core.chat_message import ChatMessage
from engcoach.core.coach_strings import (
    AI_INITIAL_GREETING,
    COUNTRY_REPROMPT,
    END_SESSION_KEYWORDS,
    PROBLEM_ELICITATION_PROMPT,
    SATISFACTION_QUESTION,
)
from engcoach.core.domain_types import (
    ConversationAction, Phase, Satisfaction, Sender, SessionId,
)
from engcoach.core.errors import SessionTerminatedError


@dataclass(frozen=True)
class CountryVerdict:
    """Result of the country-validation oracle."""
    is_valid: bool
    country_name: str | None = None


def is_termination_request(text: str) -> bool:
    """Case-insensitive substring match against the end-session phrases."""
    lowered = text.lower().strip()
    return any(keyword in lowered for keyword in END_SESSION_KEYWORDS)


def satisfaction_question_pending(messages: list[ChatMessage]) -> bool:
    """True when the last logged message is an assistant turn carrying the survey."""
    if not messages:
        return False
    last = messages[-1]
    return last.sender == Sender.ASSISTANT and SATISFACTION_QUESTION in last.text


def coaching_history(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Messages after the problem-elicitation prompt (or after the greeting if absent)."""
    for index, message in enumerate(messages):
        if PROBLEM_ELICITATION_PROMPT in message.text:
            return messages[index + 1:]
    return messages[1:]


@dataclass
class LiveSession:
    """One in-progress coaching conversation."""

    session_id: SessionId
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime | None = None

    # === Write-once research metadata ===
    country_of_origin: str | None = None
    user_location: str | None = None
    original_prompt: str | None = None

    # === Accumulators ===
    total_messages: int = 0
    user_initiated_refinements: int = 0
    satisfaction_survey_interactions: int = 0

    # === Log and lifecycle ===
    messages: list[ChatMessage] = field(default_factory=list)
    terminating: bool = False
    termination_outcome: Satisfaction | None = None
    recorded_phase: Phase = Phase.AWAITING_COUNTRY

    @classmethod
    def start(cls, session_id: SessionId) -> "LiveSession":
        """New session with the greeting already logged and counted."""
        session = cls(session_id=session_id)
        session.messages.append(ChatMessage.assistant(AI_INITIAL_GREETING))
        session.total_messages = 1
        session.sync_phase()
        return session

    # -- Derived state ---------------------------------------------------------

    def derive_phase(self) -> Phase:
        if self.end_time is not None:
            return Phase.TERMINATED
        if self.terminating:
            return Phase.TERMINATING
        if self.country_of_origin is None:
            return Phase.AWAITING_COUNTRY
        if self.original_prompt is None:
            return Phase.AWAITING_PROBLEM
        return Phase.COACHING

    def sync_phase(self) -> Phase:
        self.recorded_phase = self.derive_phase()
        return self.recorded_phase

    @property
    def phase(self) -> Phase:
        return self.derive_phase()

    @property
    def is_started(self) -> bool:
        """A session counts as started once a country has been captured."""
        return self.country_of_origin is not None

    @property
    def is_closed(self) -> bool:
        return self.terminating or self.end_time is not None

    # -- Transitions -----------------------------------------------------------

    def set_location_once(self, location: str) -> None:
        if self.user_location is None:
            self.user_location = location

    def apply_country_turn(
        self, user_text: str, verdict: CountryVerdict,
    ) -> ConversationAction:
        """AwaitingCountry: log user turn + fixed reply; capture country if valid."""
        self._ensure_open()
        self.messages.append(ChatMessage.user(user_text))
        if verdict.is_valid and verdict.country_name:
            if self.country_of_origin is None:
                self.country_of_origin = verdict.country_name
            reply, action = PROBLEM_ELICITATION_PROMPT, ConversationAction.ASK_FOR_PROBLEM
        else:
            reply, action = COUNTRY_REPROMPT, ConversationAction.ASK_FOR_COUNTRY
        self.messages.append(ChatMessage.assistant(reply))
        self.total_messages += 2
        self.sync_phase()
        return action

    def apply_content_turn(self, user_text: str) -> ConversationAction:
        """AwaitingProblem/Coaching: log user turn, update counters, pick next action."""
        self._ensure_open()
        survey_answered = satisfaction_question_pending(self.messages)

        if self.original_prompt is None:
            self.original_prompt = user_text
        else:
            self.user_initiated_refinements += 1
        if survey_answered:
            self.satisfaction_survey_interactions += 1

        self.messages.append(ChatMessage.user(user_text))
        self.total_messages += 1

        if is_termination_request(user_text):
            self.begin_termination(Satisfaction.SATISFIED)
            return ConversationAction.END_SESSION
        self.sync_phase()
        return ConversationAction.FORWARD_TO_ORACLE

    def append_assistant_reply(self, message: ChatMessage) -> None:
        """Log a finalized assistant reply to a content turn."""
        self._ensure_open()
        self.messages.append(message)
        self.total_messages += 1
        self.sync_phase()

    def begin_termination(self, outcome: Satisfaction) -> bool:
        """Claim the termination. False if already claimed or finished."""
        if self.is_closed:
            return False
        self.terminating = True
        self.termination_outcome = outcome
        self.sync_phase()
        return True

    def freeze(self, now: datetime | None = None) -> datetime:
        """Set end_time exactly once."""
        if self.end_time is not None:
            raise SessionTerminatedError(self.session_id)
        self.end_time = now or datetime.now(timezone.utc)
        self.terminating = False
        self.sync_phase()
        return self.end_time

    # -- Export ----------------------------------------------------------------

    def session_duration(self) -> int | None:
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds())

    def to_record(self) -> dict:
        """Fields known before report synthesis, in store-create shape."""
        return {
            "session_id": self.session_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "country_of_origin": self.country_of_origin,
            "user_location": self.user_location,
            "original_prompt": self.original_prompt,
            "user_satisfaction": Satisfaction.NOT_PROVIDED,
            "total_messages": self.total_messages,
            "session_duration": self.session_duration(),
            "user_initiated_refinements": self.user_initiated_refinements,
            "satisfaction_survey_interactions": self.satisfaction_survey_interactions,
            "messages": [m.to_dict() for m in self.messages],
        }

    def to_view(self) -> dict:
        """Live view for the chat UI."""
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "country_of_origin": self.country_of_origin,
            "user_location": self.user_location,
            "original_prompt": self.original_prompt,
            "total_messages": self.total_messages,
            "user_initiated_refinements": self.user_initiated_refinements,
            "satisfaction_survey_interactions": self.satisfaction_survey_interactions,
            "messages": [m.to_dict() for m in self.messages],
        }

    def _ensure_open(self) -> None:
        if self.is_closed:
            raise SessionTerminatedError(self.session_id)
