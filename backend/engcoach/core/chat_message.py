"""Chat Messages — immutable log entries and the provisional streamed reply.

Invariants:
    - ChatMessage is frozen: never edited after it enters a session log
    - StreamingMessage grows only until commit(); commit() runs exactly once
    - Chunks delivered after commit are dropped (late stream delivery is not an error)

Design Decisions:
    - Two-phase object instead of in-place mutation of a logged message: the log only
      ever holds finalized ChatMessages
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from engcoach.core.domain_types import Sender


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ChatMessage:
    """One finalized turn of the conversation."""
    sender: Sender
    text: str
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def user(cls, text: str) -> "ChatMessage":
        return cls(sender=Sender.USER, text=text)

    @classmethod
    def assistant(cls, text: str) -> "ChatMessage":
        return cls(sender=Sender.ASSISTANT, text=text)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.sender.value,
            "content": self.text,
            "timestamp": self.timestamp.isoformat(),
        }


class StreamingMessage:
    """Provisional assistant reply, filled chunk by chunk from the oracle stream."""

    def __init__(self) -> None:
        self.id = _new_id()
        self.timestamp = _utcnow()
        self._parts: list[str] = []
        self._committed: ChatMessage | None = None

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def is_committed(self) -> bool:
        return self._committed is not None

    def append(self, chunk: str) -> bool:
        """Add a chunk. Returns False (and ignores it) once committed."""
        if self._committed is not None:
            return False
        if chunk:
            self._parts.append(chunk)
        return True

    def commit(self, fallback_text: str | None = None) -> ChatMessage:
        """Freeze into a ChatMessage. Empty text is replaced by fallback_text."""
        text = self.text
        if not text.strip() and fallback_text is not None:
            text = fallback_text
        return self._freeze(text)

    def replace_and_commit(self, text: str) -> ChatMessage:
        """Freeze with text in place of whatever arrived (failed stream)."""
        return self._freeze(text)

    def _freeze(self, text: str) -> ChatMessage:
        if self._committed is not None:
            raise RuntimeError(f"Streaming message {self.id} already committed")
        self._committed = ChatMessage(
            sender=Sender.ASSISTANT, text=text,
            id=self.id, timestamp=self.timestamp,
        )
        return self._committed
