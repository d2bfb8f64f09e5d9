"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
"""

from collections.abc import AsyncIterator
from typing import Protocol

from engcoach.core.chat_message import ChatMessage
from engcoach.core.conversation_state import CountryVerdict
from engcoach.core.session_report import ReportHints


class SessionRepository(Protocol):
    """Session Store CRUD — implemented by services/session_store.py."""
    async def create(self, record: dict) -> dict: ...
    async def get(self, session_id: str) -> dict | None: ...
    async def list_all(self) -> list[dict]: ...
    async def update(self, session_id: str, fields: dict) -> dict | None: ...
    async def delete(self, session_id: str) -> bool: ...
    async def list_messages(self, session_id: str) -> list[dict] | None: ...
    async def append_message(self, session_id: str, message: dict) -> dict | None: ...
    async def finalize(self, record: dict) -> dict: ...


class CoachOracle(Protocol):
    """Language model operations consumed by the conversation engine."""
    async def validate_country(self, user_input: str) -> CountryVerdict: ...
    def stream_coaching(self, history: list[ChatMessage]) -> AsyncIterator[str]: ...
    async def extract_report(
        self, messages: list[ChatMessage], original_prompt: str, hints: ReportHints,
    ) -> dict: ...


class CodeDeliveryChannel(Protocol):
    """Outbound delivery of verification codes."""
    @property
    def is_configured(self) -> bool: ...
    async def send_code(self, target: str, code: str) -> None: ...


class LocationLookup(Protocol):
    """Best-effort approximate location of a client address."""
    async def locate(self, ip_address: str | None) -> str: ...
