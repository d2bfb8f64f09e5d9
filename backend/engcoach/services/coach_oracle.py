"""Coach Oracle — the three language-model calls the coach makes.

Invariants:
    - validate_country returns a CountryVerdict or raises (OracleUnavailableError /
      OracleMalformedResponseError); it never guesses on unparseable output
    - stream_coaching yields text chunks in arrival order; the caller owns assembly
    - extract_report returns the raw parsed JSON object; validation is the synthesizer's job

Design Decisions:
    - Country check and report use the non-streaming create_message (retried);
      coaching uses stream_message (never retried, text may already be on screen)
    - Stream events filtered like the runner's event loop: only text_delta chunks count
"""

import logging
from collections.abc import AsyncIterator

from engcoach.core.chat_message import ChatMessage
from engcoach.core.conversation_state import CountryVerdict
from engcoach.core.errors import ErrorContext, OracleMalformedResponseError
from engcoach.core.format_transcript import (
    build_coaching_request, build_country_question, build_report_request,
)
from engcoach.core.oracle_json import extract_json_object
from engcoach.core.session_report import ReportHints
from engcoach.infrastructure.anthropic_client import ResilientAnthropicClient
from engcoach.services.coach_prompts import (
    COACH_SYSTEM_PROMPT, COUNTRY_SYSTEM_PROMPT, build_report_system_prompt,
)

logger = logging.getLogger(__name__)

_COUNTRY_MAX_TOKENS = 128


def _response_text(response) -> str:
    return "".join(
        block.text for block in response.content
        if getattr(block, "type", None) == "text"
    )


def _parse_verdict(data: dict, user_input: str) -> CountryVerdict:
    is_valid = data.get("is_valid", data.get("isValid"))
    if not isinstance(is_valid, bool):
        raise ValueError("is_valid missing or not a boolean")
    if not is_valid:
        return CountryVerdict(is_valid=False, country_name=None)
    name = data.get("country_name", data.get("countryName")) or ""
    name = str(name).strip() or user_input.strip()
    return CountryVerdict(is_valid=True, country_name=name)


class AnthropicCoachOracle:
    """CoachOracle backed by the Anthropic Messages API."""

    def __init__(
        self,
        client: ResilientAnthropicClient,
        coach_model: str,
        classifier_model: str,
        coach_max_tokens: int = 4096,
        report_max_tokens: int = 2048,
    ):
        self.client = client
        self.coach_model = coach_model
        self.classifier_model = classifier_model
        self.coach_max_tokens = coach_max_tokens
        self.report_max_tokens = report_max_tokens

    async def validate_country(self, user_input: str) -> CountryVerdict:
        response = await self.client.create_message(
            model=self.classifier_model,
            max_tokens=_COUNTRY_MAX_TOKENS,
            system=COUNTRY_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_country_question(user_input)}],
            context=ErrorContext(phase="awaiting_country"),
        )
        raw = _response_text(response)
        try:
            return _parse_verdict(extract_json_object(raw), user_input)
        except ValueError as e:
            raise OracleMalformedResponseError(str(e), raw_text=raw)

    async def stream_coaching(self, history: list[ChatMessage]) -> AsyncIterator[str]:
        async with self.client.stream_message(
            model=self.coach_model,
            max_tokens=self.coach_max_tokens,
            system=COACH_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_coaching_request(history)}],
            context=ErrorContext(phase="coaching"),
        ) as stream:
            async for event in stream:
                if event.type != "content_block_delta":
                    continue
                delta = event.delta
                if getattr(delta, "type", None) == "text_delta" and delta.text:
                    yield delta.text

    async def extract_report(
        self, messages: list[ChatMessage], original_prompt: str, hints: ReportHints,
    ) -> dict:
        response = await self.client.create_message(
            model=self.coach_model,
            max_tokens=self.report_max_tokens,
            system=build_report_system_prompt(hints),
            messages=[{
                "role": "user",
                "content": build_report_request(original_prompt, messages),
            }],
            context=ErrorContext(phase="terminating"),
        )
        raw = _response_text(response)
        try:
            return extract_json_object(raw)
        except ValueError as e:
            logger.warning(f"Report output could not be parsed: {e}")
            raise OracleMalformedResponseError(str(e), raw_text=raw)
