"""Resilient Anthropic Client — AsyncAnthropic with retry, backoff and error mapping.

Invariants:
    - 429: retried with exponential backoff + jitter, Retry-After honoured when present
    - 5xx, 529 and connection errors: retried up to max_retries
    - Timeouts and other 4xx: fail at once
    - Every SDK or transport failure leaves as OracleUnavailableError (core/errors.py)

Design Decisions:
    - One classifier (_classify) shared by the request and streaming paths
    - Streaming is never retried: partial text may already be on screen
    - ±25% jitter on backoff
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager

import anthropic
import httpx
from anthropic import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    InternalServerError,
    RateLimitError,
)

from engcoach.core.errors import CoachError, ErrorContext, OracleUnavailableError

logger = logging.getLogger(__name__)

# Anthropic "overloaded" status; not every SDK version exports a class for it
_OVERLOADED_STATUS = 529


def _classify(e: APIError) -> tuple[str, bool]:
    """(api_error_type, retryable) for an SDK error. Timeout checked first: it subclasses
    APIConnectionError."""
    if isinstance(e, APITimeoutError):
        return "timeout", False
    if isinstance(e, RateLimitError):
        return "rate_limit", True
    if isinstance(e, (APIConnectionError, InternalServerError)):
        return "connection_error", True
    if isinstance(e, APIStatusError) and e.status_code == _OVERLOADED_STATUS:
        return "overloaded", True
    return "client_error", False


def _retry_after_ms(e: APIError) -> int | None:
    response = getattr(e, "response", None)
    if response is None:
        return None
    try:
        value = response.headers.get("retry-after")
        return int(value) * 1000 if value else None
    except (TypeError, ValueError):
        return None


class ResilientAnthropicClient:
    """Retrying wrapper over anthropic.AsyncAnthropic used by the coach oracle."""

    def __init__(
        self,
        api_key: str,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 30_000,
        timeout_seconds: int = 120,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key, timeout=timeout_seconds, max_retries=0,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def create_message(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        messages: list,
        context: ErrorContext | None = None,
    ):
        """One non-streaming completion, retried on transient failures."""
        attempt = 0
        while True:
            try:
                response = await self.client.messages.create(
                    model=model, max_tokens=max_tokens,
                    system=system, messages=messages,
                )
            except APIError as e:
                error_type, retryable = _classify(e)
                if not retryable or attempt >= self.max_retries:
                    raise self._oracle_error(e, error_type, attempt, context)
                delay = self._delay_for(e, error_type, attempt)
                logger.warning(
                    f"Oracle call failed ({error_type}), retrying in {delay}ms",
                    extra={"attempt": attempt + 1},
                )
                await asyncio.sleep(delay / 1000)
                attempt += 1
                continue
            except Exception as e:
                logger.error(f"Unexpected Anthropic error: {e}", exc_info=True)
                raise OracleUnavailableError(str(e), "unknown", context=context)

            usage = response.usage
            logger.info(
                "Oracle call succeeded",
                extra={
                    "attempt": attempt + 1,
                    "input_tokens": usage.input_tokens,
                    "output_tokens": usage.output_tokens,
                },
            )
            return response

    @asynccontextmanager
    async def stream_message(
        self,
        *,
        model: str,
        max_tokens: int,
        system: str,
        messages: list,
        context: ErrorContext | None = None,
    ):
        """Streaming completion. SDK and transport errors raised while opening the stream or
        while the caller iterates it are mapped; CancelledError passes through untouched."""
        try:
            async with self.client.messages.stream(
                model=model, max_tokens=max_tokens,
                system=system, messages=messages,
            ) as stream:
                yield stream
        except CoachError:
            raise
        except APIError as e:
            error_type, _ = _classify(e)
            raise OracleUnavailableError(
                f"Stream failed: {e}", error_type,
                retry_after_ms=_retry_after_ms(e), context=context,
            )
        except httpx.HTTPError as e:
            # Body reads after the response opened are not wrapped by the SDK
            raise OracleUnavailableError(
                f"Stream interrupted: {e!r}", "connection_error", context=context,
            )
        except Exception as e:
            logger.error(f"Unexpected error during stream: {e}", exc_info=True)
            raise OracleUnavailableError(str(e), "unknown", context=context)

    def _oracle_error(
        self, e: APIError, error_type: str, attempt: int, context: ErrorContext | None,
    ) -> OracleUnavailableError:
        message = str(e)
        if attempt:
            message = f"{message} (after {attempt} retries)"
        return OracleUnavailableError(
            message, error_type, retry_after_ms=_retry_after_ms(e), context=context,
        )

    def _delay_for(self, e: APIError, error_type: str, attempt: int) -> int:
        if error_type == "rate_limit":
            return _retry_after_ms(e) or self._backoff(attempt)
        return self._backoff(attempt)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter, capped at max_delay_ms before jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311
