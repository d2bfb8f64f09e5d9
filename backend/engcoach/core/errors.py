"""Error Hierarchy — typed, categorized exceptions for all coach failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - to_response() produces REST envelope; to_sse_event() produces SSE envelope
    - No internal details leaked in user-facing messages
    - Verification codes never appear in messages or context

Design Decisions:
    - Single hierarchy with CoachError base: FastAPI global handler catches all
    - ErrorContext as dataclass: observability fields without coupling to logging
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    VERIFICATION = "verification"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str | None = None
    phase: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class CoachError(Exception):
    """Base exception for all coach errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "success": False,
            "message": self.context.user_message or self.message,
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "session_id": self.context.session_id,
                    "phase": self.context.phase,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            },
        }

    def to_sse_event(self) -> dict:
        """Convert to SSE error event."""
        return {
            "type": "error",
            "data": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "severity": self.severity.value,
                "recoverable": self.severity in (
                    ErrorSeverity.INFO, ErrorSeverity.WARNING,
                ),
            },
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class SessionNotFoundError(CoachError):
    """Requested session does not exist."""
    def __init__(self, session_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext(session_id=session_id)
        super().__init__(
            f"Session '{session_id}' not found",
            "SESSION_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, ctx, 404,
        )
        self.session_id = session_id


class SessionTerminatedError(CoachError):
    """Session already ended (or is ending) — its record is frozen."""
    def __init__(self, session_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext(session_id=session_id)
        super().__init__(
            f"Session '{session_id}' has already ended",
            "SESSION_TERMINATED", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.session_id = session_id


class SessionConflictError(CoachError):
    """Write would collide with an existing record or a write-once field."""
    def __init__(self, session_id: str, reason: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext(session_id=session_id)
        super().__init__(
            f"Session '{session_id}': {reason}",
            "SESSION_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.session_id = session_id


class InvalidTargetError(CoachError):
    """Verification target (or code) is missing or malformed."""
    def __init__(
        self,
        message: str = "Valid email address is required",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message,
            "INVALID_TARGET", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class CodeNotFoundError(CoachError):
    """No live verification code exists for the target."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "OTP not found or expired",
            "CODE_NOT_FOUND", ErrorCategory.VERIFICATION,
            ErrorSeverity.WARNING, context, 404,
        )


class CodeExpiredError(CoachError):
    """Verification code passed its expiry — a new one must be issued."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "OTP has expired",
            "CODE_EXPIRED", ErrorCategory.VERIFICATION,
            ErrorSeverity.WARNING, context, 410,
        )


class CodeMismatchError(CoachError):
    """Submitted code differs from the stored one. Retry is allowed."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Invalid OTP",
            "CODE_MISMATCH", ErrorCategory.VERIFICATION,
            ErrorSeverity.WARNING, context, 401,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class StoreUnavailableError(CoachError):
    """Durable session store could not be reached or failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "STORE_UNAVAILABLE", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class OracleUnavailableError(CoachError):
    """Language model call failed (network, timeout, rate limit, API error)."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Oracle error ({api_error_type}): {message}",
            "ORACLE_UNAVAILABLE", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.api_error_type = api_error_type


class OracleMalformedResponseError(CoachError):
    """Structured oracle output failed to parse or validate."""
    def __init__(self, message: str, raw_text: str = "", context: ErrorContext | None = None):
        super().__init__(
            f"Malformed oracle response: {message}",
            "ORACLE_MALFORMED_RESPONSE", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, context, 502,
        )
        self.raw_text = raw_text


class ReportGenerationError(CoachError):
    """Session report could not be synthesized."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Could not generate session report: {message}",
            "REPORT_GENERATION_FAILED", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, context, 502,
        )


class ChannelUnavailableError(CoachError):
    """No outbound delivery channel is configured."""
    def __init__(self, context: ErrorContext | None = None):
        ctx = context or ErrorContext(
            user_message="Email service is not properly configured",
        )
        super().__init__(
            "Email service is not properly configured",
            "CHANNEL_UNAVAILABLE", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 503,
        )


class DeliveryFailedError(CoachError):
    """Outbound delivery of a verification code failed."""
    def __init__(self, message: str = "", context: ErrorContext | None = None):
        ctx = context or ErrorContext(user_message="Failed to send OTP email")
        super().__init__(
            f"Failed to send OTP email{': ' + message if message else ''}",
            "DELIVERY_FAILED", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, ctx, 503,
        )
