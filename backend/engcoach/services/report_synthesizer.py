"""Report Synthesizer — turns a finished transcript into validated report fields.

Invariants:
    - Output always carries the caller's counters, never the oracle's
    - Satisfaction defaults to the state machine's outcome when the oracle omits it
    - Any oracle failure or validation failure surfaces as ReportGenerationError
    - Never persists anything; the conversation engine owns the write

Design Decisions:
    - Pydantic (schemas/report.SessionReport) is the single validation point for
      oracle JSON: out-of-range scores are malformed, not clamped
"""

import logging

from pydantic import ValidationError

from engcoach.core.chat_message import ChatMessage
from engcoach.core.errors import (
    OracleMalformedResponseError, OracleUnavailableError, ReportGenerationError,
)
from engcoach.core.repository_protocols import CoachOracle
from engcoach.core.session_report import ReportHints
from engcoach.schemas.report import SessionReport

logger = logging.getLogger(__name__)


class ReportSynthesizer:
    """Produces report fields for one session via the coach oracle."""

    def __init__(self, oracle: CoachOracle):
        self.oracle = oracle

    async def synthesize(
        self,
        messages: list[ChatMessage],
        original_prompt: str | None,
        hints: ReportHints,
    ) -> dict:
        """Return report fields ready for merge_report().

        Raises:
            ReportGenerationError: oracle unreachable or its output malformed.
        """
        try:
            raw = await self.oracle.extract_report(messages, original_prompt or "", hints)
        except (OracleUnavailableError, OracleMalformedResponseError) as e:
            logger.warning(
                f"Report synthesis failed: {e.message}",
                extra={"error_code": e.code},
            )
            raise ReportGenerationError(e.message) from e

        if raw.get("user_satisfaction") in (None, ""):
            raw = {**raw, "user_satisfaction": hints.satisfaction.value}

        try:
            report = SessionReport.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Report failed validation: {e.error_count()} error(s)")
            raise ReportGenerationError("report failed validation") from e

        fields = report.to_fields()
        fields["user_initiated_refinements"] = hints.user_initiated_refinements
        fields["satisfaction_survey_interactions"] = hints.satisfaction_survey_interactions
        return fields
