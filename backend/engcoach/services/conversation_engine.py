"""Conversation Engine — drives live sessions through the coaching state machine.

Invariants:
    - Turns for one session are serialized by that session's asyncio.Lock
    - Every user turn ends with exactly one assistant message in the log (fixed reply,
      streamed reply, or apology), except the turn that triggers termination
    - A streamed reply is committed exactly once: on stream end, on oracle failure,
      or on client disconnect (the cancellation is re-raised after the commit)
    - Termination runs at most once per session; later triggers return the stored result
    - Sessions without a captured country are never persisted
    - Oracle failures never block a turn or a termination

Design Decisions:
    - Live sessions held in an in-memory registry owned by this object; single-process
      deployment, a live session does not survive restart
    - Sessions idle past a TTL are evicted by a background loop (run_session_evictor);
      an unfinished evicted session is dropped without a record
    - handle_user_message is an async generator of SSE event dicts; the route only formats
    - Store unreachable at termination: record goes to the local mirror and the caller
      still receives it
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timedelta, timezone

from engcoach.core.chat_message import ChatMessage, StreamingMessage
from engcoach.core.coach_strings import COACH_ERROR_REPLY
from engcoach.core.conversation_state import (
    CountryVerdict, LiveSession, coaching_history,
)
from engcoach.core.domain_types import (
    ConversationAction, Phase, Satisfaction, SessionId,
)
from engcoach.core.errors import (
    CoachError,
    OracleUnavailableError,
    ReportGenerationError,
    SessionConflictError,
    SessionNotFoundError,
    SessionTerminatedError,
    StoreUnavailableError,
)
from engcoach.core.repository_protocols import (
    CoachOracle, LocationLookup, SessionRepository,
)
from engcoach.core.session_report import ReportHints, merge_report
from engcoach.infrastructure.local_mirror import LocalSessionMirror
from engcoach.services.report_synthesizer import ReportSynthesizer

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _event(event_type: str, data) -> dict:
    return {"type": event_type, "data": data}


def _done_event(session: LiveSession, error: bool = False) -> dict:
    return _event("done", {
        "error": error,
        "phase": session.phase.value,
        "total_messages": session.total_messages,
    })


def _mirror_form(record: dict) -> dict:
    """Store-shaped copy of a record (labels and ISO timestamps)."""
    out = dict(record)
    satisfaction = out.get("user_satisfaction")
    out["user_satisfaction"] = Satisfaction.parse(satisfaction).value
    for key in ("start_time", "end_time"):
        if isinstance(out.get(key), datetime):
            out[key] = out[key].isoformat()
    return out


class ConversationEngine:
    """Owns live sessions and runs each user turn against the oracle."""

    def __init__(
        self,
        oracle: CoachOracle,
        synthesizer: ReportSynthesizer,
        store: SessionRepository,
        mirror: LocalSessionMirror,
        location: LocationLookup,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.oracle = oracle
        self.synthesizer = synthesizer
        self.store = store
        self.mirror = mirror
        self.location = location
        self._clock = clock
        self._sessions: dict[str, LiveSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._finished: dict[str, dict] = {}
        self._last_active: dict[str, datetime] = {}

    # -- Registry ------------------------------------------------------------------

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def get_session(self, session_id: str) -> LiveSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def require_open(self, session_id: str) -> LiveSession:
        """Raise before a turn starts if the session cannot take messages."""
        session = self.get_session(session_id)
        if session.is_closed:
            raise SessionTerminatedError(session_id)
        return session

    def finished_record(self, session_id: str) -> dict | None:
        return self._finished.get(session_id)

    def _touch(self, session_id: str) -> None:
        self._last_active[session_id] = self._clock()

    def evict_idle(self, max_idle: timedelta) -> int:
        """Drop sessions untouched for max_idle or longer, finished or not. A session
        with a turn in flight is kept. Abandoned sessions are not persisted.
        Returns how many were dropped."""
        now = self._clock()
        idle = [
            sid for sid, last in self._last_active.items()
            if now - last >= max_idle and not self._lock_for(sid).locked()
        ]
        for sid in idle:
            session = self._sessions.pop(sid, None)
            self._locks.pop(sid, None)
            self._finished.pop(sid, None)
            del self._last_active[sid]
            if session is not None and not session.is_closed:
                logger.info(
                    "Idle session evicted before termination",
                    extra={"session_id": sid, "phase": session.phase.value},
                )
        if idle:
            logger.info(f"Evicted {len(idle)} idle session(s)")
        return len(idle)

    def __len__(self) -> int:
        return len(self._sessions)

    async def start_session(self, client_ip: str | None = None) -> LiveSession:
        """New live session: greeting logged, location looked up once."""
        session = LiveSession.start(SessionId(str(uuid.uuid4())))
        session.start_time = self._clock()
        session.set_location_once(await self.location.locate(client_ip))
        self._sessions[session.session_id] = session
        self._last_active[session.session_id] = session.start_time
        logger.info(
            "Session started",
            extra={"session_id": session.session_id, "phase": session.phase.value},
        )
        return session

    # -- Turns ---------------------------------------------------------------------

    async def handle_user_message(
        self, session_id: str, text: str,
    ) -> AsyncIterator[dict]:
        """Run one user turn, yielding SSE event dicts."""
        session = self.get_session(session_id)
        async with self._lock_for(session_id):
            self._touch(session_id)
            if session.is_closed:
                yield SessionTerminatedError(session_id).to_sse_event()
                yield _done_event(session, error=True)
                return

            if session.phase == Phase.AWAITING_COUNTRY:
                verdict = await self._classify_country(session, text)
                session.apply_country_turn(text, verdict)
                yield _event("user_message", session.messages[-2].to_dict())
                yield _event("assistant_message", session.messages[-1].to_dict())
                yield _done_event(session)
                return

            action = session.apply_content_turn(text)
            yield _event("user_message", session.messages[-1].to_dict())
            logger.info(
                "User turn applied",
                extra={
                    "session_id": session_id,
                    "action": action.value,
                    "total_messages": session.total_messages,
                },
            )

            if action == ConversationAction.END_SESSION:
                record = await self._finish(session)
                yield _event("session_ended", record)
                yield _done_event(session)
                return

            failed = False
            reply_events = self._stream_reply(session)
            try:
                async for event in reply_events:
                    failed = failed or event["type"] == "error"
                    yield event
            finally:
                # Closing the inner stream commits a partial reply on disconnect
                await reply_events.aclose()
            yield _done_event(session, error=failed)

    async def _classify_country(self, session: LiveSession, text: str) -> CountryVerdict:
        try:
            return await self.oracle.validate_country(text)
        except CoachError as e:
            logger.warning(
                f"Country validation failed, re-prompting: {e.message}",
                extra={"session_id": session.session_id, "error_code": e.code},
            )
        except Exception as e:
            logger.error(
                f"Unexpected country validation error, re-prompting: {e!r}",
                extra={"session_id": session.session_id},
                exc_info=True,
            )
        return CountryVerdict(is_valid=False)

    async def _stream_reply(self, session: LiveSession) -> AsyncIterator[dict]:
        pending = StreamingMessage()
        history = coaching_history(session.messages)
        try:
            async for chunk in self.oracle.stream_coaching(history):
                if pending.append(chunk):
                    yield _event("assistant_delta", {"id": pending.id, "text": chunk})
        except CoachError as e:
            logger.warning(
                f"Coaching stream failed: {e.message}",
                extra={"session_id": session.session_id, "error_code": e.code},
            )
            reply = pending.replace_and_commit(COACH_ERROR_REPLY)
            session.append_assistant_reply(reply)
            yield e.to_sse_event()
            yield _event("assistant_message", reply.to_dict())
            return
        except (asyncio.CancelledError, GeneratorExit):
            session.append_assistant_reply(pending.commit(fallback_text=COACH_ERROR_REPLY))
            logger.info(
                "Client disconnected mid-stream, partial reply kept",
                extra={"session_id": session.session_id},
            )
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error in coaching stream: {e!r}",
                extra={"session_id": session.session_id},
                exc_info=True,
            )
            reply = pending.replace_and_commit(COACH_ERROR_REPLY)
            session.append_assistant_reply(reply)
            yield OracleUnavailableError(repr(e), "unknown").to_sse_event()
            yield _event("assistant_message", reply.to_dict())
            return

        reply = pending.commit(fallback_text=COACH_ERROR_REPLY)
        session.append_assistant_reply(reply)
        yield _event("assistant_message", reply.to_dict())

    # -- Termination ---------------------------------------------------------------

    async def end_session(self, session_id: str) -> dict | None:
        """Dashboard trigger. Returns the finished record, or None when nothing was started."""
        session = self.get_session(session_id)
        async with self._lock_for(session_id):
            self._touch(session_id)
            if not session.is_started:
                logger.info(
                    "End requested before country capture, nothing persisted",
                    extra={"session_id": session_id},
                )
                return None
            if not session.begin_termination(Satisfaction.NOT_PROVIDED):
                return self._finished.get(session_id)
            return await self._finish(session)

    async def _finish(self, session: LiveSession) -> dict:
        """Freeze, synthesize the report, persist. Called with the session lock held."""
        outcome = session.termination_outcome or Satisfaction.NOT_PROVIDED
        session.freeze(self._clock())
        hints = ReportHints(
            satisfaction=outcome,
            user_initiated_refinements=session.user_initiated_refinements,
            satisfaction_survey_interactions=session.satisfaction_survey_interactions,
        )

        record = session.to_record()
        try:
            report = await self.synthesizer.synthesize(
                list(session.messages), session.original_prompt, hints,
            )
            record = merge_report(record, report, hints)
        except ReportGenerationError as e:
            logger.warning(
                f"Persisting session without report: {e.message}",
                extra={"session_id": session.session_id, "error_code": e.code},
            )

        stored = await self._persist(session.session_id, record)
        self._finished[session.session_id] = stored
        logger.info(
            "Session terminated",
            extra={
                "session_id": session.session_id,
                "phase": session.phase.value,
                "total_messages": session.total_messages,
            },
        )
        return stored

    async def _persist(self, session_id: str, record: dict) -> dict:
        try:
            return await self.store.finalize(record)
        except StoreUnavailableError as e:
            logger.error(
                f"Store unavailable at termination, using local mirror: {e.message}",
                extra={"session_id": session_id, "error_code": e.code},
            )
            mirrored = _mirror_form(record)
            self.mirror.record(mirrored)
            return mirrored
        except SessionConflictError as e:
            # A stored row with this id holds different write-once values
            logger.error(
                f"Store rejected finished session, using local mirror: {e.message}",
                extra={"session_id": session_id, "error_code": e.code},
            )
            mirrored = _mirror_form(record)
            self.mirror.record(mirrored)
            return mirrored
        except SessionTerminatedError:
            logger.warning(
                "Session was already finalized in the store",
                extra={"session_id": session_id},
            )
            return await self.store.get(session_id) or _mirror_form(record)
        except Exception as e:
            logger.error(
                f"Unexpected store error at termination, using local mirror: {e!r}",
                extra={"session_id": session_id},
                exc_info=True,
            )
            mirrored = _mirror_form(record)
            self.mirror.record(mirrored)
            return mirrored


async def run_session_evictor(
    engine: ConversationEngine, interval_seconds: float, max_idle: timedelta,
) -> None:
    """Background loop: evict idle sessions until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        engine.evict_idle(max_idle)
