"""Session Store — CRUD over finished sessions and their message logs.

Invariants:
    - Satisfaction crosses this boundary as a label and is stored as 1 / 0 / NULL
    - A row with end_time set is frozen: update and append raise SessionTerminatedError
    - country_of_origin and original_prompt never change once non-null
    - append_message bumps total_messages with one UPDATE (total_messages + 1)
    - finalize is insert-once; a pre-existing open row is closed by compare-and-set
      on end_time IS NULL, a closed one is a conflict
    - Every read returns plain dicts (no ORM objects escape)

Design Decisions:
    - One short-lived AsyncSession per operation via DatabaseSessionManager.session()
    - Returns None for unknown session ids; the route turns that into 404
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from engcoach.core.domain_types import Satisfaction, Sender
from engcoach.core.errors import SessionConflictError, SessionTerminatedError
from engcoach.infrastructure.database import DatabaseSessionManager
from engcoach.models.message import Message
from engcoach.models.session import CoachingSession

logger = logging.getLogger(__name__)

_WRITE_ONCE = ("country_of_origin", "original_prompt")
_LIST_FIELDS = ("key_topics", "skill_areas", "next_steps")
_COLUMNS = tuple(
    c.key for c in CoachingSession.__table__.columns
)


# -- Conversions ---------------------------------------------------------------

def _parse_timestamp(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _message_id(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return uuid.uuid4()


def _column_values(record: dict) -> dict:
    """Filter a record down to session columns, converting labels to storage form."""
    values = {k: v for k, v in record.items() if k in _COLUMNS}
    if "user_satisfaction" in values and values["user_satisfaction"] is not None:
        values["user_satisfaction"] = Satisfaction.parse(values["user_satisfaction"]).to_db()
    for key in ("start_time", "end_time"):
        if key in values:
            values[key] = _parse_timestamp(values[key])
    for key in _LIST_FIELDS:
        if key in values and values[key] is None:
            values[key] = []
    return values


def _build_message(session_id: str, message: dict, position: int) -> Message:
    role = message.get("role") or message.get("sender") or Sender.ASSISTANT.value
    if role == "ai":
        role = Sender.ASSISTANT.value
    return Message(
        id=_message_id(message.get("id")),
        session_id=session_id,
        role=Sender(role).value,
        content=message.get("content", message.get("text", "")),
        position=position,
        timestamp=_parse_timestamp(message.get("timestamp")) or datetime.now(timezone.utc),
    )


def message_to_dict(message: Message) -> dict:
    return {
        "id": str(message.id),
        "session_id": message.session_id,
        "role": message.role,
        "content": message.content,
        "position": message.position,
        "timestamp": _iso(message.timestamp),
    }


def session_to_dict(row: CoachingSession, include_messages: bool = True) -> dict:
    data = {key: getattr(row, key) for key in _COLUMNS}
    data["user_satisfaction"] = Satisfaction.from_db(row.user_satisfaction).value
    data["start_time"] = _iso(row.start_time)
    data["end_time"] = _iso(row.end_time)
    for key in _LIST_FIELDS:
        data[key] = list(data[key] or [])
    if include_messages:
        data["messages"] = [message_to_dict(m) for m in row.messages]
    return data


# -- Store ---------------------------------------------------------------------

class SqlSessionStore:
    """SessionRepository over SQLAlchemy async."""

    def __init__(self, manager: DatabaseSessionManager):
        self.manager = manager

    async def create(self, record: dict) -> dict:
        """Insert a session (and its embedded messages). Duplicate id is a conflict."""
        values = _column_values(record)
        session_id = values.setdefault("session_id", str(uuid.uuid4()))
        values.setdefault("start_time", datetime.now(timezone.utc))
        messages = record.get("messages") or []

        async with self.manager.session() as db:
            row = CoachingSession(**values)
            row.messages = [
                _build_message(session_id, m, i) for i, m in enumerate(messages)
            ]
            db.add(row)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise SessionConflictError(session_id, "already exists")
        logger.info("Session stored", extra={"session_id": session_id})
        return await self.get(session_id)

    async def get(self, session_id: str) -> dict | None:
        async with self.manager.session() as db:
            row = await db.get(CoachingSession, session_id)
            return session_to_dict(row) if row else None

    async def list_all(self) -> list[dict]:
        """All sessions, newest first by start time."""
        async with self.manager.session() as db:
            result = await db.execute(
                select(CoachingSession).order_by(CoachingSession.start_time.desc()),
            )
            return [session_to_dict(row) for row in result.scalars().all()]

    async def update(self, session_id: str, fields: dict) -> dict | None:
        """Partial update. None if unknown; SessionTerminatedError if frozen."""
        values = _column_values(fields)
        values.pop("session_id", None)

        async with self.manager.session() as db:
            row = await db.get(CoachingSession, session_id)
            if row is None:
                return None
            if row.end_time is not None:
                raise SessionTerminatedError(session_id)
            for key in _WRITE_ONCE:
                current = getattr(row, key)
                if key in values and current is not None and values[key] != current:
                    raise SessionConflictError(session_id, f"{key} is write-once")

            if values:
                result = await db.execute(
                    update(CoachingSession)
                    .where(
                        CoachingSession.session_id == session_id,
                        CoachingSession.end_time.is_(None),
                    )
                    .values(**values),
                )
                if result.rowcount == 0:
                    await db.rollback()
                    raise SessionTerminatedError(session_id)
                await db.commit()
        return await self.get(session_id)

    async def delete(self, session_id: str) -> bool:
        async with self.manager.session() as db:
            row = await db.get(CoachingSession, session_id)
            if row is None:
                return False
            await db.delete(row)
            await db.commit()
        logger.info("Session deleted", extra={"session_id": session_id})
        return True

    async def list_messages(self, session_id: str) -> list[dict] | None:
        async with self.manager.session() as db:
            exists = await db.scalar(
                select(CoachingSession.session_id)
                .where(CoachingSession.session_id == session_id),
            )
            if exists is None:
                return None
            result = await db.execute(
                select(Message)
                .where(Message.session_id == session_id)
                .order_by(Message.timestamp.asc(), Message.position.asc()),
            )
            return [message_to_dict(m) for m in result.scalars().all()]

    async def append_message(self, session_id: str, message: dict) -> dict | None:
        """Append one message and bump total_messages by exactly one."""
        async with self.manager.session() as db:
            found = (await db.execute(
                select(CoachingSession.end_time)
                .where(CoachingSession.session_id == session_id),
            )).first()
            if found is None:
                return None
            if found.end_time is not None:
                raise SessionTerminatedError(session_id)

            last_position = await db.scalar(
                select(func.max(Message.position))
                .where(Message.session_id == session_id),
            )
            entry = _build_message(
                session_id, message,
                0 if last_position is None else last_position + 1,
            )
            db.add(entry)
            result = await db.execute(
                update(CoachingSession)
                .where(
                    CoachingSession.session_id == session_id,
                    CoachingSession.end_time.is_(None),
                )
                .values(total_messages=CoachingSession.total_messages + 1),
            )
            if result.rowcount == 0:
                await db.rollback()
                raise SessionTerminatedError(session_id)
            await db.commit()
            return message_to_dict(entry)

    async def finalize(self, record: dict) -> dict:
        """Persist a terminated session exactly once."""
        session_id = record["session_id"]
        try:
            return await self.create(record)
        except SessionConflictError:
            logger.info(
                "Session already stored, closing open row",
                extra={"session_id": session_id},
            )
        fields = {k: v for k, v in record.items() if k not in ("session_id", "messages")}
        stored = await self.update(session_id, fields)
        if stored is None:
            raise SessionTerminatedError(session_id)
        return stored
