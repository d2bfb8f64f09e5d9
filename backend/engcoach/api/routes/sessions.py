"""Session Store Routes — CRUD over stored sessions plus the per-country analysis.

Invariants:
    - Every success response uses the {"success": true, "data": ..., "count"?} envelope
    - Unknown session ids → 404 SessionNotFoundError
    - Reads fall back to the local mirror only while the store is unreachable
    - Writes never touch the mirror

Design Decisions:
    - /analysis declared before /{session_id} so the literal path wins
"""

import logging

from fastapi import APIRouter, Depends, status

from engcoach.api.dependencies import get_mirror, get_store
from engcoach.core.errors import SessionNotFoundError, StoreUnavailableError
from engcoach.core.session_analysis import compute_country_analysis
from engcoach.infrastructure.local_mirror import LocalSessionMirror
from engcoach.schemas.session import MessageCreate, SessionCreate, SessionUpdate
from engcoach.services.session_store import SqlSessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


def _ok(data, count: int | None = None, message: str | None = None) -> dict:
    body = {"success": True, "data": data}
    if count is not None:
        body["count"] = count
    if message:
        body["message"] = message
    return body


async def _all_sessions(
    store: SqlSessionStore, mirror: LocalSessionMirror,
) -> list[dict]:
    try:
        return await store.list_all()
    except StoreUnavailableError:
        if not len(mirror):
            raise
        logger.warning("Store unavailable, serving sessions from local mirror")
        return mirror.list_all()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreate, store: SqlSessionStore = Depends(get_store),
):
    """Store a complete session record (optionally with its messages)."""
    record = await store.create(body.to_store())
    return _ok(record, message="Session created successfully")


@router.get("/")
async def list_sessions(
    store: SqlSessionStore = Depends(get_store),
    mirror: LocalSessionMirror = Depends(get_mirror),
):
    """All sessions, newest first."""
    sessions = await _all_sessions(store, mirror)
    return _ok(sessions, count=len(sessions))


@router.get("/analysis")
async def session_analysis(
    store: SqlSessionStore = Depends(get_store),
    mirror: LocalSessionMirror = Depends(get_mirror),
):
    """Per-country satisfaction, engagement and intelligence summary."""
    sessions = await _all_sessions(store, mirror)
    analysis = compute_country_analysis(sessions)
    return _ok(analysis, count=len(analysis["countries"]))


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    store: SqlSessionStore = Depends(get_store),
    mirror: LocalSessionMirror = Depends(get_mirror),
):
    try:
        record = await store.get(session_id)
    except StoreUnavailableError:
        record = mirror.get(session_id)
        if record is None:
            raise
    if record is None:
        raise SessionNotFoundError(session_id)
    return _ok(record)


@router.put("/{session_id}")
async def update_session(
    session_id: str,
    body: SessionUpdate,
    store: SqlSessionStore = Depends(get_store),
):
    """Partial update of a session that has not ended."""
    record = await store.update(session_id, body.to_store())
    if record is None:
        raise SessionNotFoundError(session_id)
    return _ok(record, message="Session updated successfully")


@router.delete("/{session_id}")
async def delete_session(
    session_id: str, store: SqlSessionStore = Depends(get_store),
):
    if not await store.delete(session_id):
        raise SessionNotFoundError(session_id)
    return {"success": True, "message": "Session deleted successfully"}


@router.get("/{session_id}/messages")
async def list_messages(
    session_id: str, store: SqlSessionStore = Depends(get_store),
):
    messages = await store.list_messages(session_id)
    if messages is None:
        raise SessionNotFoundError(session_id)
    return _ok(messages, count=len(messages))


@router.post("/{session_id}/messages", status_code=status.HTTP_201_CREATED)
async def append_message(
    session_id: str,
    body: MessageCreate,
    store: SqlSessionStore = Depends(get_store),
):
    """Append one message; total_messages grows by exactly one."""
    message = await store.append_message(session_id, body.to_store())
    if message is None:
        raise SessionNotFoundError(session_id)
    return _ok(message, message="Message added successfully")
