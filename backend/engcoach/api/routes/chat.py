"""Chat Routes — live coaching sessions and the SSE turn stream.

Invariants:
    - Unknown live session → 404; ended session → 409, both before the stream opens
    - Each POST /messages streams: user_message, then assistant_delta* and
      assistant_message (or session_ended), then done
    - Oracle failures arrive as an error event inside the stream, never as an HTTP error

Design Decisions:
    - StreamingResponse for SSE: event_generator yields formatted SSE lines
    - Client address from the request is used only for the one location lookup
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import StreamingResponse

from engcoach.api.dependencies import get_engine
from engcoach.core.errors import CoachError
from engcoach.schemas.chat import ChatTurn
from engcoach.services.conversation_engine import ConversationEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/chat/sessions", tags=["chat"])

# SSE headers prevent proxy/browser buffering of streamed events.
_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


def _sse_line(event: dict) -> str:
    """Format event as SSE data line."""
    return f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"


@router.post("/", status_code=status.HTTP_201_CREATED)
async def start_session(
    request: Request, engine: ConversationEngine = Depends(get_engine),
):
    """Open a live session; the greeting is already in its log."""
    client_ip = request.client.host if request.client else None
    session = await engine.start_session(client_ip)
    return {"success": True, "data": session.to_view()}


@router.get("/{session_id}")
async def get_live_session(
    session_id: str, engine: ConversationEngine = Depends(get_engine),
):
    session = engine.get_session(session_id)
    view = session.to_view()
    view["report"] = engine.finished_record(session_id)
    return {"success": True, "data": view}


@router.post("/{session_id}/messages")
async def send_message(
    session_id: str,
    body: ChatTurn,
    engine: ConversationEngine = Depends(get_engine),
):
    """Run one user turn and stream its events."""
    engine.require_open(session_id)

    async def event_generator():
        try:
            async for event in engine.handle_user_message(session_id, body.text):
                yield _sse_line(event)
        except asyncio.CancelledError:
            logger.info(
                "SSE stream cancelled by client",
                extra={"session_id": session_id},
            )
            raise
        except CoachError as e:
            logger.error(
                f"Turn failed: {e.message}",
                extra={"session_id": session_id, "error_code": e.code},
            )
            yield _sse_line(e.to_sse_event())
            yield _sse_line({"type": "done", "data": {"error": True}})
        except Exception as e:
            logger.error(f"Unexpected error in turn stream: {e}", exc_info=True)
            yield _sse_line({
                "type": "error",
                "data": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "severity": "critical",
                    "recoverable": False,
                },
            })
            yield _sse_line({"type": "done", "data": {"error": True}})

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )


@router.post("/{session_id}/end")
async def end_session(
    session_id: str, engine: ConversationEngine = Depends(get_engine),
):
    """Dashboard trigger: finish the session with satisfaction "Not provided"."""
    record = await engine.end_session(session_id)
    if record is None:
        return {"success": True, "persisted": False, "data": None}
    return {"success": True, "persisted": True, "data": record}
