"""Route Dependencies — hand the lifespan-built services to route handlers.

Invariants:
    - Every service lives on app.state; routes never construct their own
    - Tests swap services by assigning app.state attributes
"""

from fastapi import Request

from engcoach.infrastructure.database import DatabaseSessionManager
from engcoach.infrastructure.local_mirror import LocalSessionMirror
from engcoach.services.conversation_engine import ConversationEngine
from engcoach.services.session_store import SqlSessionStore
from engcoach.services.verification_gate import VerificationGate


def get_db_manager(request: Request) -> DatabaseSessionManager | None:
    return getattr(request.app.state, "db_manager", None)


def get_store(request: Request) -> SqlSessionStore:
    return request.app.state.store


def get_mirror(request: Request) -> LocalSessionMirror:
    return request.app.state.mirror


def get_engine(request: Request) -> ConversationEngine:
    return request.app.state.engine


def get_gate(request: Request) -> VerificationGate:
    return request.app.state.gate
