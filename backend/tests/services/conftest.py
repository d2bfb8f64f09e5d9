"""Service test fixtures — async DB, wired services and the FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - The app's services are replaced on app.state for the duration of a test
    - The oracle, delivery channel and location lookup are fakes (tests/services/fakes.py)

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for store and route tests
    - DatabaseSessionManager built around the test engine (no pool sizing, no real URL)
    - ASGITransport does not run the lifespan, so app.state is wired here directly
"""

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from engcoach.db.base import Base
from engcoach.infrastructure.database import DatabaseSessionManager
from engcoach.infrastructure.local_mirror import LocalSessionMirror
from engcoach.main import app
from engcoach.services.conversation_engine import ConversationEngine
from engcoach.services.report_synthesizer import ReportSynthesizer
from engcoach.services.session_store import SqlSessionStore
from engcoach.services.verification_gate import VerificationGate

import engcoach.models  # noqa: F401  (populate Base.metadata)
from tests.services.fakes import FakeChannel, FakeClock, FakeLocation, FakeOracle


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def db_manager(test_engine, test_session_factory):
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    return manager


@pytest.fixture
def store(db_manager):
    return SqlSessionStore(db_manager)


@pytest.fixture
def mirror():
    return LocalSessionMirror()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def location():
    return FakeLocation()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def gate(channel, clock):
    return VerificationGate(channel, clock=clock)


@pytest.fixture
def engine(oracle, store, mirror, location, clock):
    return ConversationEngine(
        oracle=oracle,
        synthesizer=ReportSynthesizer(oracle),
        store=store,
        mirror=mirror,
        location=location,
        clock=clock,
    )


@pytest.fixture
async def client(db_manager, store, mirror, gate, engine):
    """FastAPI test client with services wired onto app.state."""
    app.state.db_manager = db_manager
    app.state.store = store
    app.state.mirror = mirror
    app.state.gate = gate
    app.state.engine = engine

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    for name in ("db_manager", "store", "mirror", "gate", "engine"):
        if hasattr(app.state, name):
            delattr(app.state, name)
