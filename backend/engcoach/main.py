"""Engineering AI Coach API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CoachError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Every service is built once in the lifespan and stored on app.state
    - The verification sweep and idle-session eviction tasks are cancelled on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - build_services() separate from the lifespan so tests can wire their own
"""

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from engcoach.api.error_handlers import register_error_handlers
from engcoach.api.routes import chat, health, sessions, verification
from engcoach.config import Settings, get_settings
from engcoach.infrastructure.anthropic_client import ResilientAnthropicClient
from engcoach.infrastructure.database import DatabaseSessionManager
from engcoach.infrastructure.email_channel import SmtpCodeChannel
from engcoach.infrastructure.local_mirror import LocalSessionMirror
from engcoach.infrastructure.location_lookup import IpLocationLookup
from engcoach.infrastructure.observability import setup_logging
from engcoach.services.coach_oracle import AnthropicCoachOracle
from engcoach.services.conversation_engine import ConversationEngine, run_session_evictor
from engcoach.services.report_synthesizer import ReportSynthesizer
from engcoach.services.session_store import SqlSessionStore
from engcoach.services.verification_gate import VerificationGate, run_sweeper

logger = logging.getLogger(__name__)


def build_services(app: FastAPI, settings: Settings) -> None:
    """Construct the service graph and attach it to app.state."""
    manager = DatabaseSessionManager(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    store = SqlSessionStore(manager)
    mirror = LocalSessionMirror(settings.local_mirror_path)
    oracle = AnthropicCoachOracle(
        ResilientAnthropicClient(
            api_key=settings.anthropic_api_key,
            max_retries=settings.anthropic_max_retries,
            base_delay_ms=settings.anthropic_base_delay_ms,
            max_delay_ms=settings.anthropic_max_delay_ms,
            timeout_seconds=settings.anthropic_timeout_seconds,
        ),
        coach_model=settings.coach_model,
        classifier_model=settings.classifier_model,
        coach_max_tokens=settings.coach_max_tokens,
        report_max_tokens=settings.report_max_tokens,
    )
    channel = SmtpCodeChannel(
        settings.smtp_host,
        port=settings.smtp_port,
        user=settings.smtp_user,
        password=settings.smtp_password,
        sender=settings.smtp_sender,
        timeout_seconds=settings.smtp_timeout_seconds,
        ttl_minutes=settings.otp_ttl_seconds // 60,
    )

    app.state.db_manager = manager
    app.state.store = store
    app.state.mirror = mirror
    app.state.gate = VerificationGate(
        channel, ttl=timedelta(seconds=settings.otp_ttl_seconds),
    )
    app.state.engine = ConversationEngine(
        oracle=oracle,
        synthesizer=ReportSynthesizer(oracle),
        store=store,
        mirror=mirror,
        location=IpLocationLookup(
            settings.location_lookup_url, settings.location_timeout_seconds,
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    build_services(app, settings)
    if not settings.smtp_configured:
        logger.warning("SMTP not configured, verification codes cannot be sent")

    background = [
        asyncio.create_task(
            run_sweeper(app.state.gate, settings.otp_sweep_interval_seconds),
        ),
        asyncio.create_task(
            run_session_evictor(
                app.state.engine,
                settings.session_evict_interval_seconds,
                timedelta(seconds=settings.session_idle_ttl_seconds),
            ),
        ),
    ]
    logger.info("Engineering AI Coach API started")
    yield
    logger.info("Engineering AI Coach API shutting down")
    for task in background:
        task.cancel()
    for task in background:
        with contextlib.suppress(asyncio.CancelledError):
            await task
    await app.state.db_manager.dispose()


app = FastAPI(
    title="Engineering AI Coach API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(sessions.router)
app.include_router(chat.router)
app.include_router(verification.router)

register_error_handlers(app)

# Static files: the frontend build in production
# Mounted after the API routes so /api/v1/* takes precedence
if os.path.isdir("static"):
    app.mount("/", StaticFiles(directory="static", html=True), name="static")
