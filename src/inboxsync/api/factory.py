"""FastAPI application factory.

The store, task client and simulator are built on startup and disposed
on shutdown (lifespan). Tests pass a ready-made Inbox instead; in that
case the caller keeps ownership and nothing is closed here.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from inboxsync.config import Settings
from inboxsync.domain.inbox import Inbox
from inboxsync.domain.status_simulator import StatusSimulator
from inboxsync.infra.store import InMemoryMessageStore, MessageStore
from inboxsync.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from inboxsync.observability.logging import configure_logging, get_logger
from inboxsync.observability.redaction import safe_log_context
from inboxsync.tasks.client import TasksClient

from .routers import public
from .routes import conversations, messages, webhooks

logger = get_logger(__name__)


def build_store(settings: Settings) -> MessageStore:
    """Create the configured MessageStore. Caller must close() it."""
    if settings.store_backend == "postgres":
        from inboxsync.infra.repositories.messages_repository import PostgresMessageStore

        return PostgresMessageStore.from_dsn(
            settings.database_url,
            maxconn=settings.db_pool_max,
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )
    return InMemoryMessageStore()


def build_inbox(settings: Settings, store: MessageStore) -> tuple[Inbox, StatusSimulator | None]:
    """Wire an Inbox (and its simulator, if enabled) around a store."""
    simulator = None
    if settings.simulate_status:
        simulator = StatusSimulator(
            store,
            TasksClient(settings.tasks_backend),
            delivered_after=settings.delivered_after_seconds,
            read_after=settings.read_after_seconds,
        )
    return Inbox(store, simulator=simulator), simulator


def create_app(settings: Settings | None = None, inbox: Inbox | None = None) -> FastAPI:
    """Create FastAPI app.

    Args:
        settings: Explicit settings. If None, read from environment.
        inbox: Pre-built Inbox (tests). If None, one is built on startup.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings.from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if inbox is not None:
            yield
            return

        store = build_store(settings)
        built, simulator = build_inbox(settings, store)
        app.state.inbox = built
        logger.info(
            "inbox started",
            extra={
                "extra_fields": safe_log_context(
                    store_backend=settings.store_backend,
                    simulate_status=settings.simulate_status,
                )
            },
        )
        try:
            yield
        finally:
            if simulator is not None:
                simulator.shutdown()
            store.close()
            logger.info("inbox stopped")

    app = FastAPI(
        title="inboxsync",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    if inbox is not None:
        app.state.inbox = inbox

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    app.include_router(webhooks.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)

    return app
