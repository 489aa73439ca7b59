from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from amen_messaging.api.middleware.correlation_id import CorrelationIdMiddleware
from amen_messaging.api.middleware.metrics import RequestTimingMiddleware
from amen_messaging.api.v1.routers import (
    attachments,
    blocks,
    conversations,
    groups,
    health,
    message_requests,
    messages,
    typing_status,
    ws,
)
from amen_messaging.application import notifications
from amen_messaging.application.exceptions import AppError, NetworkError
from amen_messaging.application.sync.codec import change_from_event
from amen_messaging.application.sync.synchronizer import LiveViewSynchronizer
from amen_messaging.config import settings
from amen_messaging.infrastructure.bus.redis_pubsub import (
    RedisPubSubPublisher,
    RedisPubSubSubscriber,
)
from amen_messaging.infrastructure.db.session import uow_scope
from amen_messaging.infrastructure.db.snapshot_loader import DbSnapshotLoader
from amen_messaging.infrastructure.notifications.redis_stream_dispatcher import (
    RedisStreamNotificationDispatcher,
)
from amen_messaging.infrastructure.presence.redis_typing_store import RedisTypingStore
from amen_messaging.infrastructure.storage.http_storage import HttpAttachmentStorage

logger = logging.getLogger(__name__)


def _pubsub_handler(synchronizer: LiveViewSynchronizer):
    async def on_event(event_type: str, data: dict[str, Any]) -> None:
        """Feed a Redis Pub/Sub change event to local live views."""
        change = change_from_event(event_type, data)
        if change is not None:
            synchronizer.apply(change)

    return on_event


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    app.state.publisher = RedisPubSubPublisher(app.state.redis)
    app.state.typing_store = RedisTypingStore(app.state.redis, settings.TYPING_KEY_PREFIX)
    app.state.notifier = RedisStreamNotificationDispatcher(
        app.state.redis, settings.NOTIFICATIONS_STREAM,
    )
    app.state.http_client = httpx.AsyncClient(timeout=settings.STORAGE_TIMEOUT_SECONDS)
    app.state.storage = HttpAttachmentStorage(
        app.state.http_client,
        settings.STORAGE_BASE_URL,
        public_url=settings.STORAGE_PUBLIC_URL,
        api_key=settings.STORAGE_API_KEY,
    )
    app.state.synchronizer = LiveViewSynchronizer(
        DbSnapshotLoader(app.state.uow_factory, app.state.typing_store),
        typing_timeout_seconds=settings.TYPING_TIMEOUT_SECONDS,
    )

    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.REDIS_PUBSUB_CHANNEL,
        _pubsub_handler(app.state.synchronizer),
    )
    await subscriber.start()
    app.state.pubsub_subscriber = subscriber

    yield

    ws.get_manager().close_all()
    await subscriber.stop()
    await notifications.drain()
    await app.state.http_client.aclose()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Amen Messaging Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    # Units of work opened outside a request (WebSocket frames, snapshot loads).
    app.state.uow_factory = uow_scope

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware, slow_request_ms=settings.SLOW_REQUEST_MS)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(message_requests.router)
    app.include_router(groups.router)
    app.include_router(blocks.router)
    app.include_router(typing_status.router)
    app.include_router(attachments.router)
    app.include_router(ws.router)

    return app


def _error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code, "retryable": exc.retryable},
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(_req: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("%s: %s", exc.code, exc.detail)
        return _error_response(exc)

    @app.exception_handler(OperationalError)
    async def _db_unavailable(_req: Request, exc: OperationalError) -> JSONResponse:
        logger.error("Database unavailable: %s", exc.orig)
        return _error_response(NetworkError("Database unavailable"))
