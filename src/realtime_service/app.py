from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from realtime_service.api.deps import build_verifier
from realtime_service.api.middleware.correlation_id import CorrelationIdMiddleware
from realtime_service.api.v1.routers import (
    groups,
    health,
    messages,
    notifications,
    presence,
    ws,
)
from realtime_service.application.exceptions import (
    AppError,
    AuthRequiredError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PersistenceError,
    TargetUnreachableError,
    ValidationError,
)
from realtime_service.application.ports.auth import TokenVerifier
from realtime_service.application.ports.clock import Clock
from realtime_service.application.uow import UowFactory
from realtime_service.config import Settings, settings
from realtime_service.infrastructure.bus.redis_pubsub import (
    RedisPubSubSubscriber,
    notification_callback,
)
from realtime_service.infrastructure.db.session import dispose_engine
from realtime_service.infrastructure.db.uow import sqlalchemy_uow
from realtime_service.services.dispatcher import FrameDispatcher
from realtime_service.services.hub import build_hub

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    config: Settings = app.state.settings
    hub = app.state.hub

    app.state.redis = aioredis.from_url(config.REDIS_URL, decode_responses=True)
    logger.info("Redis connection pool created")

    subscriber: RedisPubSubSubscriber | None = None
    if app.state.enable_pubsub:
        subscriber = RedisPubSubSubscriber(
            app.state.redis,
            config.REDIS_PUBSUB_CHANNEL,
            notification_callback(hub.fanout),
        )
        await subscriber.start()
    app.state.pubsub_subscriber = subscriber

    await hub.start()
    logger.info("Realtime hub started")

    yield

    await hub.stop()
    if subscriber is not None:
        await subscriber.stop()
    await app.state.redis.aclose()
    await dispose_engine()
    logger.info("Realtime hub stopped, Redis and database pools closed")


def create_app(
    *,
    uow_factory: UowFactory | None = None,
    verifier: TokenVerifier | None = None,
    clock: Clock | None = None,
    config: Settings | None = None,
    enable_pubsub: bool = True,
) -> FastAPI:
    config = config or settings
    uow_factory = uow_factory or sqlalchemy_uow
    verifier = verifier or build_verifier(config)

    app = FastAPI(
        title="Realtime Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    hub = build_hub(uow_factory, clock=clock, config=config)
    app.state.settings = config
    app.state.uow_factory = uow_factory
    app.state.verifier = verifier
    app.state.hub = hub
    app.state.dispatcher = FrameDispatcher(
        hub,
        auth_mode=config.WS_AUTH_MODE,
        verifier=verifier,
        max_unauthenticated_frames=config.WS_MAX_UNAUTHENTICATED_FRAMES,
    )
    app.state.enable_pubsub = enable_pubsub
    app.state.redis = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(groups.router)
    app.include_router(notifications.router)
    app.include_router(presence.router)
    app.include_router(ws.router)

    return app


_STATUS_BY_ERROR: dict[type[AppError], int] = {
    AuthRequiredError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    TargetUnreachableError: 409,
    ValidationError: 422,
    PersistenceError: 503,
}


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(_req: Request, exc: AppError) -> JSONResponse:
        status_code = next(
            (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
            400,
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.detail, "code": exc.code},
        )
