from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from marketplace_chat.api.middleware.metrics import RequestTimingMiddleware
from marketplace_chat.api.v1.routers import conversations, health, ws
from marketplace_chat.application.exceptions import (
    AuthError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from marketplace_chat.application.ports.directory import ListingDirectory
from marketplace_chat.config import settings
from marketplace_chat.domain.value_objects.enums import BrokerBackend
from marketplace_chat.infrastructure.bus.broker import LocalBroker
from marketplace_chat.infrastructure.bus.redis_pubsub import RedisBroker
from marketplace_chat.infrastructure.db.session import dispose_engine
from marketplace_chat.infrastructure.directory.listings import (
    AnyListingDirectory,
    HttpListingDirectory,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    relay: RedisBroker | None = None
    if settings.BROKER_BACKEND == BrokerBackend.REDIS:
        app.state.redis = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        logger.info("Redis connection pool created")
        relay = RedisBroker(app.state.redis, settings.REDIS_PUBSUB_CHANNEL, app.state.local_broker)
        await relay.start()
        app.state.broker = relay

    yield

    if relay is not None:
        await relay.stop()
        app.state.broker = app.state.local_broker
        await app.state.redis.aclose()
        app.state.redis = None
        logger.info("Redis connection pool closed")
    if isinstance(app.state.listings, HttpListingDirectory):
        await app.state.listings.aclose()
    await dispose_engine()


def _listing_directory() -> ListingDirectory:
    if settings.LISTINGS_API_URL:
        return HttpListingDirectory(settings.LISTINGS_API_URL)
    return AnyListingDirectory()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marketplace Chat Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.redis = None
    app.state.local_broker = LocalBroker(settings.BROKER_QUEUE_SIZE)
    app.state.broker = app.state.local_broker
    app.state.listings = _listing_directory()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(AuthError)
    async def _unauthorized(_req: Request, exc: AuthError) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def _bad_request(_req: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": "Malformed request body"})

    @app.exception_handler(TransportError)
    async def _unavailable(_req: Request, exc: TransportError) -> JSONResponse:
        logger.warning("Upstream failure: %s", exc.detail)
        return JSONResponse(status_code=503, content={"detail": exc.detail})
