"""
FastAPI application factory.
create_app() is the single entry point for building the app.

The lifespan builds every client once (MongoDB, Redis, HTTP, SMS notifier,
media storage), wires the per-variant services onto app.state.services and
closes the clients on shutdown.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.redis_client import close_redis_client, create_redis_client
from infrastructure.http_client import HttpClient
from infrastructure.sms.factory import create_notifier
from infrastructure.storage.s3 import S3MediaStorage
from middleware.request_context import RequestContextMiddleware
from repositories.indexes import ensure_indexes
from routes.account_routes import create_account_router
from routes.health_routes import router as health_router
from routes.otp_routes import create_otp_router
from services.container import build_variant_services
from services.variants import VARIANTS
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def include_routers(app: FastAPI) -> None:
    """Mount the health router and the OTP/account routers of every variant."""
    app.include_router(health_router)
    for variant in VARIANTS.values():
        app.include_router(create_otp_router(variant))
        app.include_router(create_account_router(variant))


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(
        log_level=settings.logging.log_level,
        log_format=settings.logging.log_format,
        production=settings.is_production,
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            environment=settings.env,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        app.state.settings = settings

        # Redis is optional; without it OTP throttling counts documents
        redis_client = await create_redis_client(settings.redis.redis_uri)
        app.state.redis = redis_client

        http_client = HttpClient(timeout=settings.sms.sms_timeout_seconds)
        app.state.http_client = http_client

        storage = None
        if settings.storage.is_configured:
            storage = S3MediaStorage(settings.storage)
        else:
            log.info("media_storage_not_configured")

        app.state.services = build_variant_services(
            app.state.db,
            settings,
            notifier=create_notifier(settings, http_client),
            redis_client=redis_client,
            storage=storage,
        )
        await ensure_indexes(app.state.db, VARIANTS.values())
        log.info("app_started", env=settings.env, variants=list(VARIANTS))

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        await close_redis_client(redis_client)
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # all origins allowed with credentials support.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    register_error_handlers(app)
    include_routers(app)

    return app
