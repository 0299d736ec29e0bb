"""Integration tests for GET /health."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError
from redis.exceptions import ConnectionError as RedisConnectionError

from errors import register_error_handlers
from middleware.request_context import RequestContextMiddleware
from routes.health_routes import router as health_router

MONGO_OK = "ok"
MONGO_DOWN = "down"
REDIS_OK = "ok"
REDIS_DOWN = "down"
REDIS_ABSENT = "absent"


def _app(mongo: str, redis: str) -> FastAPI:
    """A bare app whose lifespan injects mocked MongoDB and Redis handles."""
    db = MagicMock()
    if mongo == MONGO_OK:
        db.client.admin.command = AsyncMock(return_value={"ok": 1})
    else:
        db.client.admin.command = AsyncMock(
            side_effect=ServerSelectionTimeoutError("no primary")
        )

    redis_client = None
    if redis == REDIS_OK:
        redis_client = MagicMock()
        redis_client.ping = AsyncMock(return_value=True)
    elif redis == REDIS_DOWN:
        redis_client = MagicMock()
        redis_client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.db = db
        app.state.redis = redis_client
        yield

    app = FastAPI(lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)
    app.include_router(health_router)
    return app


@pytest.mark.parametrize(
    "mongo, redis, status_code, status, checks",
    [
        (MONGO_OK, REDIS_OK, 200, "healthy", {"mongodb": "ok", "redis": "ok"}),
        (MONGO_OK, REDIS_DOWN, 200, "degraded", {"mongodb": "ok", "redis": "error"}),
        (
            MONGO_OK,
            REDIS_ABSENT,
            200,
            "degraded",
            {"mongodb": "ok", "redis": "not_configured"},
        ),
        (MONGO_DOWN, REDIS_OK, 503, "unhealthy", {"mongodb": "error", "redis": "ok"}),
        (
            MONGO_DOWN,
            REDIS_ABSENT,
            503,
            "unhealthy",
            {"mongodb": "error", "redis": "not_configured"},
        ),
    ],
    ids=[
        "all_ok",
        "redis_down_rate_limiter_falls_back",
        "redis_not_configured",
        "mongo_down",
        "mongo_down_no_redis",
    ],
)
def test_health(mongo, redis, status_code, status, checks):
    with TestClient(_app(mongo, redis)) as client:
        resp = client.get("/health")
    assert resp.status_code == status_code
    assert resp.json() == {"status": status, "checks": checks}


def test_request_id_is_echoed():
    with TestClient(_app(MONGO_OK, REDIS_OK)) as client:
        resp = client.get("/health", headers={"X-Request-ID": "req_fromclient"})
    assert resp.headers["X-Request-ID"] == "req_fromclient"
