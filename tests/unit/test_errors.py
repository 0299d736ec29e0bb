"""Unit tests for the AppError hierarchy and the FastAPI error handlers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from errors import (
    AccountDeactivatedError,
    AccountNotFoundError,
    AppError,
    AuthenticationError,
    ConflictError,
    ExpiredTokenError,
    ForbiddenError,
    InvalidOtpError,
    InvalidSignatureError,
    MalformedTokenError,
    NoTokenError,
    NotFoundError,
    OtpAttemptsExceededError,
    RateLimitError,
    RevokedTokenError,
    UpstreamError,
    ValidationError,
    register_error_handlers,
)


class TestAppErrorSubclasses:
    @pytest.mark.parametrize(
        "cls, status, code",
        [
            (ValidationError, 400, "validation_error"),
            (AuthenticationError, 401, "authentication_error"),
            (ForbiddenError, 403, "forbidden"),
            (NotFoundError, 404, "not_found"),
            (ConflictError, 409, "conflict"),
            (RateLimitError, 429, "rate_limit_exceeded"),
            (UpstreamError, 503, "upstream_failure"),
        ],
    )
    def test_status_and_code(self, cls, status, code):
        e = cls("boom")
        assert e.status_code == status
        assert e.error_code == code
        assert e.message == "boom"
        assert isinstance(e, AppError)

    def test_code_override(self):
        e = NotFoundError("No active OTP", code="otp_not_found")
        assert e.error_code == "otp_not_found"
        # class default untouched
        assert NotFoundError.error_code == "not_found"


class TestOtpErrors:
    def test_invalid_otp_default_message(self):
        e = InvalidOtpError()
        assert e.status_code == 400
        assert e.error_code == "invalid_or_expired_otp"
        assert e.message == "Invalid or expired OTP"

    def test_attempts_exceeded_is_rate_limit(self):
        e = OtpAttemptsExceededError("too many", retry_after=900)
        assert e.status_code == 429
        assert e.error_code == "otp_attempts_exceeded"
        assert e.retry_after == 900


class TestTokenErrors:
    @pytest.mark.parametrize(
        "cls, code",
        [
            (NoTokenError, "no_token"),
            (MalformedTokenError, "malformed_token"),
            (ExpiredTokenError, "token_expired"),
            (InvalidSignatureError, "invalid_signature"),
            (RevokedTokenError, "token_revoked"),
            (AccountNotFoundError, "account_not_found"),
        ],
    )
    def test_distinct_codes_are_401(self, cls, code):
        e = cls("nope")
        assert e.status_code == 401
        assert e.error_code == code

    def test_deactivated_is_403(self):
        assert AccountDeactivatedError("off").status_code == 403

    def test_as_forbidden_keeps_code(self):
        forbidden = ExpiredTokenError("Token has expired").as_forbidden()
        assert isinstance(forbidden, ForbiddenError)
        assert forbidden.status_code == 403
        assert forbidden.error_code == "token_expired"
        assert forbidden.message == "Token has expired"


class TestAppErrorToDict:
    def test_basic(self):
        e = NotFoundError("Driver not found")
        assert e.to_dict() == {
            "success": False,
            "message": "Driver not found",
            "code": "not_found",
        }

    @pytest.mark.parametrize(
        "kwargs, key, value",
        [
            ({"field": "phoneNumber"}, "field", "phoneNumber"),
            ({"details": {"min": 6, "max": 15}}, "details", {"min": 6, "max": 15}),
            ({"retry_after": 42}, "retryAfter", 42),
        ],
        ids=["with_field", "with_details", "with_retry_after"],
    )
    def test_optional_key_present(self, kwargs, key, value):
        e = ValidationError("invalid", **kwargs)
        assert e.to_dict()[key] == value

    def test_no_optional_keys_when_absent(self):
        d = NotFoundError("missing").to_dict()
        assert "field" not in d
        assert "details" not in d
        assert "retryAfter" not in d


# ── Handlers ─────────────────────────────────────────────────────────────────


class _Body(BaseModel):
    phone: str


def _app() -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/rate-limited")
    async def rate_limited():
        raise RateLimitError("slow down", retry_after=30)

    @app.get("/unauthenticated")
    async def unauthenticated():
        raise ExpiredTokenError("Token has expired")

    @app.post("/body")
    async def body(payload: _Body):
        return {"ok": True}

    @app.get("/crash")
    async def crash():
        raise RuntimeError("kaboom")

    return app


class TestErrorHandlers:
    def test_rate_limit_sets_retry_after_header(self):
        with TestClient(_app()) as client:
            resp = client.get("/rate-limited")
        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "30"
        assert resp.json()["retryAfter"] == 30

    def test_401_sets_www_authenticate(self):
        with TestClient(_app()) as client:
            resp = client.get("/unauthenticated")
        assert resp.status_code == 401
        assert resp.headers["WWW-Authenticate"] == "Bearer"
        assert resp.json()["code"] == "token_expired"

    def test_request_validation_uses_envelope(self):
        with TestClient(_app()) as client:
            resp = client.post("/body", json={})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "validation_error"
        assert body["field"] == "phone"
        assert body["details"]

    def test_unhandled_exception_is_500(self):
        with TestClient(_app(), raise_server_exceptions=False) as client:
            resp = client.get("/crash")
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "message": "An internal server error occurred.",
            "code": "internal_error",
        }
