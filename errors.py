"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handlers
convert AppError subclasses and request-validation failures into one JSON
envelope: {"success": false, "message": ..., "code": ...}.

Token failures each carry their own stable code so clients can tell
"sign in again" (expired, revoked, account gone) from a malformed request.

Non-AppError exceptions become 500s (with Sentry reporting when configured).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
        code: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details
        self.retry_after = retry_after
        if code is not None:
            self.error_code = code

    def to_dict(self) -> dict:
        payload: dict = {
            "success": False,
            "message": self.message,
            "code": self.error_code,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        if self.retry_after is not None:
            payload["retryAfter"] = self.retry_after
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class UpstreamError(AppError):
    """A provider (SMS, storage, database write) failed; the client may retry."""

    status_code = 503
    error_code = "upstream_failure"


# ── OTP errors ────────────────────────────────────────────────────────────────


class InvalidOtpError(ValidationError):
    """Wrong, expired and already-used codes are deliberately indistinguishable."""

    error_code = "invalid_or_expired_otp"

    def __init__(self, message: str = "Invalid or expired OTP", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class OtpAttemptsExceededError(RateLimitError):
    error_code = "otp_attempts_exceeded"


# ── Token errors ──────────────────────────────────────────────────────────────


class TokenError(AuthenticationError):
    """Base for access/refresh token failures."""

    def as_forbidden(self) -> ForbiddenError:
        """Re-express this failure as a 403, keeping the distinct code."""
        return ForbiddenError(self.message, code=self.error_code)


class NoTokenError(TokenError):
    error_code = "no_token"


class MalformedTokenError(TokenError):
    error_code = "malformed_token"


class ExpiredTokenError(TokenError):
    error_code = "token_expired"


class InvalidSignatureError(TokenError):
    error_code = "invalid_signature"


class RevokedTokenError(TokenError):
    error_code = "token_revoked"


class AccountNotFoundError(TokenError):
    error_code = "account_not_found"


class AccountDeactivatedError(TokenError):
    status_code = 403
    error_code = "account_deactivated"


def _error_response(exc: AppError) -> JSONResponse:
    headers = None
    if exc.retry_after is not None:
        headers = {"Retry-After": str(exc.retry_after)}
    elif exc.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_dict(), headers=headers
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part != "body"]
        error = ValidationError(
            first.get("msg", "Invalid request body"),
            field=".".join(loc) or None,
            details=[
                {"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors
            ],
        )
        return _error_response(error)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "An internal server error occurred.",
                "code": "internal_error",
            },
        )
