"""
FastAPI dependency providers.

Plain functions used with FastAPI's Depends() system. Everything is read
from app.state, which the lifespan populates; handlers never reach for
module globals.

Variant-scoped providers are built by small factories because each OTP
router is mounted once per AccountVariant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import AppSettings
from schemas.models.account import AccountDoc
from services.auth_service import AuthService
from services.container import VariantServices
from services.media_service import MediaService
from services.variants import AccountVariant

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """The verified caller of a protected route."""

    account: AccountDoc
    claims: dict[str, Any]
    access_token: str


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def _variant_services(request: Request, variant: AccountVariant) -> VariantServices:
    return request.app.state.services[variant.name]


def auth_service_for(variant: AccountVariant) -> Callable[[Request], AuthService]:
    def get_auth_service(request: Request) -> AuthService:
        return _variant_services(request, variant).auth

    return get_auth_service


def media_service_for(variant: AccountVariant) -> Callable[[Request], MediaService]:
    def get_media_service(request: Request) -> MediaService:
        return _variant_services(request, variant).media

    return get_media_service


def current_account_for(variant: AccountVariant):
    """Build a dependency that authenticates a bearer access token for *variant*.

    Token failures surface as 401 with a distinct code (no_token,
    token_expired, token_revoked, ...); a deactivated account is a 403.
    """
    get_auth_service = auth_service_for(variant)

    async def get_current_account(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
        auth: AuthService = Depends(get_auth_service),
    ) -> AuthContext:
        token = credentials.credentials if credentials else None
        account, claims = await auth.tokens.verify_access(token)
        return AuthContext(account=account, claims=claims, access_token=token)

    return get_current_account
