"""
Token Service: access/refresh JWT pairs for one account variant.

Access and refresh tokens are signed with separate secrets, so a refresh
token can never pass as an access token (and vice versa) even before the
`type` claim is checked. Each token carries a random `jti`, so two pairs
minted in the same second still differ.

The stored refresh token on the account is the session: rotation is a
compare-and-set on that field and logout clears it. For variants with
blacklisting enabled, logout also records the hash of the presented access
token until it would have expired on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import jwt

from config import JWTSettings
from errors import (
    AccountDeactivatedError,
    AccountNotFoundError,
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    NoTokenError,
    RevokedTokenError,
)
from repositories.account_repository import AccountRepository
from repositories.base import IdLike
from repositories.blacklist_repository import BlacklistRepository
from schemas.models.account import AccountDoc
from schemas.models.token import BlacklistedTokenDoc
from services.variants import AccountVariant
from shared.crypto import hash_token
from shared.datetime_utils import expires_in, utcnow
from shared.generators import generate_token_id
from shared.logging import get_logger

log = get_logger(__name__)

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_in: int
    token_type: str = "Bearer"


class TokenService:
    def __init__(
        self,
        settings: JWTSettings,
        accounts: AccountRepository,
        variant: AccountVariant,
        *,
        blacklist: Optional[BlacklistRepository] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not settings.jwt_access_secret or not settings.jwt_refresh_secret:
            raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be set")
        self._settings = settings
        self._accounts = accounts
        self._variant = variant
        self._blacklist = blacklist if variant.blacklist_on_logout else None
        self._now = clock

    # ── Signing ──────────────────────────────────────────────────────────────

    def _secret(self, token_type: str) -> str:
        if token_type == ACCESS:
            return self._settings.jwt_access_secret
        return self._settings.jwt_refresh_secret

    def _encode(self, claims: dict[str, Any], token_type: str, ttl: int) -> str:
        now = self._now()
        claims = {
            **claims,
            "variant": self._variant.name,
            "type": token_type,
            "jti": generate_token_id(),
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "iat": int(now.timestamp()),
            "exp": int(expires_in(ttl, now=now).timestamp()),
        }
        return jwt.encode(
            claims, self._secret(token_type), algorithm=self._settings.jwt_algorithm
        )

    def issue(self, account: AccountDoc) -> TokenPair:
        access_ttl = self._settings.access_token_ttl_seconds
        refresh_ttl = self._settings.refresh_token_ttl_seconds
        account_id = str(account.id)
        access = self._encode(
            {
                "accountId": account_id,
                "phone": account.full_phone_number,
                "role": account.role,
            },
            ACCESS,
            access_ttl,
        )
        refresh = self._encode({"accountId": account_id}, REFRESH, refresh_ttl)
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            expires_in=access_ttl,
            refresh_expires_in=refresh_ttl,
        )

    # ── Verification ─────────────────────────────────────────────────────────

    def _decode(self, token: Optional[str], token_type: str) -> dict[str, Any]:
        if not token:
            raise NoTokenError("No token provided")
        try:
            claims = jwt.decode(
                token,
                self._secret(token_type),
                algorithms=[self._settings.jwt_algorithm],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options={"require": ["exp", "iat", "jti"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise ExpiredTokenError("Token has expired") from e
        except jwt.InvalidSignatureError as e:
            raise InvalidSignatureError("Invalid token signature") from e
        except jwt.DecodeError as e:
            raise MalformedTokenError("Malformed token") from e
        except jwt.InvalidTokenError as e:
            raise InvalidSignatureError("Invalid token") from e

        if claims.get("type") != token_type:
            raise InvalidSignatureError(f"Wrong token type, expected {token_type}")
        if claims.get("variant") != self._variant.name or not claims.get("accountId"):
            raise InvalidSignatureError("Invalid token")
        return claims

    async def decode_access(self, token: Optional[str]) -> dict[str, Any]:
        """Return the claims of a valid, non-revoked access token."""
        if token and self._blacklist is not None:
            if await self._blacklist.contains(hash_token(token)):
                raise RevokedTokenError("Token has been revoked")
        return self._decode(token, ACCESS)

    def decode_refresh(self, token: Optional[str]) -> dict[str, Any]:
        return self._decode(token, REFRESH)

    async def load_account(self, account_id: IdLike) -> AccountDoc:
        account = await self._accounts.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(f"{self._variant.label} not found")
        if not account.is_active:
            raise AccountDeactivatedError(f"{self._variant.label} account is deactivated")
        return account

    async def verify_access(
        self, token: Optional[str]
    ) -> tuple[AccountDoc, dict[str, Any]]:
        """Full bearer check: claims, then the live account behind them."""
        claims = await self.decode_access(token)
        account = await self.load_account(claims["accountId"])
        return account, claims

    # ── Session state ────────────────────────────────────────────────────────

    async def persist(self, account_id: IdLike, pair: TokenPair) -> bool:
        return await self._accounts.set_refresh_token(account_id, pair.refresh_token)

    async def rotate(self, account_id: IdLike, presented: str, pair: TokenPair) -> bool:
        rotated = await self._accounts.rotate_refresh_token(
            account_id, presented, pair.refresh_token
        )
        if rotated:
            log.info(
                "refresh_token_rotated",
                variant=self._variant.name,
                account_id=str(account_id),
            )
        return rotated

    async def revoke(
        self,
        account_id: IdLike,
        access_token: Optional[str] = None,
        claims: Optional[dict[str, Any]] = None,
    ) -> None:
        await self._accounts.clear_refresh_token(account_id)

        if self._blacklist is not None and access_token and claims:
            await self._blacklist.add(
                BlacklistedTokenDoc(
                    token_hash=hash_token(access_token),
                    account_id=str(account_id),
                    variant=self._variant.name,
                    reason="logout",
                    created_at=self._now(),
                    expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
                )
            )
        log.info(
            "session_revoked",
            variant=self._variant.name,
            account_id=str(account_id),
            blacklisted=self._blacklist is not None and bool(access_token),
        )
