"""
Phone-OTP authentication flow for one account variant.

    send      -> pre-checks, throttle, issue, notify
    resend    -> throttle, reissue in place, notify
    verify    -> consume; session purposes resolve the account and mint a pair
    refresh   -> verify the refresh token, mint a pair, compare-and-set rotate
    logout    -> clear the stored refresh token (+ blacklist for admins)
    change_phone -> consume an update-phone OTP sent to the new number

One AuthService instance exists per variant; routers are thin wrappers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from pymongo.errors import PyMongoError

from config import AppSettings
from errors import (
    ConflictError,
    ForbiddenError,
    InvalidOtpError,
    NotFoundError,
    OtpAttemptsExceededError,
    TokenError,
    UpstreamError,
    ValidationError,
)
from infrastructure.sms.protocol import SmsNotifier
from repositories.account_repository import AccountRepository
from schemas.models.account import AccountDoc
from schemas.models.otp import EXISTING_ACCOUNT_PURPOSES, SESSION_PURPOSES, OtpPurpose
from services.identity_resolver import IdentityResolver
from services.otp_store import ConsumeResult, IssuedOtp, OtpStore
from services.rate_limiter import OtpRateLimiter
from services.token_service import TokenPair, TokenService
from services.variants import AccountVariant
from shared.datetime_utils import utcnow
from shared.logging import get_logger, mask_phone

log = get_logger(__name__)


@dataclass(frozen=True)
class OtpDispatch:
    message: str
    expires_in: int
    # Echoed only outside production
    otp: Optional[str] = None


@dataclass(frozen=True)
class SessionResult:
    account: AccountDoc
    tokens: TokenPair
    is_new_account: bool = False


@dataclass(frozen=True)
class VerificationResult:
    purpose: OtpPurpose
    is_existing_account: bool
    account_id: Optional[str] = None


class AuthService:
    def __init__(
        self,
        variant: AccountVariant,
        settings: AppSettings,
        *,
        otp_store: OtpStore,
        rate_limiter: OtpRateLimiter,
        resolver: IdentityResolver,
        tokens: TokenService,
        notifier: SmsNotifier,
        accounts: AccountRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.variant = variant
        self._settings = settings
        self._otps = otp_store
        self._limiter = rate_limiter
        self._resolver = resolver
        self.tokens = tokens
        self._notifier = notifier
        self._accounts = accounts
        self._now = clock

    # ── helpers ──────────────────────────────────────────────────────────────

    def _ensure_purpose(self, purpose: OtpPurpose) -> None:
        if not self.variant.allows(purpose):
            allowed = ", ".join(sorted(p.value for p in self.variant.purposes))
            raise ValidationError(
                f"Invalid purpose for {self.variant.label.lower()} OTP. Must be one of: {allowed}",
                field="purpose",
            )

    async def _deliver(
        self, issued: IssuedOtp, country_code: str, phone_number: str, purpose: OtpPurpose
    ) -> None:
        result = await self._notifier.send(
            phone_number, country_code, issued.code, purpose.value
        )
        if result.success:
            return
        if self._settings.is_production:
            await self._otps.discard(issued.record_id)
            log.error(
                "otp_delivery_failed",
                variant=self.variant.name,
                phone=mask_phone(phone_number),
                error=result.error,
            )
            raise UpstreamError("Failed to send OTP", code="otp_delivery_failed")
        log.warning(
            "otp_delivery_failed_ignored",
            variant=self.variant.name,
            phone=mask_phone(phone_number),
            error=result.error,
        )

    def _dispatch(self, issued: IssuedOtp, message: str) -> OtpDispatch:
        return OtpDispatch(
            message=message,
            expires_in=self._otps.ttl_seconds,
            otp=None if self._settings.is_production else issued.code,
        )

    async def _consume_or_raise(
        self, country_code: str, phone_number: str, purpose: OtpPurpose, code: str
    ) -> None:
        outcome = await self._otps.consume(country_code, phone_number, purpose, code)
        if outcome.ok:
            return

        attempts = outcome.record.attempts if outcome.record else None
        log.warning(
            "otp_verification_failed",
            variant=self.variant.name,
            purpose=purpose.value,
            reason=outcome.result.value,
            attempts=attempts,
            phone=mask_phone(phone_number),
        )
        if outcome.result is ConsumeResult.ATTEMPTS_EXCEEDED:
            retry_after = await self._limiter.lock(country_code, phone_number)
            raise OtpAttemptsExceededError(
                "Maximum verification attempts exceeded. Please try again later.",
                retry_after=retry_after,
            )
        if attempts is not None and attempts >= self._otps.max_attempts:
            await self._limiter.lock(country_code, phone_number)
        raise InvalidOtpError()

    # ── operations ───────────────────────────────────────────────────────────

    async def send(
        self, country_code: str, phone_number: str, purpose: OtpPurpose
    ) -> OtpDispatch:
        self._ensure_purpose(purpose)
        await self._limiter.ensure_not_locked(country_code, phone_number)

        if purpose in EXISTING_ACCOUNT_PURPOSES:
            await self._resolver.require_existing(country_code, phone_number)
        elif purpose is OtpPurpose.UPDATE_PHONE:
            if await self._resolver.find(country_code, phone_number) is not None:
                raise ConflictError(
                    "Phone number already registered", code="account_exists"
                )

        await self._limiter.check_send(country_code, phone_number)
        issued = await self._otps.issue(country_code, phone_number, purpose)
        await self._deliver(issued, country_code, phone_number, purpose)

        log.info(
            "otp_sent",
            variant=self.variant.name,
            purpose=purpose.value,
            phone=mask_phone(phone_number),
        )
        return self._dispatch(issued, "OTP sent successfully")

    async def resend(
        self, country_code: str, phone_number: str, purpose: OtpPurpose
    ) -> OtpDispatch:
        self._ensure_purpose(purpose)
        await self._limiter.ensure_not_locked(country_code, phone_number)
        if not await self._otps.has_active(country_code, phone_number, purpose):
            raise NotFoundError(
                "No active OTP found. Please request a new OTP.", code="otp_not_found"
            )

        await self._limiter.check_send(country_code, phone_number)
        issued = await self._otps.reissue(country_code, phone_number, purpose)
        await self._deliver(issued, country_code, phone_number, purpose)

        log.info(
            "otp_resent",
            variant=self.variant.name,
            purpose=purpose.value,
            phone=mask_phone(phone_number),
        )
        return self._dispatch(issued, "OTP resent successfully")

    async def verify(
        self, country_code: str, phone_number: str, purpose: OtpPurpose, code: str
    ) -> SessionResult | VerificationResult:
        self._ensure_purpose(purpose)
        if purpose is OtpPurpose.UPDATE_PHONE:
            raise ValidationError(
                "Phone update codes are verified through change-phone", field="purpose"
            )
        await self._limiter.ensure_not_locked(country_code, phone_number)
        await self._consume_or_raise(country_code, phone_number, purpose, code)

        if purpose not in SESSION_PURPOSES:
            account = await self._resolver.find(country_code, phone_number)
            log.info(
                "otp_verified",
                variant=self.variant.name,
                purpose=purpose.value,
                existing_account=account is not None,
            )
            return VerificationResult(
                purpose=purpose,
                is_existing_account=account is not None,
                account_id=str(account.id) if account else None,
            )

        account, is_new = await self._resolver.resolve(
            country_code, phone_number, purpose
        )
        pair = self.tokens.issue(account)
        try:
            persisted = await self.tokens.persist(account.id, pair)
        except PyMongoError as e:
            log.error(
                "session_persist_failed",
                variant=self.variant.name,
                account_id=str(account.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            persisted = False
        if not persisted:
            raise UpstreamError(
                "Could not start session. Please try again.",
                code="session_not_persisted",
            )

        log.info(
            "otp_login_success",
            variant=self.variant.name,
            purpose=purpose.value,
            account_id=str(account.id),
            is_new_account=is_new,
        )
        return SessionResult(account=account, tokens=pair, is_new_account=is_new)

    async def refresh(self, refresh_token: Optional[str]) -> SessionResult:
        try:
            claims = self.tokens.decode_refresh(refresh_token)
            account = await self.tokens.load_account(claims["accountId"])
        except TokenError as e:
            log.warning(
                "refresh_token_rejected", variant=self.variant.name, reason=e.error_code
            )
            raise e.as_forbidden() from e

        pair = self.tokens.issue(account)
        if not await self.tokens.rotate(account.id, refresh_token, pair):
            log.warning(
                "refresh_token_mismatch",
                variant=self.variant.name,
                account_id=str(account.id),
            )
            raise ForbiddenError("Invalid refresh token", code="invalid_refresh_token")
        return SessionResult(account=account, tokens=pair)

    async def logout(
        self, account: AccountDoc, access_token: Optional[str], claims: dict[str, Any]
    ) -> None:
        await self.tokens.revoke(account.id, access_token, claims)
        log.info("logout_success", variant=self.variant.name, account_id=str(account.id))

    async def change_phone(
        self, account: AccountDoc, country_code: str, phone_number: str, code: str
    ) -> AccountDoc:
        purpose = OtpPurpose.UPDATE_PHONE
        self._ensure_purpose(purpose)
        if (country_code, phone_number) == (account.country_code, account.phone_number):
            raise ValidationError(
                "New phone number must differ from the current one", field="phoneNumber"
            )

        await self._limiter.ensure_not_locked(country_code, phone_number)
        await self._consume_or_raise(country_code, phone_number, purpose, code)

        holder = await self._resolver.find(country_code, phone_number)
        if holder is not None and holder.id != account.id:
            raise ConflictError("Phone number already registered", code="account_exists")

        updated = await self._accounts.update_phone(
            account.id, country_code, phone_number, self._now()
        )
        if updated is None:
            raise NotFoundError(f"{self.variant.label} not found")
        log.info(
            "phone_number_changed",
            variant=self.variant.name,
            account_id=str(account.id),
            phone=mask_phone(phone_number),
        )
        return updated
