"""
OTP Store: issue, re-send, consume and discard one-time codes.

Codes are hashed before they reach the repository. The plain code is only
ever returned to the caller of issue/reissue, which hands it to the notifier.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from bson import ObjectId

from config import OTPSettings
from errors import NotFoundError
from repositories.otp_repository import OtpRepository
from schemas.models.otp import SEND_HISTORY_SECONDS, OtpPurpose, OtpRecordDoc
from shared.crypto import hash_token
from shared.datetime_utils import expires_in, utcnow
from shared.generators import generate_otp_code
from shared.logging import get_logger

log = get_logger(__name__)


class ConsumeResult(str, Enum):
    OK = "ok"
    INVALID_OR_EXPIRED = "invalid_or_expired"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"


@dataclass(frozen=True)
class IssuedOtp:
    code: str
    record_id: ObjectId
    expires_at: datetime


@dataclass(frozen=True)
class ConsumeOutcome:
    result: ConsumeResult
    # The record as it stands after this submission, when one was active
    record: Optional[OtpRecordDoc] = None

    @property
    def ok(self) -> bool:
        return self.result is ConsumeResult.OK


class OtpStore:
    def __init__(
        self,
        repository: OtpRepository,
        settings: OTPSettings,
        *,
        code_generator: Callable[[], str] = generate_otp_code,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._settings = settings
        self._generate = code_generator
        self._now = clock

    @property
    def max_attempts(self) -> int:
        return self._settings.otp_max_attempts

    @property
    def ttl_seconds(self) -> int:
        return self._settings.otp_ttl_seconds

    def _purge_at(self, now: datetime) -> datetime:
        return expires_in(max(self.ttl_seconds, SEND_HISTORY_SECONDS), now=now)

    async def issue(
        self, country_code: str, phone_number: str, purpose: OtpPurpose
    ) -> IssuedOtp:
        """Supersede any unused code for (identity, purpose) and store a new one."""
        now = self._now()
        await self._repo.invalidate_unused(country_code, phone_number, purpose, now)

        code = self._generate()
        expires_at = expires_in(self.ttl_seconds, now=now)
        record = OtpRecordDoc(
            country_code=country_code,
            phone_number=phone_number,
            code_hash=hash_token(code),
            purpose=purpose,
            attempts=0,
            is_used=False,
            created_at=now,
            updated_at=now,
            last_sent_at=now,
            expires_at=expires_at,
            purge_at=self._purge_at(now),
        )
        record_id = await self._repo.insert(record)
        log.info("otp_issued", purpose=purpose.value, record_id=str(record_id))
        return IssuedOtp(code=code, record_id=record_id, expires_at=expires_at)

    async def reissue(
        self, country_code: str, phone_number: str, purpose: OtpPurpose
    ) -> IssuedOtp:
        """Replace the active code in place.

        Raises:
            NotFoundError: no active OTP exists for (identity, purpose).
        """
        now = self._now()
        code = self._generate()
        expires_at = expires_in(self.ttl_seconds, now=now)
        record = await self._repo.reissue(
            country_code,
            phone_number,
            purpose,
            hash_token(code),
            expires_at,
            self._purge_at(now),
            now,
        )
        if record is None:
            raise NotFoundError(
                "No active OTP found. Please request a new OTP.", code="otp_not_found"
            )
        log.info("otp_reissued", purpose=purpose.value, record_id=str(record.id))
        return IssuedOtp(code=code, record_id=record.id, expires_at=expires_at)

    async def consume(
        self,
        country_code: str,
        phone_number: str,
        purpose: OtpPurpose,
        code: str,
    ) -> ConsumeOutcome:
        now = self._now()
        consumed = await self._repo.consume(
            country_code,
            phone_number,
            purpose,
            hash_token(code),
            self.max_attempts,
            now,
        )
        if consumed is not None:
            return ConsumeOutcome(ConsumeResult.OK, consumed)

        # Wrong code, or the record is at its cap: count the attempt
        record = await self._repo.record_failed_attempt(
            country_code, phone_number, purpose, now
        )
        if record is None:
            return ConsumeOutcome(ConsumeResult.INVALID_OR_EXPIRED)
        if record.attempts > self.max_attempts:
            return ConsumeOutcome(ConsumeResult.ATTEMPTS_EXCEEDED, record)
        return ConsumeOutcome(ConsumeResult.INVALID_OR_EXPIRED, record)

    async def discard(self, record_id: ObjectId) -> None:
        await self._repo.delete(record_id)

    async def has_active(
        self, country_code: str, phone_number: str, purpose: OtpPurpose
    ) -> bool:
        return (
            await self._repo.count_active(
                country_code, phone_number, purpose, self._now()
            )
            > 0
        )
