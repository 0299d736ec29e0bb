"""
OTP send throttling and failed-attempt lockout.

With Redis configured, the send cooldown and hourly cap are fixed-window
counters (SET NX EX for the cooldown, INCR + EXPIRE for the hour). Without
Redis, or when a Redis call fails, the same limits are derived from the OTP
records in MongoDB, which are kept for the whole hourly window after their
code expires. That fallback only sees issued records for the hourly cap;
re-sends are bounded by the cooldown alone. A send refused by the hourly cap
neither starts a cooldown nor counts against the cap.

Lockouts always live in MongoDB so they survive a Redis flush.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config import OTPSettings
from errors import RateLimitError
from repositories.otp_repository import LockoutRepository, OtpRepository
from schemas.models.otp import SEND_HISTORY_SECONDS
from services.variants import AccountVariant
from shared.datetime_utils import as_utc, expires_in, seconds_until, utcnow
from shared.logging import get_logger

log = get_logger(__name__)

HOUR = SEND_HISTORY_SECONDS


class OtpRateLimiter:
    def __init__(
        self,
        otps: OtpRepository,
        lockouts: LockoutRepository,
        settings: OTPSettings,
        variant: AccountVariant,
        *,
        redis_client: Optional[aioredis.Redis] = None,
        key_prefix: str = "ride",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._otps = otps
        self._lockouts = lockouts
        self._settings = settings
        self._variant = variant
        self._redis = redis_client
        self._prefix = key_prefix
        self._now = clock

    def _key(self, kind: str, country_code: str, phone_number: str) -> str:
        return f"{self._prefix}:otp:{kind}:{self._variant.name}:{country_code}{phone_number}"

    # ── Lockout ──────────────────────────────────────────────────────────────

    async def ensure_not_locked(self, country_code: str, phone_number: str) -> None:
        now = self._now()
        lock = await self._lockouts.active_lock(
            self._variant.name, country_code, phone_number, now
        )
        if lock is None:
            return
        retry_after = max(seconds_until(lock.locked_until, now=now), 1)
        raise RateLimitError(
            f"Too many failed attempts. Please try again in {retry_after} seconds.",
            code="otp_locked",
            retry_after=retry_after,
        )

    async def lock(self, country_code: str, phone_number: str) -> int:
        """Lock the identity out of OTP flows; returns the lockout length."""
        now = self._now()
        seconds = self._settings.otp_lockout_seconds
        await self._lockouts.lock(
            self._variant.name,
            country_code,
            phone_number,
            expires_in(seconds, now=now),
            now,
        )
        return seconds

    # ── Send throttling ──────────────────────────────────────────────────────

    async def check_send(self, country_code: str, phone_number: str) -> None:
        """Raise RateLimitError when another send is not allowed yet."""
        if self._redis is not None:
            try:
                await self._check_send_redis(country_code, phone_number)
                return
            except RedisError as e:
                log.warning(
                    "otp_rate_limit_redis_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
        await self._check_send_mongo(country_code, phone_number)

    def _cooldown_error(self, retry_after: int) -> RateLimitError:
        return RateLimitError(
            f"Please wait {retry_after} seconds before requesting another OTP.",
            code="otp_cooldown",
            retry_after=retry_after,
        )

    def _hourly_error(self, retry_after: int) -> RateLimitError:
        return RateLimitError(
            "Too many OTP requests. Please try again later.",
            code="otp_hourly_limit",
            retry_after=retry_after,
        )

    async def _check_send_redis(self, country_code: str, phone_number: str) -> None:
        limit = self._settings.otp_max_sends_per_hour
        hourly_key = self._key("hourly", country_code, phone_number)

        sent = await self._redis.get(hourly_key)
        if sent is not None and int(sent) >= limit:
            raise await self._hourly_error_from(hourly_key)

        cooldown = self._settings.otp_resend_cooldown_seconds
        if cooldown > 0:
            cooldown_key = self._key("cooldown", country_code, phone_number)
            if not await self._redis.set(cooldown_key, "1", nx=True, ex=cooldown):
                ttl = await self._redis.ttl(cooldown_key)
                raise self._cooldown_error(ttl if ttl and ttl > 0 else cooldown)

        count = await self._redis.incr(hourly_key)
        if count == 1:
            await self._redis.expire(hourly_key, HOUR)
        if count > limit:
            raise await self._hourly_error_from(hourly_key)

    async def _hourly_error_from(self, hourly_key: str) -> RateLimitError:
        ttl = await self._redis.ttl(hourly_key)
        return self._hourly_error(ttl if ttl and ttl > 0 else HOUR)

    async def _check_send_mongo(self, country_code: str, phone_number: str) -> None:
        now = self._now()
        cooldown = self._settings.otp_resend_cooldown_seconds

        latest = await self._otps.latest_for_identity(country_code, phone_number)
        if latest is not None and latest.last_sent_at is not None:
            next_allowed = as_utc(latest.last_sent_at) + timedelta(seconds=cooldown)
            if next_allowed > now:
                raise self._cooldown_error(max(seconds_until(next_allowed, now=now), 1))

        since = now - timedelta(seconds=HOUR)
        sent = await self._otps.count_created_since(country_code, phone_number, since)
        if sent >= self._settings.otp_max_sends_per_hour:
            oldest = await self._otps.oldest_created_since(
                country_code, phone_number, since
            )
            retry_after = HOUR
            if oldest is not None and oldest.created_at is not None:
                retry_after = seconds_until(
                    as_utc(oldest.created_at) + timedelta(seconds=HOUR), now=now
                )
            raise self._hourly_error(max(retry_after, 1))
