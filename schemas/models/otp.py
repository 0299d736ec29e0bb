"""
OTP record document model.

Maps to the per-variant OTP collections (`otps`, `driver-otps`, `admin-otps`).

code_hash stores SHA-256(code); the plain OTP is never stored.
last_sent_at moves on every send or re-send and drives the send cooldown.
A record is *active* while is_used is False and expires_at is in the future;
reads must filter on expires_at rather than rely on the TTL index, which only
garbage-collects eventually.

The TTL index is on purge_at, set at least SEND_HISTORY_SECONDS past the
last send, so the hourly send cap still counts records whose code expired.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field

from schemas.models.base import MongoBaseModel


class OtpPurpose(str, Enum):
    REGISTRATION = "registration"
    LOGIN = "login"
    PASSWORD_RESET = "password_reset"
    PHONE_VERIFICATION = "phone_verification"
    UPDATE_PHONE = "update-phone"


# Purposes whose successful verification establishes a session
SESSION_PURPOSES = frozenset({OtpPurpose.LOGIN, OtpPurpose.REGISTRATION})

# Purposes that require an existing account before a code is sent
EXISTING_ACCOUNT_PURPOSES = frozenset(
    {OtpPurpose.LOGIN, OtpPurpose.PASSWORD_RESET, OtpPurpose.PHONE_VERIFICATION}
)

# Rolling window of the hourly send cap; records are kept at least this long
SEND_HISTORY_SECONDS = 3600


class OtpRecordDoc(MongoBaseModel):
    """Document model for an OTP collection."""

    model_config = ConfigDict(use_enum_values=True)

    country_code: str
    phone_number: str
    code_hash: str
    purpose: OtpPurpose
    attempts: int = Field(default=0, ge=0)
    is_used: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_sent_at: Optional[datetime] = None
    used_at: Optional[datetime] = None
    expires_at: datetime
    purge_at: Optional[datetime] = None


class OtpLockoutDoc(MongoBaseModel):
    """Document model for the `otp-lockouts` collection."""

    variant: str
    country_code: str
    phone_number: str
    locked_until: datetime
    reason: str = "max_attempts"
    created_at: Optional[datetime] = None
