"""
Request DTOs for the OTP endpoints (all variants).

SendOtpRequest       - POST {prefix}/send and {prefix}/resend
VerifyOtpRequest     - POST {prefix}/verify
RefreshTokenRequest  - POST {prefix}/refresh-token
ChangePhoneRequest   - POST {prefix}/change-phone

JSON bodies use camelCase (countryCode, phoneNumber, refreshToken);
populate_by_name keeps the snake_case names usable from Python.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.models.otp import OtpPurpose
from shared.validators import (
    normalize_country_code,
    normalize_phone_number,
    validate_otp_format,
)


class PhoneIdentity(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    country_code: str = Field(alias="countryCode")
    phone_number: str = Field(alias="phoneNumber")

    @field_validator("country_code")
    @classmethod
    def _country_code(cls, v: str) -> str:
        return normalize_country_code(v)

    @field_validator("phone_number")
    @classmethod
    def _phone_number(cls, v: str) -> str:
        return normalize_phone_number(v)


class SendOtpRequest(PhoneIdentity):
    """Request body for POST /send and /resend."""

    purpose: OtpPurpose


class VerifyOtpRequest(SendOtpRequest):
    """Request body for POST /verify.

    ``otp`` is the 6-digit code delivered by SMS.
    """

    otp: str

    @field_validator("otp")
    @classmethod
    def _otp(cls, v: str) -> str:
        return validate_otp_format(v)


class RefreshTokenRequest(BaseModel):
    """Request body for POST /refresh-token."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(alias="refreshToken", min_length=1)


class ChangePhoneRequest(PhoneIdentity):
    """Request body for POST /change-phone; the identity is the NEW number."""

    otp: str

    @field_validator("otp")
    @classmethod
    def _otp(cls, v: str) -> str:
        return validate_otp_format(v)
