"""
Response DTOs for the OTP and account endpoints.

OtpSentResponse        - POST /send, /resend
AccountProfile         - account shape embedded in session responses, GET /me
SessionResponse        - POST /verify (session purposes), /refresh-token
VerificationResponse   - POST /verify (non-session purposes)
AccountResponse        - GET /me, PUT /me/media, POST /change-phone

Serialized by alias (camelCase) with None fields dropped.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.models.account import AccountDoc


class OtpSentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    expires_in: int = Field(alias="expiresIn")
    # Present only outside production
    otp: Optional[str] = None


class MediaInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    size: Optional[int] = None
    uploaded_at: Optional[datetime] = Field(default=None, alias="uploadedAt")


class AccountProfile(BaseModel):
    """Public view of an account. refresh_token never appears here."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    country_code: str = Field(alias="countryCode")
    phone_number: str = Field(alias="phoneNumber")
    display_name: str = Field(alias="displayName")
    role: str
    email: Optional[str] = None
    is_verified: bool = Field(alias="isVerified")
    is_active: bool = Field(alias="isActive")
    last_login_at: Optional[datetime] = Field(default=None, alias="lastLoginAt")
    media: Optional[MediaInfo] = None

    @classmethod
    def from_account(cls, account: AccountDoc) -> "AccountProfile":
        media = None
        if account.media is not None:
            media = MediaInfo(
                url=account.media.url,
                mime_type=account.media.mime_type,
                size=account.media.size,
                uploaded_at=account.media.uploaded_at,
            )
        return cls(
            id=str(account.id),
            country_code=account.country_code,
            phone_number=account.phone_number,
            display_name=account.display_name,
            role=account.role,
            email=account.email,
            is_verified=account.is_verified,
            is_active=account.is_active,
            last_login_at=account.last_login_at,
            media=media,
        )


class SessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    token_type: str = Field(default="Bearer", alias="tokenType")
    expires_in: int = Field(alias="expiresIn")
    account: AccountProfile
    is_new_account: bool = Field(default=False, alias="isNewAccount")


class VerificationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    verified: bool = True
    is_existing_account: bool = Field(alias="isExistingAccount")
    account_id: Optional[str] = Field(default=None, alias="accountId")


class AccountResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: Optional[str] = None
    account: AccountProfile
