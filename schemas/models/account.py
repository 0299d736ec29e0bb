"""
Account document model.

Maps to the `users`, `drivers` and `admins` MongoDB collections. The three
variants share one shape; the role default and display-name prefix come
from the AccountVariant.

refresh_token holds the single live refresh token (or None after logout).
Repositories exclude it from default projections, so a model loaded through
a normal read always has refresh_token=None.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from schemas.models.base import MongoBaseModel


class MediaRef(BaseModel):
    """Embedded reference to an object held by the media storage service."""

    key: str
    url: str
    original_name: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None
    uploaded_at: Optional[datetime] = None


class AccountDoc(MongoBaseModel):
    """Document model for an account collection."""

    country_code: str
    phone_number: str
    display_name: str
    role: str
    email: Optional[str] = None
    is_active: bool = True
    is_verified: bool = False
    last_login_at: Optional[datetime] = None
    refresh_token: Optional[str] = None
    media: Optional[MediaRef] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_phone_number(self) -> str:
        return f"{self.country_code}{self.phone_number}"
