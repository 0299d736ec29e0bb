"""
Blacklisted token document model.

Maps to the `blacklisted-tokens` MongoDB collection.

token_hash stores SHA-256(access_token). expires_at mirrors the token's own
`exp`, so the TTL index drops the entry once the token could no longer be
accepted anyway.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel, PyObjectId


class BlacklistedTokenDoc(MongoBaseModel):
    """Document model for the `blacklisted-tokens` collection."""

    token_hash: str
    account_id: PyObjectId
    variant: str
    reason: str = "logout"
    created_at: Optional[datetime] = None
    expires_at: datetime
