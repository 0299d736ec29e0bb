"""
Index bootstrap, run once from the app lifespan.

Unique indexes enforce one account per identity and are required: startup
fails when they cannot be built. Query and TTL indexes are best-effort.
TTL indexes only garbage-collect; queries still filter on expiry.
"""

from __future__ import annotations

from typing import Iterable

from pymongo import ASCENDING, DESCENDING
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from services.variants import AccountVariant
from shared.logging import get_logger

log = get_logger(__name__)

BLACKLIST_COLLECTION = "blacklisted-tokens"
LOCKOUT_COLLECTION = "otp-lockouts"

_IDENTITY = [("country_code", ASCENDING), ("phone_number", ASCENDING)]


async def ensure_indexes(db: AsyncDatabase, variants: Iterable[AccountVariant]) -> None:
    variants = list(variants)
    await _ensure_unique_indexes(db, variants)
    try:
        await _ensure_query_indexes(db, variants)
    except PyMongoError as e:
        log.warning("index_creation_failed", error=str(e), error_type=type(e).__name__)


async def _ensure_unique_indexes(db: AsyncDatabase, variants: list[AccountVariant]) -> None:
    try:
        for variant in variants:
            await db[variant.account_collection].create_index(_IDENTITY, unique=True)
        await db[BLACKLIST_COLLECTION].create_index(
            [("token_hash", ASCENDING)], unique=True
        )
        await db[LOCKOUT_COLLECTION].create_index(
            [("variant", ASCENDING), *_IDENTITY], unique=True
        )
    except PyMongoError as e:
        log.error(
            "unique_index_creation_failed", error=str(e), error_type=type(e).__name__
        )
        raise


async def _ensure_query_indexes(db: AsyncDatabase, variants: list[AccountVariant]) -> None:
    for variant in variants:
        otps = db[variant.otp_collection]
        await otps.create_index(
            [*_IDENTITY, ("purpose", ASCENDING), ("is_used", ASCENDING)]
        )
        await otps.create_index([*_IDENTITY, ("last_sent_at", DESCENDING)])
        await otps.create_index([("purge_at", ASCENDING)], expireAfterSeconds=0)

    await db[BLACKLIST_COLLECTION].create_index(
        [("expires_at", ASCENDING)], expireAfterSeconds=0
    )
    await db[LOCKOUT_COLLECTION].create_index(
        [("locked_until", ASCENDING)], expireAfterSeconds=0
    )
