"""
OTP record persistence.

Every state transition that a concurrent request could race on (consume,
reissue, attempt increment) is a single find_one_and_update whose filter
encodes the expected current state. Reads never trust the TTL index: an
active record is one with is_used False and expires_at > now.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from repositories.base import BaseRepository
from schemas.models.otp import OtpLockoutDoc, OtpPurpose, OtpRecordDoc
from shared.logging import get_logger

log = get_logger(__name__)


def _purpose_value(purpose: OtpPurpose | str) -> str:
    return purpose.value if isinstance(purpose, OtpPurpose) else purpose


class OtpRepository(BaseRepository):
    """Repository for one variant's OTP collection."""

    @staticmethod
    def _active_filter(
        country_code: str, phone_number: str, purpose: OtpPurpose | str, now: datetime
    ) -> dict:
        return {
            "country_code": country_code,
            "phone_number": phone_number,
            "purpose": _purpose_value(purpose),
            "is_used": False,
            "expires_at": {"$gt": now},
        }

    async def invalidate_unused(
        self,
        country_code: str,
        phone_number: str,
        purpose: OtpPurpose | str,
        now: datetime,
    ) -> int:
        """Mark every unused record for (identity, purpose) as used."""
        result = await self._col.update_many(
            {
                "country_code": country_code,
                "phone_number": phone_number,
                "purpose": _purpose_value(purpose),
                "is_used": False,
            },
            {"$set": {"is_used": True, "updated_at": now}},
        )
        return result.modified_count

    async def insert(self, doc: OtpRecordDoc) -> ObjectId:
        result = await self._col.insert_one(doc.to_mongo())
        return result.inserted_id

    async def find_active(
        self,
        country_code: str,
        phone_number: str,
        purpose: OtpPurpose | str,
        now: datetime,
    ) -> Optional[OtpRecordDoc]:
        doc = await self._col.find_one(
            self._active_filter(country_code, phone_number, purpose, now)
        )
        return OtpRecordDoc.from_mongo(doc)

    async def count_active(
        self,
        country_code: str,
        phone_number: str,
        purpose: OtpPurpose | str,
        now: datetime,
    ) -> int:
        return await self._col.count_documents(
            self._active_filter(country_code, phone_number, purpose, now)
        )

    async def reissue(
        self,
        country_code: str,
        phone_number: str,
        purpose: OtpPurpose | str,
        code_hash: str,
        expires_at: datetime,
        purge_at: datetime,
        now: datetime,
    ) -> Optional[OtpRecordDoc]:
        """Replace the code of the active record in place; None if there is none."""
        doc = await self._col.find_one_and_update(
            self._active_filter(country_code, phone_number, purpose, now),
            {
                "$set": {
                    "code_hash": code_hash,
                    "attempts": 0,
                    "expires_at": expires_at,
                    "last_sent_at": now,
                    "updated_at": now,
                },
                "$max": {"purge_at": purge_at},
            },
            return_document=ReturnDocument.AFTER,
        )
        return OtpRecordDoc.from_mongo(doc)

    async def consume(
        self,
        country_code: str,
        phone_number: str,
        purpose: OtpPurpose | str,
        code_hash: str,
        max_attempts: int,
        now: datetime,
    ) -> Optional[OtpRecordDoc]:
        """Atomically mark the matching active record used.

        Records already at the attempt cap never match, whatever the code.
        """
        query = self._active_filter(country_code, phone_number, purpose, now)
        query["code_hash"] = code_hash
        query["attempts"] = {"$lt": max_attempts}
        doc = await self._col.find_one_and_update(
            query,
            {"$set": {"is_used": True, "used_at": now, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return OtpRecordDoc.from_mongo(doc)

    async def record_failed_attempt(
        self,
        country_code: str,
        phone_number: str,
        purpose: OtpPurpose | str,
        now: datetime,
    ) -> Optional[OtpRecordDoc]:
        """Increment attempts on the active record and return it (post-update)."""
        doc = await self._col.find_one_and_update(
            self._active_filter(country_code, phone_number, purpose, now),
            {"$inc": {"attempts": 1}, "$set": {"updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return OtpRecordDoc.from_mongo(doc)

    async def delete(self, record_id: ObjectId) -> bool:
        result = await self._col.delete_one({"_id": record_id})
        return result.deleted_count == 1

    async def count_created_since(
        self, country_code: str, phone_number: str, since: datetime
    ) -> int:
        return await self._col.count_documents(
            {
                "country_code": country_code,
                "phone_number": phone_number,
                "created_at": {"$gte": since},
            }
        )

    async def oldest_created_since(
        self, country_code: str, phone_number: str, since: datetime
    ) -> Optional[OtpRecordDoc]:
        doc = await self._col.find_one(
            {
                "country_code": country_code,
                "phone_number": phone_number,
                "created_at": {"$gte": since},
            },
            sort=[("created_at", ASCENDING)],
        )
        return OtpRecordDoc.from_mongo(doc)

    async def latest_for_identity(
        self, country_code: str, phone_number: str
    ) -> Optional[OtpRecordDoc]:
        """Most recently issued or re-sent record for the identity, any purpose."""
        doc = await self._col.find_one(
            {"country_code": country_code, "phone_number": phone_number},
            sort=[("last_sent_at", DESCENDING)],
        )
        return OtpRecordDoc.from_mongo(doc)


class LockoutRepository(BaseRepository):
    """Repository for the shared `otp-lockouts` collection."""

    async def lock(
        self,
        variant: str,
        country_code: str,
        phone_number: str,
        locked_until: datetime,
        now: datetime,
        reason: str = "max_attempts",
    ) -> None:
        await self._col.update_one(
            {
                "variant": variant,
                "country_code": country_code,
                "phone_number": phone_number,
            },
            {
                "$set": {"locked_until": locked_until, "reason": reason},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
        )
        log.warning(
            "otp_identity_locked",
            variant=variant,
            reason=reason,
            locked_until=locked_until.isoformat(),
        )

    async def active_lock(
        self, variant: str, country_code: str, phone_number: str, now: datetime
    ) -> Optional[OtpLockoutDoc]:
        doc = await self._col.find_one(
            {
                "variant": variant,
                "country_code": country_code,
                "phone_number": phone_number,
                "locked_until": {"$gt": now},
            }
        )
        return OtpLockoutDoc.from_mongo(doc)
