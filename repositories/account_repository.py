"""
Account persistence for the users, drivers and admins collections.

refresh_token is excluded from every default projection; the only code
paths that touch it are the conditional writes below.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from errors import ConflictError
from repositories.base import BaseRepository, IdLike, to_object_id
from schemas.models.account import AccountDoc, MediaRef
from shared.logging import get_logger

log = get_logger(__name__)

DEFAULT_PROJECTION = {"refresh_token": 0}


class AccountRepository(BaseRepository):
    async def find_by_identity(
        self, country_code: str, phone_number: str
    ) -> Optional[AccountDoc]:
        doc = await self._col.find_one(
            {"country_code": country_code, "phone_number": phone_number},
            DEFAULT_PROJECTION,
        )
        return AccountDoc.from_mongo(doc)

    async def find_by_id(self, account_id: IdLike) -> Optional[AccountDoc]:
        oid = to_object_id(account_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid}, DEFAULT_PROJECTION)
        return AccountDoc.from_mongo(doc)

    async def create(self, account: AccountDoc) -> AccountDoc:
        """Insert a new account.

        Raises ConflictError when the (country_code, phone_number) pair is
        already taken.
        """
        data = account.to_mongo()
        try:
            result = await self._col.insert_one(data)
        except DuplicateKeyError as e:
            raise ConflictError(
                "Phone number already registered", code="account_exists"
            ) from e
        return account.model_copy(update={"id": result.inserted_id})

    async def touch_login(
        self, account_id: IdLike, now: datetime
    ) -> Optional[AccountDoc]:
        doc = await self._col.find_one_and_update(
            {"_id": to_object_id(account_id)},
            {"$set": {"last_login_at": now, "updated_at": now}},
            projection=DEFAULT_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        return AccountDoc.from_mongo(doc)

    async def set_refresh_token(self, account_id: IdLike, token: str) -> bool:
        result = await self._col.update_one(
            {"_id": to_object_id(account_id)},
            {"$set": {"refresh_token": token}},
        )
        return result.matched_count == 1

    async def rotate_refresh_token(
        self, account_id: IdLike, expected: str, replacement: str
    ) -> bool:
        """Swap the stored refresh token only if it still equals *expected*.

        Of two concurrent rotations of the same token exactly one matches.
        """
        result = await self._col.update_one(
            {"_id": to_object_id(account_id), "refresh_token": expected},
            {"$set": {"refresh_token": replacement}},
        )
        return result.matched_count == 1

    async def clear_refresh_token(self, account_id: IdLike) -> bool:
        result = await self._col.update_one(
            {"_id": to_object_id(account_id)},
            {"$set": {"refresh_token": None}},
        )
        return result.matched_count == 1

    async def update_phone(
        self,
        account_id: IdLike,
        country_code: str,
        phone_number: str,
        now: datetime,
    ) -> Optional[AccountDoc]:
        """Move the account to a new phone identity and end its session."""
        try:
            doc = await self._col.find_one_and_update(
                {"_id": to_object_id(account_id)},
                {
                    "$set": {
                        "country_code": country_code,
                        "phone_number": phone_number,
                        "is_verified": True,
                        "refresh_token": None,
                        "updated_at": now,
                    }
                },
                projection=DEFAULT_PROJECTION,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            raise ConflictError(
                "Phone number already registered", code="account_exists"
            ) from e
        return AccountDoc.from_mongo(doc)

    async def set_media(
        self, account_id: IdLike, media: MediaRef, now: datetime
    ) -> Optional[AccountDoc]:
        """Attach *media* and return the account as it was before the update."""
        doc = await self._col.find_one_and_update(
            {"_id": to_object_id(account_id)},
            {"$set": {"media": media.model_dump(), "updated_at": now}},
            projection=DEFAULT_PROJECTION,
            return_document=ReturnDocument.BEFORE,
        )
        return AccountDoc.from_mongo(doc)
