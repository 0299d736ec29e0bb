"""
Revoked access tokens (`blacklisted-tokens` collection).

Entries are keyed by token hash and expire together with the token they
revoke.
"""

from __future__ import annotations

from pymongo.errors import DuplicateKeyError

from repositories.base import BaseRepository
from schemas.models.token import BlacklistedTokenDoc
from shared.logging import get_logger

log = get_logger(__name__)


class BlacklistRepository(BaseRepository):
    async def add(self, entry: BlacklistedTokenDoc) -> None:
        try:
            await self._col.insert_one(entry.to_mongo())
        except DuplicateKeyError:
            # Already revoked; logout is idempotent
            log.debug("token_already_blacklisted", variant=entry.variant)

    async def contains(self, token_hash: str) -> bool:
        doc = await self._col.find_one({"token_hash": token_hash}, {"_id": 1})
        return doc is not None
