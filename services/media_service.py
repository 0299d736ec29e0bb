"""
Account media (profile or vehicle image) upload.

The new object is stored before the account points at it, and the previous
object is deleted only after the account has been updated, so a failure at
any step leaves the account referencing an object that exists.
"""

from __future__ import annotations

import secrets
from datetime import datetime
from typing import Callable, Optional

from config import StorageSettings
from errors import NotFoundError, UpstreamError, ValidationError
from infrastructure.storage.protocol import MediaStorage
from repositories.account_repository import AccountRepository
from schemas.models.account import AccountDoc, MediaRef
from services.variants import AccountVariant
from shared.datetime_utils import utcnow
from shared.logging import get_logger

log = get_logger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


class MediaService:
    def __init__(
        self,
        storage: Optional[MediaStorage],
        accounts: AccountRepository,
        variant: AccountVariant,
        settings: StorageSettings,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._accounts = accounts
        self._variant = variant
        self._settings = settings
        self._now = clock

    def _object_key(self, account_id: str, extension: str) -> str:
        prefix = self._settings.media_key_prefix.strip("/")
        return f"{prefix}/{self._variant.name}/{account_id}/{secrets.token_hex(8)}{extension}"

    async def replace_media(
        self,
        account: AccountDoc,
        data: bytes,
        content_type: Optional[str],
        filename: Optional[str] = None,
    ) -> AccountDoc:
        if self._storage is None:
            raise UpstreamError("Media storage is not configured", code="storage_unavailable")

        extension = ALLOWED_CONTENT_TYPES.get((content_type or "").lower())
        if extension is None:
            raise ValidationError(
                "Only JPEG, PNG or WEBP images are allowed", field="file"
            )
        if not data:
            raise ValidationError("File is empty", field="file")
        if len(data) > self._settings.media_max_bytes:
            raise ValidationError(
                f"File exceeds {self._settings.media_max_bytes} bytes", field="file"
            )

        account_id = str(account.id)
        stored = await self._storage.put(
            self._object_key(account_id, extension), data, content_type
        )
        now = self._now()
        media = MediaRef(
            key=stored.key,
            url=stored.url,
            original_name=filename,
            mime_type=content_type,
            size=len(data),
            uploaded_at=now,
        )

        previous = await self._accounts.set_media(account.id, media, now)
        if previous is None:
            await self._storage.delete(stored.key)
            raise NotFoundError(f"{self._variant.label} not found")

        if previous.media is not None and previous.media.key != stored.key:
            try:
                await self._storage.delete(previous.media.key)
            except UpstreamError:
                # Orphaned object; the account already points at the new one
                log.warning(
                    "media_previous_delete_failed",
                    variant=self._variant.name,
                    account_id=account_id,
                    key=previous.media.key,
                )

        log.info(
            "media_replaced",
            variant=self._variant.name,
            account_id=account_id,
            key=stored.key,
            size=len(data),
        )
        return previous.model_copy(update={"media": media, "updated_at": now})
