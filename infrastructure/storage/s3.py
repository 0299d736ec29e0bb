"""S3 implementation of MediaStorage.

boto3 is synchronous; each call runs in a worker thread so the event loop
is never blocked. Provider failures surface as UpstreamError (503).
"""

import asyncio
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from config import StorageSettings
from errors import UpstreamError
from infrastructure.storage.protocol import StoredObject
from shared.logging import get_logger

log = get_logger(__name__)


class S3MediaStorage:
    def __init__(self, settings: StorageSettings, client: Optional[Any] = None) -> None:
        self._settings = settings
        self._bucket = settings.aws_s3_bucket_name
        self._client = client or boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
            region_name=settings.aws_region,
        )
        log.info("s3_storage_initialized", bucket=self._bucket)

    def public_url(self, key: str) -> str:
        base = self._settings.media_base_url.rstrip("/")
        if not base:
            base = f"https://{self._bucket}.s3.{self._settings.aws_region}.amazonaws.com"
        return f"{base}/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            log.error(
                "s3_put_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamError("Failed to store media", code="storage_failure") from e
        log.info("s3_object_stored", key=key, size=len(data))
        return StoredObject(key=key, url=self.public_url(key))

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.delete_object, Bucket=self._bucket, Key=key
            )
        except (ClientError, BotoCoreError) as e:
            log.error(
                "s3_delete_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamError("Failed to delete media", code="storage_failure") from e
        log.info("s3_object_deleted", key=key)
