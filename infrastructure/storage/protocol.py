"""MediaStorage protocol. The media service depends on this, not on S3."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class StoredObject:
    key: str
    url: str


class MediaStorage(Protocol):
    async def put(self, key: str, data: bytes, content_type: str) -> StoredObject: ...

    async def delete(self, key: str) -> None: ...
