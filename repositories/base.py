"""
Shared helpers for the async MongoDB repositories.

Repositories own a single collection each and return document models
(or None) rather than raw dicts. Driver errors propagate; callers decide
which failures are retryable.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from bson import ObjectId
from pymongo.asynchronous.collection import AsyncCollection

IdLike = Union[str, ObjectId]


def to_object_id(value: Optional[IdLike]) -> Optional[ObjectId]:
    """Coerce *value* to an ObjectId, returning None when it is not valid."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class BaseRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    @property
    def collection(self) -> Any:
        return self._col
