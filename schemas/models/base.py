"""
Base model for the MongoDB document models (accounts, OTP records,
lockouts, blacklisted tokens).

PyObjectId lets Pydantic v2 validate and serialize BSON ObjectIds.
MongoBaseModel maps `_id` to `id`, and every datetime it loads is
timezone-aware UTC whether or not the client was created with tz_aware.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler, field_validator
from pydantic_core import core_schema

from shared.datetime_utils import as_utc


class PyObjectId(ObjectId):
    """BSON ObjectId accepted from an ObjectId or its 24-char hex string."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.to_string_ser_schema(when_used="json"),
        )

    @classmethod
    def _validate(cls, v: Any) -> ObjectId:
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError(f"Invalid ObjectId: {v!r}")


class MongoBaseModel(BaseModel):
    """
    Base for all document models.

    to_mongo()   - model -> dict for insert_one; a missing id is dropped so
                   MongoDB generates one
    from_mongo() - raw document (or None from find_one) -> model (or None)
    """

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    @field_validator("*", mode="after")
    @classmethod
    def _aware_datetimes(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return as_utc(v)
        return v

    def to_mongo(self) -> dict:
        data = self.model_dump(by_alias=True, mode="python")
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    @classmethod
    def from_mongo(cls, data: Optional[dict]) -> Optional["MongoBaseModel"]:
        if data is None:
            return None
        return cls.model_validate(data)
