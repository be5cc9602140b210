"""
Base classes shared by the allocation engine models.

Stored documents derive from BaseDocument (MongoDB `_id` plus timestamps);
inputs read from the surrounding platform derive from EmbeddedModel.
"""

from datetime import datetime, timezone
from typing import Any, Optional, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

D = TypeVar("D", bound="BaseDocument")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what MongoDB hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PyObjectId(ObjectId):
    """ObjectId field type: accepts ObjectId or its hex string, dumps to string in JSON."""

    @classmethod
    def __get_pydantic_core_schema__(cls, _source_type: Any, _handler: Any) -> Any:
        from pydantic_core import core_schema

        from_str = core_schema.chain_schema(
            [core_schema.str_schema(), core_schema.no_info_plain_validator_function(cls.validate)]
        )
        return core_schema.union_schema(
            [core_schema.is_instance_schema(ObjectId), from_str],
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def validate(cls, value: Any) -> ObjectId:
        if isinstance(value, ObjectId):
            return value
        if isinstance(value, str) and ObjectId.is_valid(value):
            return ObjectId(value)
        raise ValueError(f"Invalid ObjectId: {value}")


class TimestampMixin(BaseModel):
    """Creation and last-write timestamps."""

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class BaseDocument(TimestampMixin):
    """A row of one of the engine's collections."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    def touched(self: D, **changes: Any) -> D:
        """Copy with the given fields changed and `updated_at` refreshed."""
        return self.model_copy(update={**changes, "updated_at": utcnow()})

    def model_dump_mongo(self) -> dict[str, Any]:
        """
        Dump for insertion into MongoDB.

        Keeps explicit None values (partial indexes filter on them) and
        leaves `_id` out until the database assigns one.
        """
        data = self.model_dump(by_alias=True)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data


class EmbeddedModel(BaseModel):
    """Input model read from another system; never stored on its own."""

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
    )
