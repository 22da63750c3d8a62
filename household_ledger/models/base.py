"""
Shared base for every stored record.

Records live in the store as plain dicts with camelCase keys (the format
the household data has always used). Models expose snake_case attributes,
accept either spelling on input, and keep any field they do not know about
so that a get -> modify -> put cycle never drops data.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from household_ledger.utils.money import to_decimal


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return to_decimal(value)


# Two-decimal money: quantized on the way in, written back as a JSON number.
Money = Annotated[
    Decimal,
    BeforeValidator(to_decimal),
    PlainSerializer(float, return_type=float, when_used="json"),
]

OptionalMoney = Annotated[
    Optional[Decimal],
    BeforeValidator(_optional_decimal),
    PlainSerializer(
        lambda v: float(v) if v is not None else None,
        return_type=Optional[float],
        when_used="json",
    ),
]


class RecordModel(BaseModel):
    """Base class for records persisted through the RecordStore."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    id: str

    @classmethod
    def from_record(cls, record: dict[str, Any]):
        return cls.model_validate(record)

    def to_record(self) -> dict[str, Any]:
        """Serialize for the store (camelCase keys, JSON-safe values)."""
        return self.model_dump(mode="json", by_alias=True)
