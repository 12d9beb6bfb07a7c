"""
Shared schema bases and money types.

Money crosses the API as a two-place decimal string ("300.00"), never a
float. Inputs with more than two decimal places are rejected at the edge.
"""
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from orderledger.db_types import CENT

# Request amount: non-negative, cents at most
Money = Annotated[Decimal, Field(ge=0, decimal_places=2)]

# Response amount: signed (reversals are negative), always rendered to the cent
Amount = Annotated[
    Decimal,
    PlainSerializer(lambda v: str(Decimal(v).quantize(CENT)), return_type=str, when_used="json"),
]


class BaseResponseSchema(BaseModel):
    """Read from ORM rows or service dicts."""
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    model_config = ConfigDict(
        extra='ignore',
        str_strip_whitespace=True,
    )


class BaseUpdateSchema(BaseCreateSchema):
    """Partial update: every field optional, only the fields sent are applied."""

    def changes(self) -> dict:
        # Explicit nulls are dropped too; none of the patchable columns is clearable
        return self.model_dump(exclude_unset=True, exclude_none=True)
