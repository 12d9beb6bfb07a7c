from typing import Optional
from datetime import datetime
from decimal import Decimal
import uuid

from pydantic import Field

from orderledger.models.business import CounterpartyKind
from orderledger.schemas.base import Amount, BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema, Money


# ==================== COUNTERPARTY SCHEMAS ====================

class CounterpartyCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    kind: CounterpartyKind = CounterpartyKind.CUSTOMER
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)


class CounterpartyUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)


class CounterpartyResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    kind: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime


class CounterpartyBrief(BaseResponseSchema):
    id: uuid.UUID
    name: str
    kind: str


class CounterpartySummary(BaseResponseSchema):
    """Counterparty with activity counts."""
    id: uuid.UUID
    name: str
    kind: str
    email: Optional[str] = None
    phone: Optional[str] = None
    order_count: int = 0
    product_count: int = 0


# ==================== PRODUCT SCHEMAS ====================

class ProductCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=255)
    sku: str = Field(..., min_length=1, max_length=50)
    unit: str = Field("pcs", max_length=20)
    price: Money = Decimal("0.00")
    reorder_level: int = Field(10, ge=0)
    counterparty_id: Optional[uuid.UUID] = None


class ProductUpdate(BaseUpdateSchema):
    """Only the mutable catalog fields."""
    price: Optional[Money] = None
    reorder_level: Optional[int] = Field(None, ge=0)


class ProductResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    sku: str
    unit: str
    price: Amount
    reorder_level: int
    counterparty_id: Optional[uuid.UUID] = None
    created_at: datetime


class ProductBrief(BaseResponseSchema):
    id: uuid.UUID
    name: str
    sku: str
    unit: str
