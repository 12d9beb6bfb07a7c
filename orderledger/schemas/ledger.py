from typing import List, Optional
from datetime import datetime
import uuid

from pydantic import BaseModel, Field

from orderledger.schemas.base import Amount, BaseCreateSchema, BaseResponseSchema, Money


class LedgerEntryResponse(BaseResponseSchema):
    id: uuid.UUID
    entry_type: str
    quantity: int
    unit_price: Amount
    total_amount: Amount
    description: Optional[str] = None
    product_id: Optional[uuid.UUID] = None
    order_id: Optional[uuid.UUID] = None
    counterparty_id: Optional[uuid.UUID] = None
    reverses_entry_id: Optional[uuid.UUID] = None
    created_at: datetime


class LedgerListResponse(BaseModel):
    items: List[LedgerEntryResponse]
    count: int
    total_amount: Amount
    total_quantity: int


class PurchaseCreate(BaseCreateSchema):
    product_id: uuid.UUID
    quantity: int = Field(..., gt=0)
    unit_price: Money
    counterparty_id: Optional[uuid.UUID] = None
    description: Optional[str] = None


class ReversalCreate(BaseCreateSchema):
    reason: Optional[str] = Field(None, max_length=500)
