from typing import List, Optional
from datetime import datetime
import uuid

from pydantic import BaseModel, Field

from orderledger.schemas.base import Amount, BaseCreateSchema, BaseResponseSchema, Money


class InventoryLotResponse(BaseResponseSchema):
    id: uuid.UUID
    product_id: uuid.UUID
    order_id: Optional[uuid.UUID] = None
    lot_number: str
    quantity: int
    remaining_qty: int
    cost_per_unit: Amount
    note: Optional[str] = None
    received_at: datetime


class StockLevelResponse(BaseResponseSchema):
    """Per-product stock picture."""
    product_id: uuid.UUID
    product_name: str
    sku: str
    unit: str
    reorder_level: int
    total_stock: int
    total_used: int
    daily_usage_rate: float
    days_remaining: Optional[int] = None
    is_low_stock: bool
    lots: List[InventoryLotResponse] = []


class UsageCreate(BaseCreateSchema):
    """Consume stock from the product's lots, oldest first."""
    product_id: uuid.UUID
    quantity: int = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=255)


class LotDeductionResponse(BaseResponseSchema):
    lot_id: uuid.UUID
    lot_number: str
    quantity: int
    remaining_after: int


class AllocationResponse(BaseResponseSchema):
    product_id: uuid.UUID
    quantity: int
    deductions: List[LotDeductionResponse]
    usage_id: Optional[uuid.UUID] = None


class ReceiptCreate(BaseCreateSchema):
    """Receive stock into a new lot."""
    product_id: uuid.UUID
    quantity: int = Field(..., gt=0)
    cost_per_unit: Money
    note: Optional[str] = None
    received_at: Optional[datetime] = None
    counterparty_id: Optional[uuid.UUID] = None


class ConservationResponse(BaseModel):
    product_id: uuid.UUID
    received: int
    consumed: int
    remaining: int
    balanced: bool
