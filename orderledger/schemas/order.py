from typing import List, Optional
from datetime import datetime
import uuid

from pydantic import Field, computed_field

from orderledger.models.order import OrderStatus, StageStatus
from orderledger.schemas.base import Amount, BaseCreateSchema, BaseResponseSchema, Money
from orderledger.schemas.catalog import CounterpartyBrief, ProductBrief


# ==================== ORDER ITEM SCHEMAS ====================

class OrderItemCreate(BaseCreateSchema):
    """Order item creation schema."""
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1)
    unit_price: Optional[Money] = None  # Defaults to catalog price


class OrderItemResponse(BaseResponseSchema):
    id: uuid.UUID
    product_id: uuid.UUID
    product: Optional[ProductBrief] = None
    quantity: int
    unit_price: Amount
    total_amount: Amount


# ==================== ORDER SCHEMAS ====================

class OrderCreate(BaseCreateSchema):
    counterparty_id: uuid.UUID
    items: List[OrderItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = None
    expected_delivery: Optional[datetime] = None


class OrderStatusUpdate(BaseCreateSchema):
    """Status transition request."""
    status: str = Field(..., description="Target status, e.g. ACCEPTED")
    note: Optional[str] = None


class StatusHistoryResponse(BaseResponseSchema):
    id: uuid.UUID
    from_status: Optional[str] = None
    to_status: str
    note: Optional[str] = None
    changed_by: Optional[uuid.UUID] = None
    created_at: datetime


class ManufacturingStageUpdate(BaseCreateSchema):
    stage_id: uuid.UUID
    status: StageStatus
    note: Optional[str] = None


class ManufacturingStageResponse(BaseResponseSchema):
    id: uuid.UUID
    stage: str
    sequence: int
    status: str
    note: Optional[str] = None
    updated_at: datetime


class OrderBrief(BaseResponseSchema):
    """Order for list views."""
    id: uuid.UUID
    order_number: str
    status: str
    total_amount: Amount
    counterparty: Optional[CounterpartyBrief] = None
    items: List[OrderItemResponse] = []
    created_at: datetime

    @computed_field
    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


class OrderResponse(OrderBrief):
    counterparty_id: uuid.UUID
    notes: Optional[str] = None
    expected_delivery: Optional[datetime] = None
    updated_at: datetime
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    status_history: List[StatusHistoryResponse] = []
    manufacturing_stages: List[ManufacturingStageResponse] = []

    @computed_field
    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value)
