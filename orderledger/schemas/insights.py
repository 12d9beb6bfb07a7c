from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import uuid

from pydantic import BaseModel

from orderledger.schemas.base import Amount, BaseResponseSchema
from orderledger.schemas.ledger import LedgerEntryResponse
from orderledger.schemas.order import OrderBrief


class InsightResponse(BaseResponseSchema):
    type: str
    title: str
    message: str
    severity: str
    product_id: Optional[uuid.UUID] = None


class InsightsResponse(BaseModel):
    insights: List[InsightResponse]
    generated_at: datetime


class HistoryResponse(BaseModel):
    entries: List[LedgerEntryResponse]
    total_amount: Amount
    total_quantity: int
    count: int


class DashboardResponse(BaseModel):
    total_orders: int = 0
    active_orders: int = 0
    total_counterparties: int = 0
    total_products: int = 0
    total_stock_units: int = 0
    total_stock_value: Amount = Decimal("0.00")
    recent_orders: List[OrderBrief] = []
