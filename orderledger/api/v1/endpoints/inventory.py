from typing import List, Optional
import uuid

from fastapi import APIRouter, Query, status

from orderledger.api.deps import DB, Clock, ActiveTenant
from orderledger.schemas.inventory import (
    AllocationResponse,
    ConservationResponse,
    InventoryLotResponse,
    ReceiptCreate,
    StockLevelResponse,
    UsageCreate,
)
from orderledger.services.inventory_service import InventoryService


router = APIRouter(tags=["Inventory"])


@router.get("", response_model=List[StockLevelResponse])
async def get_stock_levels(
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
    product_name: Optional[str] = Query(None, description="Case-insensitive name filter"),
):
    """Stock per product with usage rate and days of cover."""
    service = InventoryService(db, clock=clock)
    levels = await service.get_stock_levels(tenant.business_id, product_name=product_name)
    return [StockLevelResponse.model_validate(level) for level in levels]


@router.post("/usage", response_model=AllocationResponse, status_code=status.HTTP_201_CREATED)
async def record_usage(
    data: UsageCreate,
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    """Consume stock FIFO (oldest lot first). All-or-nothing."""
    service = InventoryService(db, clock=clock)
    result = await service.allocate(
        tenant.business_id,
        data.product_id,
        data.quantity,
        reason=data.reason,
    )
    return AllocationResponse.model_validate(result)


@router.post("/receipts", response_model=InventoryLotResponse, status_code=status.HTTP_201_CREATED)
async def receive_stock(
    data: ReceiptCreate,
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    """Receive stock into a new lot and record STOCK_IN."""
    service = InventoryService(db, clock=clock)
    lot = await service.replenish(
        tenant.business_id,
        data.product_id,
        data.quantity,
        data.cost_per_unit,
        note=data.note,
        received_at=data.received_at,
        counterparty_id=data.counterparty_id,
    )
    return InventoryLotResponse.model_validate(lot)


@router.get("/{product_id}/lots", response_model=List[InventoryLotResponse])
async def get_lots(
    product_id: uuid.UUID,
    db: DB,
    tenant: ActiveTenant,
    include_exhausted: bool = Query(True),
):
    """Lots for a product in FIFO order."""
    service = InventoryService(db)
    lots = await service.get_lots(tenant.business_id, product_id, include_exhausted=include_exhausted)
    return [InventoryLotResponse.model_validate(lot) for lot in lots]


@router.get("/{product_id}/conservation", response_model=ConservationResponse)
async def check_conservation(
    product_id: uuid.UUID,
    db: DB,
    tenant: ActiveTenant,
):
    """Received minus consumed against what the lots still hold."""
    service = InventoryService(db)
    return await service.check_conservation(tenant.business_id, product_id)
