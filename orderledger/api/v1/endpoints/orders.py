from typing import List, Optional
import uuid

from fastapi import APIRouter, HTTPException, Query, status

from orderledger.api.deps import DB, Clock, ActiveTenant
from orderledger.schemas.order import (
    OrderCreate,
    OrderStatusUpdate,
    OrderBrief,
    OrderResponse,
    ManufacturingStageUpdate,
    ManufacturingStageResponse,
)
from orderledger.services.order_service import OrderService


router = APIRouter(tags=["Orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreate,
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    """Place a new order. Starts in PLACED with one history row."""
    service = OrderService(db, clock=clock)
    order = await service.create_order(
        tenant.business_id,
        data.counterparty_id,
        [item.model_dump() for item in data.items],
        notes=data.notes,
        expected_delivery=data.expected_delivery,
        created_by=tenant.user_id,
    )
    return OrderResponse.model_validate(order)


@router.get("", response_model=List[OrderBrief])
async def list_orders(
    db: DB,
    tenant: ActiveTenant,
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    counterparty_id: Optional[uuid.UUID] = Query(None),
):
    """List orders, newest first."""
    service = OrderService(db)
    orders = await service.list_orders(tenant.business_id, status=status_filter, counterparty_id=counterparty_id)
    return [OrderBrief.model_validate(o) for o in orders]


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    db: DB,
    tenant: ActiveTenant,
):
    """Get order details with history and manufacturing stages."""
    service = OrderService(db)
    order = await service.get_order(tenant.business_id, order_id)

    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )

    return OrderResponse.model_validate(order)


@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    data: OrderStatusUpdate,
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    """
    Move the order along its lifecycle.

    - IN_MANUFACTURING creates the manufacturing stages
    - DELIVERED receives the goods into new lots and records SALE entries
    """
    service = OrderService(db, clock=clock)
    order = await service.transition(
        tenant.business_id,
        order_id,
        data.status,
        note=data.note,
        changed_by=tenant.user_id,
    )
    return OrderResponse.model_validate(order)


@router.put("/{order_id}/manufacturing", response_model=ManufacturingStageResponse)
async def update_manufacturing_stage(
    order_id: uuid.UUID,
    data: ManufacturingStageUpdate,
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    """Operator update of one manufacturing stage."""
    service = OrderService(db, clock=clock)
    stage = await service.update_manufacturing_stage(
        tenant.business_id,
        order_id,
        data.stage_id,
        data.status,
        note=data.note,
    )
    return ManufacturingStageResponse.model_validate(stage)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    order_id: uuid.UUID,
    db: DB,
    tenant: ActiveTenant,
):
    """Delete an order with its items, history and stages. Lots and ledger entries stay."""
    service = OrderService(db)
    await service.delete_order(tenant.business_id, order_id)
