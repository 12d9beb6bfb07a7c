from typing import Optional
from datetime import datetime
import uuid

from fastapi import APIRouter, Query, status

from orderledger.api.deps import DB, Clock, ActiveTenant
from orderledger.schemas.ledger import (
    LedgerEntryResponse,
    LedgerListResponse,
    PurchaseCreate,
    ReversalCreate,
)
from orderledger.services.ledger_service import LedgerService


router = APIRouter(tags=["Ledger"])


@router.get("", response_model=LedgerListResponse)
async def list_entries(
    db: DB,
    tenant: ActiveTenant,
    entry_type: Optional[str] = Query(None, description="PURCHASE, SALE or STOCK_IN"),
    product_id: Optional[uuid.UUID] = Query(None),
    counterparty_id: Optional[uuid.UUID] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
):
    """Ledger entries, newest first, with totals."""
    service = LedgerService(db)
    entries = await service.list_entries(
        tenant.business_id,
        entry_type=entry_type,
        product_id=product_id,
        counterparty_id=counterparty_id,
        date_from=date_from,
        date_to=date_to,
    )
    summary = service.summarize(entries)
    return LedgerListResponse(
        items=[LedgerEntryResponse.model_validate(e) for e in entries],
        **summary,
    )


@router.post("/purchases", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def record_purchase(
    data: PurchaseCreate,
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    """Record a supplier purchase."""
    service = LedgerService(db, clock=clock)
    entry = await service.record_purchase(
        tenant.business_id,
        data.product_id,
        data.quantity,
        data.unit_price,
        counterparty_id=data.counterparty_id,
        description=data.description,
    )
    return LedgerEntryResponse.model_validate(entry)


@router.post("/{entry_id}/reverse", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def reverse_entry(
    entry_id: uuid.UUID,
    data: ReversalCreate,
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    """Append the offsetting entry for a mistaken one."""
    service = LedgerService(db, clock=clock)
    reversal = await service.reverse(tenant.business_id, entry_id, reason=data.reason)
    return LedgerEntryResponse.model_validate(reversal)
