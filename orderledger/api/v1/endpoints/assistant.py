"""
Read-only endpoints for the reporting/assistant layer.

Bad filters and failed reads come back empty instead of erroring.
"""
from typing import List, Optional

from fastapi import APIRouter, Query

from orderledger.api.deps import DB, Clock, ActiveTenant
from orderledger.schemas.catalog import CounterpartySummary
from orderledger.schemas.insights import HistoryResponse, InsightResponse
from orderledger.schemas.inventory import StockLevelResponse
from orderledger.schemas.ledger import LedgerEntryResponse
from orderledger.schemas.order import OrderBrief
from orderledger.services.query_service import QueryService


router = APIRouter(tags=["Assistant"])


@router.get("/orders", response_model=List[OrderBrief])
async def track_orders(
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
    counterparty: Optional[str] = Query(None, description="Counterparty name contains"),
):
    service = QueryService(db, clock=clock)
    orders = await service.get_order_tracking(tenant.business_id, counterparty_name=counterparty)
    return [OrderBrief.model_validate(o) for o in orders]


@router.get("/stock", response_model=List[StockLevelResponse])
async def stock_levels(
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
    product: Optional[str] = Query(None, description="Product name contains"),
):
    service = QueryService(db, clock=clock)
    levels = await service.get_stock_levels(tenant.business_id, product_name=product)
    return [StockLevelResponse.model_validate(level) for level in levels]


@router.get("/insights", response_model=List[InsightResponse])
async def business_insights(
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    service = QueryService(db, clock=clock)
    insights = await service.get_business_insights(tenant.business_id)
    return [InsightResponse.model_validate(i) for i in insights]


@router.get("/history", response_model=HistoryResponse)
async def sales_or_purchase_history(
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
    period: Optional[str] = Query(None, description="last week, last month, last quarter, last year"),
    counterparty: Optional[str] = Query(None),
    entry_type: str = Query("SALE", description="SALE or PURCHASE"),
):
    service = QueryService(db, clock=clock)
    history = await service.get_sales_or_purchase_history(
        tenant.business_id,
        period=period,
        counterparty_name=counterparty,
        entry_type=entry_type,
    )
    return HistoryResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in history["entries"]],
        total_amount=history["total_amount"],
        total_quantity=history["total_quantity"],
        count=history["count"],
    )


@router.get("/counterparties", response_model=List[CounterpartySummary])
async def counterparties(
    db: DB,
    tenant: ActiveTenant,
):
    service = QueryService(db)
    rows = await service.get_counterparties(tenant.business_id)
    return [CounterpartySummary.model_validate(row) for row in rows]
