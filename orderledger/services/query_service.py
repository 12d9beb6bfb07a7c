"""
Query Service - read-only surface for the reporting/assistant layer.

Every method is tenant-scoped. Failures degrade to an empty result with a
warning log instead of propagating.
"""
from typing import Callable, List, Optional
from datetime import datetime, timedelta
from decimal import Decimal
import uuid
import logging

from sqlalchemy import select, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.config import settings
from orderledger.core.errors import OrderLedgerError
from orderledger.db_types import utc_now
from orderledger.models.business import Counterparty
from orderledger.models.inventory import InventoryLot
from orderledger.models.ledger import LedgerEntry, LedgerEntryType
from orderledger.models.order import Order, OrderItem
from orderledger.models.product import Product
from orderledger.services import order_state_machine as sm
from orderledger.services.insights_service import Insight, InsightsService
from orderledger.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

# Period name -> days back from now
PERIODS = {
    "last week": 7,
    "last month": 30,
    "last quarter": 90,
    "last year": 365,
}
DEFAULT_PERIOD = "last month"

HISTORY_ENTRY_TYPES = (LedgerEntryType.SALE.value, LedgerEntryType.PURCHASE.value)

_DEGRADABLE_ERRORS = (SQLAlchemyError, OrderLedgerError)


def resolve_period(period: Optional[str]) -> int:
    """Days covered by a named period. Raises ValueError for unknown names."""
    key = (period or DEFAULT_PERIOD).strip().lower()
    if key not in PERIODS:
        raise ValueError(f"Unknown period '{period}'. Valid periods: {', '.join(PERIODS)}")
    return PERIODS[key]


def empty_history() -> dict:
    return {"entries": [], "total_amount": Decimal("0.00"), "total_quantity": 0, "count": 0}


class QueryService:
    """Read-only queries for order tracking, stock, history and counterparties."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    async def _degrade(self, operation: str, business_id: uuid.UUID, error: Exception) -> None:
        logger.warning(f"{operation} degraded to empty for business {business_id}: {error}")
        if isinstance(error, SQLAlchemyError):
            await self.db.rollback()

    async def _match_counterparties(self, business_id: uuid.UUID, name: str) -> List[uuid.UUID]:
        result = await self.db.execute(
            select(Counterparty.id).where(
                and_(
                    Counterparty.business_id == business_id,
                    Counterparty.name.ilike(f"%{name.strip()}%"),
                )
            )
        )
        return list(result.scalars().all())

    # ==================== ORDERS ====================

    async def get_order_tracking(
        self,
        business_id: uuid.UUID,
        counterparty_name: Optional[str] = None,
    ) -> List[Order]:
        """Most recent orders with items, optionally for counterparties matching a name."""
        try:
            conditions = [Order.business_id == business_id]
            if counterparty_name:
                matched = await self._match_counterparties(business_id, counterparty_name)
                if not matched:
                    return []
                conditions.append(Order.counterparty_id.in_(matched))

            result = await self.db.execute(
                select(Order)
                .options(
                    selectinload(Order.items).selectinload(OrderItem.product),
                    selectinload(Order.counterparty),
                )
                .where(and_(*conditions))
                .order_by(Order.created_at.desc())
                .limit(settings.ORDER_TRACKING_LIMIT)
            )
            return list(result.scalars().unique().all())
        except _DEGRADABLE_ERRORS as e:
            await self._degrade("Order tracking", business_id, e)
            return []

    # ==================== STOCK ====================

    async def get_stock_levels(
        self,
        business_id: uuid.UUID,
        product_name: Optional[str] = None,
    ) -> List[dict]:
        try:
            return await InventoryService(self.db, clock=self.clock).get_stock_levels(
                business_id, product_name=product_name
            )
        except _DEGRADABLE_ERRORS as e:
            await self._degrade("Stock levels", business_id, e)
            return []

    async def get_business_insights(self, business_id: uuid.UUID) -> List[Insight]:
        try:
            return await InsightsService(self.db, clock=self.clock).compute(business_id)
        except _DEGRADABLE_ERRORS as e:
            await self._degrade("Insights", business_id, e)
            return []

    # ==================== LEDGER HISTORY ====================

    async def get_sales_or_purchase_history(
        self,
        business_id: uuid.UUID,
        period: Optional[str] = None,
        counterparty_name: Optional[str] = None,
        entry_type: str = LedgerEntryType.SALE.value,
    ) -> dict:
        """
        Ledger entries of one type inside a named period, newest first,
        with count and signed totals.
        """
        try:
            days = resolve_period(period)
            entry_type = str(getattr(entry_type, "value", entry_type)).upper()
            if entry_type not in HISTORY_ENTRY_TYPES:
                raise ValueError(f"Unsupported history type '{entry_type}'")
        except ValueError as e:
            logger.warning(f"History filter rejected for business {business_id}: {e}")
            return empty_history()

        try:
            now = self.clock()
            conditions = [
                LedgerEntry.business_id == business_id,
                LedgerEntry.entry_type == entry_type,
                LedgerEntry.created_at >= now - timedelta(days=days),
                LedgerEntry.created_at <= now,
            ]
            if counterparty_name:
                matched = await self._match_counterparties(business_id, counterparty_name)
                if not matched:
                    return empty_history()
                conditions.append(LedgerEntry.counterparty_id.in_(matched))

            result = await self.db.execute(
                select(LedgerEntry)
                .options(
                    selectinload(LedgerEntry.product),
                    selectinload(LedgerEntry.order),
                    selectinload(LedgerEntry.counterparty),
                )
                .where(and_(*conditions))
                .order_by(LedgerEntry.created_at.desc())
            )
            entries = list(result.scalars().all())
        except _DEGRADABLE_ERRORS as e:
            await self._degrade("Ledger history", business_id, e)
            return empty_history()

        return {
            "entries": entries,
            "total_amount": sum((e.total_amount for e in entries), Decimal("0.00")),
            "total_quantity": sum(e.quantity for e in entries),
            "count": len(entries),
        }

    # ==================== COUNTERPARTIES ====================

    async def get_counterparties(self, business_id: uuid.UUID) -> List[dict]:
        """Counterparties with their order and product counts."""
        try:
            order_counts = (
                select(Order.counterparty_id, func.count(Order.id).label("order_count"))
                .where(Order.business_id == business_id)
                .group_by(Order.counterparty_id)
                .subquery()
            )
            product_counts = (
                select(Product.counterparty_id, func.count(Product.id).label("product_count"))
                .where(Product.business_id == business_id)
                .group_by(Product.counterparty_id)
                .subquery()
            )
            rows = (await self.db.execute(
                select(
                    Counterparty,
                    func.coalesce(order_counts.c.order_count, 0),
                    func.coalesce(product_counts.c.product_count, 0),
                )
                .outerjoin(order_counts, order_counts.c.counterparty_id == Counterparty.id)
                .outerjoin(product_counts, product_counts.c.counterparty_id == Counterparty.id)
                .where(Counterparty.business_id == business_id)
                .order_by(Counterparty.name)
            )).all()
        except _DEGRADABLE_ERRORS as e:
            await self._degrade("Counterparty listing", business_id, e)
            return []

        return [
            {
                "id": cp.id,
                "name": cp.name,
                "kind": cp.kind,
                "email": cp.email,
                "phone": cp.phone,
                "order_count": int(order_count),
                "product_count": int(product_count),
            }
            for cp, order_count, product_count in rows
        ]

    # ==================== DASHBOARD ====================

    async def get_dashboard_summary(self, business_id: uuid.UUID) -> dict:
        """Headline counts and stock valuation for the business dashboard."""
        try:
            total_orders = await self.db.scalar(
                select(func.count(Order.id)).where(Order.business_id == business_id)
            )
            active_orders = await self.db.scalar(
                select(func.count(Order.id)).where(
                    and_(
                        Order.business_id == business_id,
                        Order.status.notin_(sm.TERMINAL_STATUSES),
                    )
                )
            )
            total_counterparties = await self.db.scalar(
                select(func.count(Counterparty.id)).where(Counterparty.business_id == business_id)
            )
            total_products = await self.db.scalar(
                select(func.count(Product.id)).where(Product.business_id == business_id)
            )
            stock_units, stock_value = (await self.db.execute(
                select(
                    func.coalesce(func.sum(InventoryLot.remaining_qty), 0),
                    func.coalesce(func.sum(InventoryLot.remaining_qty * InventoryLot.cost_per_unit), 0),
                ).where(InventoryLot.business_id == business_id)
            )).one()
            recent_orders = await self.get_order_tracking(business_id)
        except _DEGRADABLE_ERRORS as e:
            await self._degrade("Dashboard", business_id, e)
            return {}

        return {
            "total_orders": int(total_orders or 0),
            "active_orders": int(active_orders or 0),
            "total_counterparties": int(total_counterparties or 0),
            "total_products": int(total_products or 0),
            "total_stock_units": int(stock_units),
            "total_stock_value": Decimal(str(stock_value)).quantize(Decimal("0.01")),
            "recent_orders": recent_orders[:5],
        }
