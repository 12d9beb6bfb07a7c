"""
Business Insights Service

Rule-based advisories computed from current stock and recent history:
- Stock alerts (low, out of stock, running low, slow moving)
- Demand signals (high demand, usage trend)
- Revenue summary for the trailing window

Read-only. For a fixed snapshot and a fixed `now` the output is identical
across calls, including order.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy import select, func, and_, case
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.config import settings
from orderledger.db_types import utc_now
from orderledger.models.inventory import InventoryLot, InventoryUsage
from orderledger.models.ledger import LedgerEntry, LedgerEntryType
from orderledger.models.order import Order, OrderItem, OrderStatus
from orderledger.models.product import Product
from orderledger.services.inventory_service import days_of_cover

logger = logging.getLogger(__name__)


SEVERITY_CRITICAL = "critical"
SEVERITY_WARNING = "warning"
SEVERITY_INFO = "info"

SEVERITY_ORDER = {SEVERITY_CRITICAL: 0, SEVERITY_WARNING: 1, SEVERITY_INFO: 2}


@dataclass(frozen=True)
class Insight:
    type: str
    title: str
    message: str
    severity: str
    product_id: Optional[UUID] = None

    def to_dict(self) -> dict:
        return asdict(self)


# ==================== Helpers ====================

def format_money(amount: Decimal) -> str:
    return f"{settings.CURRENCY_SYMBOL}{amount:,.2f}"


def percent_change(current: int, previous: int) -> int:
    """Whole-percent change from previous to current (previous must be > 0)."""
    return round(abs(current - previous) * 100 / previous)


def sort_by_severity(insights: List[Insight]) -> List[Insight]:
    """Critical first, then warning, then info. Stable within a tier."""
    return sorted(insights, key=lambda i: SEVERITY_ORDER[i.severity])


class InsightsService:
    """Computes advisories for one business."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    async def compute(self, business_id: UUID, now: Optional[datetime] = None) -> List[Insight]:
        now = now or self.clock()
        window_days = settings.INSIGHT_WINDOW_DAYS
        window_start = now - timedelta(days=window_days)
        prior_start = now - timedelta(days=window_days * 2)

        products = list((await self.db.execute(
            select(Product)
            .where(Product.business_id == business_id)
            .order_by(Product.name, Product.sku)
        )).scalars().all())

        lot_stats = await self._lot_stats(business_id)
        usage_stats = await self._usage_stats(business_id, now, window_start, prior_start)
        demand_stats = await self._demand_stats(business_id, now, window_start)

        insights: List[Insight] = []
        for product in products:
            total_stock, lot_count = lot_stats.get(product.id, (0, 0))
            recent_usage, prior_usage = usage_stats.get(product.id, (0, 0))
            insights.extend(
                self._product_insights(
                    product,
                    total_stock,
                    lot_count,
                    recent_usage,
                    prior_usage,
                    demand_stats.get(product.id),
                    window_days,
                )
            )

        revenue = await self._revenue_summary(business_id, now, window_start, window_days)
        if revenue:
            insights.append(revenue)

        result = sort_by_severity(insights)
        logger.info(f"Computed {len(result)} insights for business {business_id}")
        return result

    # ==================== Per-product rules ====================

    def _product_insights(
        self,
        product: Product,
        total_stock: int,
        lot_count: int,
        recent_usage: int,
        prior_usage: int,
        demand: Optional[Tuple[int, int]],
        window_days: int,
    ) -> List[Insight]:
        insights = []
        unit = product.unit

        if 0 < total_stock <= product.reorder_level:
            insights.append(Insight(
                type="LOW_STOCK",
                title=f"Low Stock: {product.name}",
                message=(
                    f"Only {total_stock} {unit} remaining. You may not be able to fulfill "
                    f"upcoming orders. Consider restocking."
                ),
                severity=SEVERITY_WARNING,
                product_id=product.id,
            ))

        if total_stock == 0 and lot_count > 0:
            insights.append(Insight(
                type="OUT_OF_STOCK",
                title=f"Out of Stock: {product.name}",
                message=(
                    f"{product.name} is completely out of stock. You cannot fulfill any new "
                    f"orders for this product. Restock immediately."
                ),
                severity=SEVERITY_CRITICAL,
                product_id=product.id,
            ))

        if recent_usage > 0 and total_stock > 0:
            days = days_of_cover(total_stock, recent_usage, window_days)
            if days <= settings.RUNNING_LOW_WARNING_DAYS:
                daily_rate = Decimal(recent_usage) / Decimal(window_days)
                insights.append(Insight(
                    type="RUNNING_LOW",
                    title=f"Stock Running Low: {product.name}",
                    message=(
                        f"At current usage ({daily_rate:.1f} {unit}/day), stock will last "
                        f"~{days} days. Restock soon to avoid missed sales."
                    ),
                    severity=(
                        SEVERITY_CRITICAL
                        if days <= settings.RUNNING_LOW_CRITICAL_DAYS
                        else SEVERITY_WARNING
                    ),
                    product_id=product.id,
                ))

        if total_stock > 0 and recent_usage == 0 and lot_count > 0:
            insights.append(Insight(
                type="SLOW_MOVING",
                title=f"No Movement: {product.name}",
                message=(
                    f"{product.name} has {total_stock} {unit} in stock but no usage in the "
                    f"last {window_days} days. Consider running a promotion or adjusting pricing."
                ),
                severity=SEVERITY_INFO,
                product_id=product.id,
            ))

        if demand and demand[0] >= settings.HIGH_DEMAND_MIN_ORDERS:
            line_count, ordered_qty = demand
            insights.append(Insight(
                type="HIGH_DEMAND",
                title=f"Top Seller: {product.name}",
                message=(
                    f"{product.name} has {line_count} orders totaling {ordered_qty} {unit} "
                    f"in the last {window_days} days. Keep stock levels high."
                ),
                severity=SEVERITY_INFO,
                product_id=product.id,
            ))

        # Trend only when both windows saw usage
        if recent_usage > 0 and prior_usage > 0:
            ratio = Decimal(recent_usage) / Decimal(prior_usage)
            if ratio > Decimal(str(settings.TREND_INCREASE_RATIO)):
                insights.append(Insight(
                    type="SALES_INCREASING",
                    title=f"Sales Growing: {product.name}",
                    message=(
                        f"Usage of {product.name} increased {percent_change(recent_usage, prior_usage)}% "
                        f"compared to the previous {window_days} days."
                    ),
                    severity=SEVERITY_INFO,
                    product_id=product.id,
                ))
            elif ratio < Decimal(str(settings.TREND_DECREASE_RATIO)):
                insights.append(Insight(
                    type="SALES_DECLINING",
                    title=f"Sales Declining: {product.name}",
                    message=(
                        f"Usage of {product.name} dropped {percent_change(recent_usage, prior_usage)}% "
                        f"compared to the previous {window_days} days. Review pricing or demand."
                    ),
                    severity=SEVERITY_WARNING,
                    product_id=product.id,
                ))

        return insights

    # ==================== Business-wide ====================

    async def _revenue_summary(
        self,
        business_id: UUID,
        now: datetime,
        window_start: datetime,
        window_days: int,
    ) -> Optional[Insight]:
        rows = (await self.db.execute(
            select(
                LedgerEntry.entry_type,
                func.count(LedgerEntry.id),
                func.coalesce(func.sum(LedgerEntry.total_amount), 0),
            )
            .where(
                and_(
                    LedgerEntry.business_id == business_id,
                    LedgerEntry.entry_type.in_([LedgerEntryType.SALE.value, LedgerEntryType.PURCHASE.value]),
                    LedgerEntry.created_at >= window_start,
                    LedgerEntry.created_at <= now,
                )
            )
            .group_by(LedgerEntry.entry_type)
        )).all()

        totals = {row[0]: (int(row[1]), Decimal(str(row[2]))) for row in rows}
        sale_count, sales = totals.get(LedgerEntryType.SALE.value, (0, Decimal("0.00")))
        purchase_count, purchases = totals.get(LedgerEntryType.PURCHASE.value, (0, Decimal("0.00")))

        if sales == 0 and purchases == 0:
            return None

        return Insight(
            type="REVENUE_SUMMARY",
            title="Revenue Summary",
            message=(
                f"Total revenue in the last {window_days} days: {format_money(sales)} from "
                f"{sale_count} sales transactions. Purchases: {format_money(purchases)} "
                f"across {purchase_count} entries."
            ),
            severity=SEVERITY_INFO,
        )

    # ==================== Aggregates ====================

    async def _lot_stats(self, business_id: UUID) -> Dict[UUID, Tuple[int, int]]:
        """product_id -> (total remaining, lot count)"""
        rows = (await self.db.execute(
            select(
                InventoryLot.product_id,
                func.coalesce(func.sum(InventoryLot.remaining_qty), 0),
                func.count(InventoryLot.id),
            )
            .where(InventoryLot.business_id == business_id)
            .group_by(InventoryLot.product_id)
        )).all()
        return {row[0]: (int(row[1]), int(row[2])) for row in rows}

    async def _usage_stats(
        self,
        business_id: UUID,
        now: datetime,
        window_start: datetime,
        prior_start: datetime,
    ) -> Dict[UUID, Tuple[int, int]]:
        """product_id -> (usage in current window, usage in prior window)"""
        recent = func.coalesce(func.sum(case(
            (and_(InventoryUsage.created_at >= window_start, InventoryUsage.created_at <= now),
             InventoryUsage.quantity),
            else_=0,
        )), 0)
        prior = func.coalesce(func.sum(case(
            (and_(InventoryUsage.created_at >= prior_start, InventoryUsage.created_at < window_start),
             InventoryUsage.quantity),
            else_=0,
        )), 0)

        rows = (await self.db.execute(
            select(InventoryUsage.product_id, recent, prior)
            .where(
                and_(
                    InventoryUsage.business_id == business_id,
                    InventoryUsage.created_at >= prior_start,
                )
            )
            .group_by(InventoryUsage.product_id)
        )).all()
        return {row[0]: (int(row[1]), int(row[2])) for row in rows}

    async def _demand_stats(
        self,
        business_id: UUID,
        now: datetime,
        window_start: datetime,
    ) -> Dict[UUID, Tuple[int, int]]:
        """product_id -> (order lines, ordered quantity) on live orders in the window"""
        rows = (await self.db.execute(
            select(
                OrderItem.product_id,
                func.count(OrderItem.id),
                func.coalesce(func.sum(OrderItem.quantity), 0),
            )
            .join(Order, Order.id == OrderItem.order_id)
            .where(
                and_(
                    Order.business_id == business_id,
                    Order.status != OrderStatus.CANCELLED.value,
                    Order.created_at >= window_start,
                    Order.created_at <= now,
                )
            )
            .group_by(OrderItem.product_id)
        )).all()
        return {row[0]: (int(row[1]), int(row[2])) for row in rows}
