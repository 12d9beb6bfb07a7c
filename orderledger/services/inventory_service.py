"""Inventory Service for lot-based stock management.

Owns every write to InventoryLot.remaining_qty:
- FIFO allocation (oldest lot first), all-or-nothing
- Replenishment (one new lot + one STOCK_IN ledger entry)
- Stock level and conservation reads
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
import uuid
import logging

from sqlalchemy import select, func, and_, case
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.config import settings
from orderledger.core.errors import InsufficientStockError, InvalidQuantityError, NotFoundError
from orderledger.db_types import to_money, utc_now
from orderledger.models.inventory import InventoryLot, InventoryUsage
from orderledger.models.ledger import LedgerEntryType
from orderledger.models.product import Product
from orderledger.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LotDeduction:
    """Quantity taken from one lot by an allocation."""
    lot_id: uuid.UUID
    lot_number: str
    quantity: int
    remaining_after: int


@dataclass
class AllocationResult:
    """Outcome of a successful FIFO allocation."""
    product_id: uuid.UUID
    quantity: int
    deductions: List[LotDeduction] = field(default_factory=list)
    usage_id: Optional[uuid.UUID] = None


def generate_lot_number(now: datetime) -> str:
    """Lot number: LOT-YYYYMMDD-XXXXXXXX"""
    return f"LOT-{now.strftime('%Y%m%d')}-{uuid.uuid4().hex[:8].upper()}"


def days_of_cover(total_stock: int, window_usage: int, window_days: int) -> Optional[int]:
    """
    Days until stock runs out at the trailing-window usage rate, rounded half up.
    None when there was no usage in the window.
    """
    if window_usage <= 0:
        return None
    days = Decimal(total_stock) * Decimal(window_days) / Decimal(window_usage)
    return int(days.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def plan_fifo_allocation(lots: List[InventoryLot], quantity: int) -> List[tuple]:
    """
    Greedy FIFO plan over lots already sorted oldest first.

    Returns [(lot, deduct), ...]. Raises InsufficientStockError when the lots
    cannot cover `quantity`; nothing is mutated either way.
    """
    plan = []
    remaining = quantity
    for lot in lots:
        if remaining <= 0:
            break
        if lot.remaining_qty <= 0:
            continue
        deduct = min(remaining, lot.remaining_qty)
        plan.append((lot, deduct))
        remaining -= deduct

    if remaining > 0:
        available = quantity - remaining
        raise InsufficientStockError(
            f"Insufficient stock: requested {quantity}, available {available}",
            requested=quantity,
            available=available,
        )
    return plan


def _validate_positive_int(value, label: str = "Quantity") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(f"{label} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidQuantityError(f"{label} must be greater than 0, got {value}")
    return value


class InventoryService:
    """Service for lot allocation, replenishment and stock reads."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.ledger = LedgerService(db, clock=clock)

    # ==================== ALLOCATION ====================

    async def allocate(
        self,
        business_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
        reason: Optional[str] = None,
    ) -> AllocationResult:
        """
        Deduct `quantity` from the product's lots, oldest first, record the
        usage (reason defaults to "Manual usage") and commit.

        The product row and its open lots are locked FOR UPDATE so concurrent
        allocations on the same product serialize. The plan is computed before
        any lot is touched, so a shortfall leaves every lot unchanged.

        Raises:
            InvalidQuantityError: quantity not a positive integer
            NotFoundError: product missing or owned by another business
            InsufficientStockError: open lots cannot cover the quantity
        """
        quantity = _validate_positive_int(quantity)

        try:
            await self._lock_product(business_id, product_id)
            lots = await self._get_open_lots_for_update(business_id, product_id)
            plan = plan_fifo_allocation(lots, quantity)

            result = AllocationResult(product_id=product_id, quantity=quantity)
            for lot, deduct in plan:
                lot.remaining_qty = lot.remaining_qty - deduct
                result.deductions.append(
                    LotDeduction(
                        lot_id=lot.id,
                        lot_number=lot.lot_number,
                        quantity=deduct,
                        remaining_after=lot.remaining_qty,
                    )
                )

            # Every deduction is mirrored by one usage row
            usage = InventoryUsage(
                business_id=business_id,
                product_id=product_id,
                quantity=quantity,
                reason=reason or "Manual usage",
                created_at=self.clock(),
            )
            self.db.add(usage)
            await self.db.flush()
            result.usage_id = usage.id

            await self.db.commit()
        except InsufficientStockError as e:
            await self.db.rollback()
            logger.info(
                f"Allocation refused for product {product_id}: "
                f"requested={e.requested} available={e.available}"
            )
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Allocation failed for product {product_id}: {e}")
            raise

        logger.info(
            f"Allocated {quantity} of product {product_id} (business {business_id}) "
            f"from {len(result.deductions)} lot(s)"
        )
        return result

    # ==================== REPLENISHMENT ====================

    async def add_lot(
        self,
        business_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
        cost_per_unit,
        order_id: Optional[uuid.UUID] = None,
        note: Optional[str] = None,
        received_at: Optional[datetime] = None,
    ) -> InventoryLot:
        """
        Create one full lot inside the caller's unit of work (flush, no commit).
        """
        quantity = _validate_positive_int(quantity)
        try:
            cost = to_money(cost_per_unit)
        except ValueError as e:
            raise InvalidQuantityError(str(e))
        if not cost.is_finite() or cost < 0:
            raise InvalidQuantityError(f"Cost per unit must be non-negative, got {cost_per_unit}")

        received_at = received_at or self.clock()
        lot = InventoryLot(
            business_id=business_id,
            product_id=product_id,
            order_id=order_id,
            lot_number=generate_lot_number(received_at),
            quantity=quantity,
            remaining_qty=quantity,
            cost_per_unit=cost,
            note=note,
            received_at=received_at,
        )
        self.db.add(lot)
        await self.db.flush()
        return lot

    async def replenish(
        self,
        business_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
        cost_per_unit,
        note: Optional[str] = None,
        received_at: Optional[datetime] = None,
        counterparty_id: Optional[uuid.UUID] = None,
    ) -> InventoryLot:
        """
        Receive stock: one new lot and one STOCK_IN ledger entry, committed together.

        Raises:
            InvalidQuantityError: quantity <= 0 or negative cost
            NotFoundError: product missing or owned by another business
        """
        quantity = _validate_positive_int(quantity)

        try:
            product = await self._get_product(business_id, product_id)
            lot = await self.add_lot(
                business_id,
                product.id,
                quantity,
                cost_per_unit,
                note=note,
                received_at=received_at,
            )
            await self.ledger.append(
                business_id,
                LedgerEntryType.STOCK_IN,
                quantity,
                lot.cost_per_unit,
                description=note or f"Stock in: {quantity} {product.unit} of {product.name} ({lot.lot_number})",
                product_id=product.id,
                counterparty_id=counterparty_id,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Replenish failed for product {product_id}: {e}")
            raise

        logger.info(f"Replenished product {product_id}: lot {lot.lot_number} qty={quantity}")
        return lot

    # ==================== READS ====================

    async def get_lots(
        self,
        business_id: uuid.UUID,
        product_id: uuid.UUID,
        include_exhausted: bool = True,
    ) -> List[InventoryLot]:
        """Lots for a product in FIFO order."""
        conditions = [
            InventoryLot.business_id == business_id,
            InventoryLot.product_id == product_id,
        ]
        if not include_exhausted:
            conditions.append(InventoryLot.remaining_qty > 0)

        result = await self.db.execute(
            select(InventoryLot)
            .where(and_(*conditions))
            .order_by(InventoryLot.received_at.asc(), InventoryLot.lot_number.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_total_stock(self, business_id: uuid.UUID, product_id: uuid.UUID) -> int:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(InventoryLot.remaining_qty), 0)).where(
                and_(
                    InventoryLot.business_id == business_id,
                    InventoryLot.product_id == product_id,
                )
            )
        )
        return int(total or 0)

    async def get_stock_levels(
        self,
        business_id: uuid.UUID,
        product_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[dict]:
        """
        Per-product stock picture: totals, usage rate, days of cover, lots.
        """
        now = now or self.clock()
        window_days = settings.INSIGHT_WINDOW_DAYS
        window_start = now - timedelta(days=window_days)

        query = select(Product).where(Product.business_id == business_id)
        if product_name:
            query = query.where(Product.name.ilike(f"%{product_name}%"))
        products = list((await self.db.execute(query.order_by(Product.name, Product.sku))).scalars().all())
        if not products:
            return []

        product_ids = [p.id for p in products]

        lots_result = await self.db.execute(
            select(InventoryLot)
            .where(
                and_(
                    InventoryLot.business_id == business_id,
                    InventoryLot.product_id.in_(product_ids),
                )
            )
            .order_by(InventoryLot.received_at.desc())
        )
        lots_by_product: Dict[uuid.UUID, List[InventoryLot]] = {pid: [] for pid in product_ids}
        for lot in lots_result.scalars().all():
            lots_by_product[lot.product_id].append(lot)

        usage_result = await self.db.execute(
            select(
                InventoryUsage.product_id,
                func.coalesce(func.sum(InventoryUsage.quantity), 0).label("total_used"),
                func.coalesce(
                    func.sum(
                        case(
                            (
                                and_(
                                    InventoryUsage.created_at >= window_start,
                                    InventoryUsage.created_at <= now,
                                ),
                                InventoryUsage.quantity,
                            ),
                            else_=0,
                        )
                    ),
                    0,
                ).label("recent_used"),
            )
            .where(
                and_(
                    InventoryUsage.business_id == business_id,
                    InventoryUsage.product_id.in_(product_ids),
                )
            )
            .group_by(InventoryUsage.product_id)
        )
        usage_by_product = {
            row.product_id: (int(row.total_used), int(row.recent_used))
            for row in usage_result.all()
        }

        levels = []
        for product in products:
            lots = lots_by_product[product.id]
            total_stock = sum(lot.remaining_qty for lot in lots)
            total_used, recent_used = usage_by_product.get(product.id, (0, 0))
            daily_rate = (Decimal(recent_used) / Decimal(window_days)).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
            levels.append({
                "product_id": product.id,
                "product_name": product.name,
                "sku": product.sku,
                "unit": product.unit,
                "reorder_level": product.reorder_level,
                "total_stock": total_stock,
                "total_used": total_used,
                "daily_usage_rate": float(daily_rate),
                "days_remaining": days_of_cover(total_stock, recent_used, window_days),
                "is_low_stock": total_stock <= product.reorder_level,
                "lots": lots,
            })
        return levels

    async def check_conservation(self, business_id: uuid.UUID, product_id: uuid.UUID) -> dict:
        """
        Compare received - consumed against what the lots still hold.

        received: sum of lot quantities; consumed: sum of recorded usage.
        """
        lot_totals = (await self.db.execute(
            select(
                func.coalesce(func.sum(InventoryLot.quantity), 0),
                func.coalesce(func.sum(InventoryLot.remaining_qty), 0),
            ).where(
                and_(
                    InventoryLot.business_id == business_id,
                    InventoryLot.product_id == product_id,
                )
            )
        )).one()
        consumed = await self.db.scalar(
            select(func.coalesce(func.sum(InventoryUsage.quantity), 0)).where(
                and_(
                    InventoryUsage.business_id == business_id,
                    InventoryUsage.product_id == product_id,
                )
            )
        )
        received, remaining = int(lot_totals[0]), int(lot_totals[1])
        consumed = int(consumed or 0)
        return {
            "product_id": product_id,
            "received": received,
            "consumed": consumed,
            "remaining": remaining,
            "balanced": received - consumed == remaining,
        }

    # ==================== HELPERS ====================

    async def _get_product(self, business_id: uuid.UUID, product_id: uuid.UUID) -> Product:
        product = await self.db.scalar(
            select(Product).where(and_(Product.id == product_id, Product.business_id == business_id))
        )
        if product is None:
            raise NotFoundError("Product not found")
        return product

    async def _lock_product(self, business_id: uuid.UUID, product_id: uuid.UUID) -> Product:
        # Row lock on the product serializes allocations even against lots
        # inserted after the lot scan below
        product = await self.db.scalar(
            select(Product)
            .where(and_(Product.id == product_id, Product.business_id == business_id))
            .with_for_update()
        )
        if product is None:
            raise NotFoundError("Product not found")
        return product

    async def _get_open_lots_for_update(
        self,
        business_id: uuid.UUID,
        product_id: uuid.UUID,
    ) -> List[InventoryLot]:
        result = await self.db.execute(
            select(InventoryLot)
            .where(
                and_(
                    InventoryLot.business_id == business_id,
                    InventoryLot.product_id == product_id,
                    InventoryLot.remaining_qty > 0,
                )
            )
            .order_by(InventoryLot.received_at.asc(), InventoryLot.lot_number.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
