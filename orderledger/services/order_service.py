from typing import Callable, Iterable, List, Optional
from datetime import datetime
from decimal import Decimal
import uuid
import logging

from sqlalchemy import select, func, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.errors import ConflictError, InvalidQuantityError, InvalidStatusError, NotFoundError
from orderledger.db_types import CENT, to_money, utc_now
from orderledger.models.business import Counterparty
from orderledger.models.ledger import LedgerEntryType
from orderledger.models.order import (
    Order, OrderItem, OrderStatus, OrderStatusHistory,
    ManufacturingStage, ManufacturingStageName, StageStatus,
)
from orderledger.models.product import Product
from orderledger.services import order_state_machine as sm
from orderledger.services.inventory_service import InventoryService
from orderledger.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 3

# Operator-driven stage moves
STAGE_TRANSITIONS = {
    StageStatus.PENDING.value: {StageStatus.IN_PROGRESS.value, StageStatus.COMPLETED.value},
    StageStatus.IN_PROGRESS.value: {StageStatus.COMPLETED.value},
    StageStatus.COMPLETED.value: set(),
}


class OrderService:
    """Service for orders: creation, status transitions and manufacturing stages."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.inventory = InventoryService(db, clock=clock)
        self.ledger = LedgerService(db, clock=clock)

    # ==================== ORDER NUMBER GENERATION ====================

    async def generate_order_number(self, business_id: uuid.UUID) -> str:
        """
        Generate order number unique per business: ORD-YYYYMMDD-XXXX

        Continues from the highest suffix issued today, so deleted orders
        never free a number for reuse.
        """
        today = self.clock().strftime("%Y%m%d")
        prefix = f"ORD-{today}-"

        # Longest first so ...-10000 sorts above ...-9999
        stmt = (
            select(Order.order_number)
            .where(
                and_(
                    Order.business_id == business_id,
                    Order.order_number.like(f"{prefix}%"),
                )
            )
            .order_by(func.length(Order.order_number).desc(), Order.order_number.desc())
            .limit(1)
        )
        last_number = (await self.db.execute(stmt)).scalar()

        sequence = 1
        if last_number:
            suffix = last_number[len(prefix):]
            sequence = int(suffix) + 1 if suffix.isdigit() else 1

        return f"{prefix}{sequence:04d}"

    # ==================== READS ====================

    async def get_order(
        self,
        business_id: uuid.UUID,
        order_id: uuid.UUID,
        for_update: bool = False,
    ) -> Optional[Order]:
        """Get an order owned by the business, with items, history and stages."""
        stmt = (
            select(Order)
            .options(
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.status_history),
                selectinload(Order.manufacturing_stages),
                selectinload(Order.counterparty),
            )
            .where(and_(Order.id == order_id, Order.business_id == business_id))
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update(of=Order)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_orders(
        self,
        business_id: uuid.UUID,
        status: Optional[str] = None,
        counterparty_id: Optional[uuid.UUID] = None,
        limit: Optional[int] = None,
    ) -> List[Order]:
        """Orders for a business, newest first."""
        filters = [Order.business_id == business_id]
        if status:
            filters.append(Order.status == sm.normalize_status(status))
        if counterparty_id:
            filters.append(Order.counterparty_id == counterparty_id)

        stmt = (
            select(Order)
            .options(
                selectinload(Order.items).selectinload(OrderItem.product),
                selectinload(Order.counterparty),
                selectinload(Order.status_history),
            )
            .where(and_(*filters))
            .order_by(Order.created_at.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all())

    # ==================== CREATE ====================

    async def create_order(
        self,
        business_id: uuid.UUID,
        counterparty_id: uuid.UUID,
        items: Iterable[dict],
        notes: Optional[str] = None,
        expected_delivery: Optional[datetime] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> Order:
        """
        Create an order in PLACED with item snapshots and the initial history row.

        `items` are dicts with product_id, quantity and unit_price. A number
        taken by a concurrent create is retried with a fresh one.

        Raises:
            ConflictError: no free order number after ORDER_NUMBER_ATTEMPTS tries
        """
        items = list(items)
        if not items:
            raise InvalidQuantityError("At least one item is required")

        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            try:
                order = await self._build_order(
                    business_id, counterparty_id, items, notes, expected_delivery, created_by
                )
                self.db.add(order)
                await self.db.flush()
                await self.db.commit()
                break
            except IntegrityError as e:
                await self.db.rollback()
                if attempt == ORDER_NUMBER_ATTEMPTS:
                    logger.error(f"Order creation failed for business {business_id}: {e}")
                    raise ConflictError("Could not allocate a unique order number, try again")
                logger.warning(
                    f"Order number collision for business {business_id} "
                    f"(attempt {attempt}/{ORDER_NUMBER_ATTEMPTS}), retrying"
                )
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Order creation failed for business {business_id}: {e}")
                raise

        logger.info(f"Order {order.order_number} placed: business={business_id} total={order.total_amount}")
        return await self.get_order(business_id, order.id)

    async def _build_order(
        self,
        business_id: uuid.UUID,
        counterparty_id: uuid.UUID,
        items: List[dict],
        notes: Optional[str],
        expected_delivery: Optional[datetime],
        created_by: Optional[uuid.UUID],
    ) -> Order:
        counterparty = await self.db.scalar(
            select(Counterparty).where(
                and_(Counterparty.id == counterparty_id, Counterparty.business_id == business_id)
            )
        )
        if counterparty is None:
            raise NotFoundError("Counterparty not found")

        now = self.clock()
        order_items = []
        total_amount = Decimal("0.00")
        for item in items:
            product = await self.db.scalar(
                select(Product).where(
                    and_(Product.id == item["product_id"], Product.business_id == business_id)
                )
            )
            if product is None:
                raise NotFoundError(f"Product not found: {item['product_id']}")

            quantity = item.get("quantity")
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise InvalidQuantityError(f"Item quantity must be a positive integer, got {quantity!r}")

            raw_price = item.get("unit_price")
            try:
                unit_price = to_money(product.price if raw_price is None else raw_price)
            except ValueError as e:
                raise InvalidQuantityError(str(e))
            if not unit_price.is_finite() or unit_price < 0 or unit_price != unit_price.quantize(CENT):
                raise InvalidQuantityError(f"Invalid unit price: {raw_price}")

            line_total = Decimal(quantity) * unit_price
            total_amount += line_total
            order_items.append(
                OrderItem(
                    product_id=product.id,
                    quantity=quantity,
                    unit_price=unit_price,
                    total_amount=line_total,
                    created_at=now,
                )
            )

        return Order(
            business_id=business_id,
            counterparty_id=counterparty.id,
            order_number=await self.generate_order_number(business_id),
            status=OrderStatus.PLACED.value,
            total_amount=total_amount,
            notes=notes,
            expected_delivery=expected_delivery,
            created_at=now,
            updated_at=now,
            items=order_items,
            status_history=[
                OrderStatusHistory(
                    from_status=None,
                    to_status=OrderStatus.PLACED.value,
                    note="Order placed",
                    changed_by=created_by,
                    created_at=now,
                )
            ],
        )

    # ==================== STATUS TRANSITIONS ====================

    async def transition(
        self,
        business_id: uuid.UUID,
        order_id: uuid.UUID,
        target_status,
        note: Optional[str] = None,
        changed_by: Optional[uuid.UUID] = None,
    ) -> Order:
        """
        Move an order to `target_status` and run the transition's side effects.

        Status write, history row, manufacturing stages, lots and ledger
        entries commit together or not at all.

        Raises:
            InvalidStatusError: unknown or disallowed target
            NotFoundError: order missing or owned by another business
        """
        new_status = sm.normalize_status(target_status)

        try:
            order = await self.get_order(business_id, order_id, for_update=True)
            if order is None:
                raise NotFoundError("Order not found")

            old_status = order.status
            effects = sm.validate_transition(old_status, new_status)

            now = self.clock()
            order.status = new_status
            order.updated_at = now
            if new_status == OrderStatus.DELIVERED.value:
                order.delivered_at = now
            elif new_status == OrderStatus.CANCELLED.value:
                order.cancelled_at = now

            self.db.add(
                OrderStatusHistory(
                    order_id=order.id,
                    from_status=old_status,
                    to_status=new_status,
                    note=note,
                    changed_by=changed_by,
                    created_at=now,
                )
            )

            for effect in effects:
                handler = self._effect_handlers[effect]
                await handler(self, order)

            await self.db.flush()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Transition of order {order_id} to {new_status} failed: {e}")
            raise

        logger.info(
            f"Order {order.order_number}: {old_status} -> {new_status} "
            f"({sm.get_transition_action(old_status, new_status)})"
        )
        return await self.get_order(business_id, order.id)

    async def _create_manufacturing_stages(self, order: Order) -> None:
        existing = await self.db.scalar(
            select(func.count(ManufacturingStage.id)).where(ManufacturingStage.order_id == order.id)
        )
        if existing:
            logger.info(f"Order {order.order_number} already has {existing} manufacturing stages")
            return

        now = self.clock()
        for sequence, stage in enumerate(ManufacturingStageName, start=1):
            self.db.add(
                ManufacturingStage(
                    order_id=order.id,
                    stage=stage.value,
                    sequence=sequence,
                    status=StageStatus.PENDING.value,
                    created_at=now,
                    updated_at=now,
                )
            )
        await self.db.flush()

    async def _receive_fulfilled_goods(self, order: Order) -> None:
        # Lot first, then its SALE entry, for each item
        for item in order.items:
            lot = await self.inventory.add_lot(
                order.business_id,
                item.product_id,
                item.quantity,
                item.unit_price,
                order_id=order.id,
                note=f"Received via order {order.order_number}",
            )
            await self.ledger.append(
                order.business_id,
                LedgerEntryType.SALE,
                item.quantity,
                item.unit_price,
                total_amount=item.total_amount,
                description=(
                    f"Sale of {item.product.name} to {order.counterparty.name} "
                    f"via order {order.order_number} ({lot.lot_number})"
                ),
                product_id=item.product_id,
                order_id=order.id,
                counterparty_id=order.counterparty_id,
            )

    _effect_handlers = {
        sm.TransitionEffect.CREATE_MANUFACTURING_STAGES: _create_manufacturing_stages,
        sm.TransitionEffect.RECEIVE_FULFILLED_GOODS: _receive_fulfilled_goods,
    }

    # ==================== MANUFACTURING ====================

    async def update_manufacturing_stage(
        self,
        business_id: uuid.UUID,
        order_id: uuid.UUID,
        stage_id: uuid.UUID,
        status: str,
        note: Optional[str] = None,
    ) -> ManufacturingStage:
        """Operator update of one manufacturing stage (forward only)."""
        new_status = str(getattr(status, "value", status)).strip().upper()
        if new_status not in STAGE_TRANSITIONS:
            raise InvalidStatusError(f"Invalid stage status '{status}'")

        try:
            order = await self.db.scalar(
                select(Order).where(and_(Order.id == order_id, Order.business_id == business_id))
            )
            if order is None:
                raise NotFoundError("Order not found")

            stage = await self.db.scalar(
                select(ManufacturingStage)
                .where(
                    and_(
                        ManufacturingStage.id == stage_id,
                        ManufacturingStage.order_id == order.id,
                    )
                )
                .with_for_update()
            )
            if stage is None:
                raise NotFoundError("Manufacturing stage not found")

            if new_status not in STAGE_TRANSITIONS[stage.status]:
                raise InvalidStatusError(
                    f"Cannot change stage {stage.stage} from '{stage.status}' to '{new_status}'"
                )

            stage.status = new_status
            if note is not None:
                stage.note = note
            stage.updated_at = self.clock()
            await self.db.flush()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Stage update failed for order {order_id}: {e}")
            raise

        logger.info(f"Order {order.order_number} stage {stage.stage} -> {new_status}")
        return stage

    # ==================== DELETE ====================

    async def delete_order(self, business_id: uuid.UUID, order_id: uuid.UUID) -> None:
        """
        Tenant-scoped admin delete. Items, history and stages go with the order;
        lots and ledger entries it produced stay.
        """
        try:
            order = await self.get_order(business_id, order_id)
            if order is None:
                raise NotFoundError("Order not found")
            order_number = order.order_number
            await self.db.delete(order)
            await self.db.flush()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Delete of order {order_id} failed: {e}")
            raise

        logger.info(f"Order {order_number} deleted by business {business_id}")
