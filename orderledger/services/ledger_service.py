"""Ledger Service - append-only record of stock-affecting financial events.

Rules:
- Entries are never updated or deleted
- total_amount == quantity * unit_price, exactly (Decimal, cents)
- Corrections are offsetting entries that reference the entry they reverse
"""
from typing import Callable, Iterable, List, Optional
from datetime import datetime
from decimal import Decimal
import uuid
import logging

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.errors import (
    InvalidQuantityError,
    InvalidStatusError,
    InvariantViolationError,
    NotFoundError,
)
from orderledger.db_types import CENT, to_money, utc_now
from orderledger.models.business import Counterparty
from orderledger.models.ledger import LedgerEntry, LedgerEntryType
from orderledger.models.product import Product

logger = logging.getLogger(__name__)

VALID_ENTRY_TYPES = frozenset(t.value for t in LedgerEntryType)


def _validate_quantity(quantity, allow_negative: bool = False) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(f"Quantity must be an integer, got {quantity!r}")
    if quantity == 0 or (quantity < 0 and not allow_negative):
        raise InvalidQuantityError(f"Quantity must be greater than 0, got {quantity}")
    return quantity


def _validate_unit_price(unit_price) -> Decimal:
    try:
        price = to_money(unit_price)
    except ValueError as e:
        raise InvalidQuantityError(str(e))
    if not price.is_finite() or price < 0:
        raise InvalidQuantityError(f"Unit price must be a non-negative amount, got {unit_price}")
    if price != price.quantize(CENT):
        raise InvariantViolationError(f"Unit price {price} has sub-cent precision")
    return price


class LedgerService:
    """Service for the append-only ledger."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    # ==================== APPEND ====================

    async def append(
        self,
        business_id: uuid.UUID,
        entry_type: str,
        quantity: int,
        unit_price,
        total_amount=None,
        description: Optional[str] = None,
        product_id: Optional[uuid.UUID] = None,
        order_id: Optional[uuid.UUID] = None,
        counterparty_id: Optional[uuid.UUID] = None,
        reverses_entry_id: Optional[uuid.UUID] = None,
    ) -> LedgerEntry:
        """
        Append one entry inside the caller's unit of work (flush, no commit).

        total_amount is computed when omitted; when given it must match
        quantity * unit_price exactly.

        Raises:
            InvalidStatusError: unknown entry type
            InvalidQuantityError: zero/non-integer quantity, negative price
            InvariantViolationError: arithmetic mismatch
            NotFoundError: counterparty owned by another business
        """
        entry_type = entry_type.value if isinstance(entry_type, LedgerEntryType) else str(entry_type).upper()
        if entry_type not in VALID_ENTRY_TYPES:
            raise InvalidStatusError(
                f"Invalid ledger entry type '{entry_type}'. Valid types: {', '.join(sorted(VALID_ENTRY_TYPES))}"
            )

        quantity = _validate_quantity(quantity, allow_negative=reverses_entry_id is not None)
        price = _validate_unit_price(unit_price)
        expected_total = Decimal(quantity) * price

        if total_amount is None:
            total = expected_total
        else:
            try:
                total = to_money(total_amount)
            except ValueError as e:
                raise InvariantViolationError(str(e))
            if total != expected_total:
                logger.error(
                    f"Ledger arithmetic mismatch for business {business_id}: "
                    f"{quantity} x {price} = {expected_total}, got {total}"
                )
                raise InvariantViolationError(
                    f"total_amount {total} != quantity {quantity} x unit_price {price} ({expected_total})"
                )

        if counterparty_id is not None:
            await self._get_counterparty(business_id, counterparty_id)

        entry = LedgerEntry(
            business_id=business_id,
            entry_type=entry_type,
            quantity=quantity,
            unit_price=price,
            total_amount=total,
            description=description,
            product_id=product_id,
            order_id=order_id,
            counterparty_id=counterparty_id,
            reverses_entry_id=reverses_entry_id,
            created_at=self.clock(),
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def record_purchase(
        self,
        business_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
        unit_price,
        counterparty_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
    ) -> LedgerEntry:
        """Record a supplier purchase as a PURCHASE entry and commit."""
        try:
            product = await self._get_product(business_id, product_id)
            entry = await self.append(
                business_id,
                LedgerEntryType.PURCHASE,
                quantity,
                unit_price,
                description=description or f"Purchase of {product.name}",
                product_id=product.id,
                counterparty_id=counterparty_id,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Purchase recording failed for business {business_id}: {e}")
            raise

        logger.info(f"PURCHASE recorded: product={product_id} qty={quantity} total={entry.total_amount}")
        return entry

    async def reverse(
        self,
        business_id: uuid.UUID,
        entry_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Append a compensating entry that cancels `entry_id` out and commit.

        Raises:
            NotFoundError: entry missing or owned by another business
            InvalidStatusError: entry is itself a reversal or is already reversed
        """
        try:
            original = await self.get_entry(business_id, entry_id)
            if original is None:
                raise NotFoundError("Ledger entry not found")
            if original.reverses_entry_id is not None:
                raise InvalidStatusError("A reversal entry cannot be reversed")

            existing = await self.db.scalar(
                select(LedgerEntry.id).where(LedgerEntry.reverses_entry_id == original.id)
            )
            if existing is not None:
                raise InvalidStatusError("Ledger entry has already been reversed")

            reversal = await self.append(
                business_id,
                original.entry_type,
                -original.quantity,
                original.unit_price,
                total_amount=-original.total_amount,
                description=f"Reversal of {original.id}: {reason or 'correction'}",
                product_id=original.product_id,
                order_id=original.order_id,
                counterparty_id=original.counterparty_id,
                reverses_entry_id=original.id,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Ledger reversal of {entry_id} failed: {e}")
            raise

        logger.info(f"Ledger entry {entry_id} reversed by {reversal.id}")
        return reversal

    # ==================== READS ====================

    async def get_entry(self, business_id: uuid.UUID, entry_id: uuid.UUID) -> Optional[LedgerEntry]:
        result = await self.db.execute(
            select(LedgerEntry).where(
                and_(LedgerEntry.id == entry_id, LedgerEntry.business_id == business_id)
            )
        )
        return result.scalar_one_or_none()

    async def list_entries(
        self,
        business_id: uuid.UUID,
        entry_type: Optional[str] = None,
        product_id: Optional[uuid.UUID] = None,
        counterparty_id: Optional[uuid.UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[LedgerEntry]:
        """Entries for a business, newest first."""
        conditions = [LedgerEntry.business_id == business_id]
        if entry_type:
            conditions.append(LedgerEntry.entry_type == str(getattr(entry_type, "value", entry_type)).upper())
        if product_id:
            conditions.append(LedgerEntry.product_id == product_id)
        if counterparty_id:
            conditions.append(LedgerEntry.counterparty_id == counterparty_id)
        if date_from:
            conditions.append(LedgerEntry.created_at >= date_from)
        if date_to:
            conditions.append(LedgerEntry.created_at <= date_to)

        result = await self.db.execute(
            select(LedgerEntry)
            .where(and_(*conditions))
            .order_by(LedgerEntry.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    def summarize(entries: Iterable[LedgerEntry]) -> dict:
        """Count, signed total amount and signed total quantity."""
        entries = list(entries)
        return {
            "count": len(entries),
            "total_amount": sum((e.total_amount for e in entries), Decimal("0.00")),
            "total_quantity": sum(e.quantity for e in entries),
        }

    # ==================== HELPERS ====================

    async def _get_product(self, business_id: uuid.UUID, product_id: uuid.UUID) -> Product:
        product = await self.db.scalar(
            select(Product).where(and_(Product.id == product_id, Product.business_id == business_id))
        )
        if product is None:
            raise NotFoundError("Product not found")
        return product

    async def _get_counterparty(self, business_id: uuid.UUID, counterparty_id: uuid.UUID) -> Counterparty:
        counterparty = await self.db.scalar(
            select(Counterparty).where(
                and_(Counterparty.id == counterparty_id, Counterparty.business_id == business_id)
            )
        )
        if counterparty is None:
            raise NotFoundError("Counterparty not found")
        return counterparty
