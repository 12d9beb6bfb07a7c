"""Catalog service: tenant-scoped products and counterparties."""
from typing import Callable, List, Optional
from datetime import datetime
import uuid
import logging

from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.errors import (
    ConflictError,
    InvalidQuantityError,
    InvalidStatusError,
    NotFoundError,
)
from orderledger.db_types import CENT, to_money, utc_now
from orderledger.models.business import Counterparty, CounterpartyKind
from orderledger.models.inventory import InventoryLot, InventoryUsage
from orderledger.models.ledger import LedgerEntry
from orderledger.models.order import Order, OrderItem
from orderledger.models.product import Product

logger = logging.getLogger(__name__)


def _validate_price(price):
    try:
        value = to_money(price)
    except ValueError as e:
        raise InvalidQuantityError(str(e))
    if not value.is_finite() or value < 0 or value != value.quantize(CENT):
        raise InvalidQuantityError(f"Price must be a non-negative amount in cents, got {price}")
    return value


def _validate_reorder_level(level) -> int:
    if isinstance(level, bool) or not isinstance(level, int) or level < 0:
        raise InvalidQuantityError(f"Reorder level must be a non-negative integer, got {level!r}")
    return level


class CatalogService:
    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    # ==================== COUNTERPARTIES ====================

    async def create_counterparty(
        self,
        business_id: uuid.UUID,
        name: str,
        kind: str = CounterpartyKind.CUSTOMER.value,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Counterparty:
        kind = str(getattr(kind, "value", kind)).upper()
        if kind not in {k.value for k in CounterpartyKind}:
            raise InvalidStatusError(f"Invalid counterparty kind '{kind}'")

        try:
            counterparty = Counterparty(
                business_id=business_id,
                name=name.strip(),
                kind=kind,
                email=email,
                phone=phone,
                created_at=self.clock(),
            )
            self.db.add(counterparty)
            await self.db.flush()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Counterparty creation failed for business {business_id}: {e}")
            raise

        logger.info(f"Counterparty {counterparty.name} ({kind}) created for business {business_id}")
        return counterparty

    async def list_counterparties(
        self,
        business_id: uuid.UUID,
        kind: Optional[str] = None,
    ) -> List[Counterparty]:
        query = select(Counterparty).where(Counterparty.business_id == business_id)
        if kind:
            query = query.where(Counterparty.kind == str(getattr(kind, "value", kind)).upper())
        result = await self.db.execute(query.order_by(Counterparty.name))
        return list(result.scalars().all())

    async def get_counterparty(
        self, business_id: uuid.UUID, counterparty_id: uuid.UUID
    ) -> Optional[Counterparty]:
        return await self.db.scalar(
            select(Counterparty).where(
                and_(Counterparty.id == counterparty_id, Counterparty.business_id == business_id)
            )
        )

    async def update_counterparty(
        self,
        business_id: uuid.UUID,
        counterparty_id: uuid.UUID,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Counterparty:
        """Change contact details. The kind is fixed once created."""
        if name is not None and not name.strip():
            raise InvalidStatusError("Counterparty name cannot be blank")

        try:
            counterparty = await self.get_counterparty(business_id, counterparty_id)
            if counterparty is None:
                raise NotFoundError("Counterparty not found")
            if name is not None:
                counterparty.name = name.strip()
            if email is not None:
                counterparty.email = email
            if phone is not None:
                counterparty.phone = phone
            await self.db.flush()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Counterparty update failed for {counterparty_id}: {e}")
            raise

        logger.info(f"Counterparty {counterparty.id} updated for business {business_id}")
        return counterparty

    async def delete_counterparty(self, business_id: uuid.UUID, counterparty_id: uuid.UUID) -> None:
        """
        Delete a counterparty with no trading history.

        Products it supplies are kept and lose the link.

        Raises:
            NotFoundError: missing or owned by another business
            ConflictError: orders or ledger entries reference it
        """
        try:
            counterparty = await self.get_counterparty(business_id, counterparty_id)
            if counterparty is None:
                raise NotFoundError("Counterparty not found")

            order_count = await self.db.scalar(
                select(func.count(Order.id)).where(Order.counterparty_id == counterparty.id)
            )
            entry_count = await self.db.scalar(
                select(func.count(LedgerEntry.id)).where(LedgerEntry.counterparty_id == counterparty.id)
            )
            if order_count or entry_count:
                raise ConflictError(
                    f"Counterparty '{counterparty.name}' has {order_count} orders and "
                    f"{entry_count} ledger entries and cannot be deleted"
                )

            await self.db.execute(
                update(Product)
                .where(and_(Product.business_id == business_id, Product.counterparty_id == counterparty.id))
                .values(counterparty_id=None)
            )
            name = counterparty.name
            await self.db.delete(counterparty)
            await self.db.flush()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Delete of counterparty {counterparty_id} failed: {e}")
            raise

        logger.info(f"Counterparty {name} deleted by business {business_id}")

    # ==================== PRODUCTS ====================

    async def create_product(
        self,
        business_id: uuid.UUID,
        name: str,
        sku: str,
        unit: str = "pcs",
        price=0,
        reorder_level: int = 10,
        counterparty_id: Optional[uuid.UUID] = None,
    ) -> Product:
        price = _validate_price(price)
        reorder_level = _validate_reorder_level(reorder_level)

        try:
            if counterparty_id is not None:
                counterparty = await self.db.scalar(
                    select(Counterparty).where(
                        and_(Counterparty.id == counterparty_id, Counterparty.business_id == business_id)
                    )
                )
                if counterparty is None:
                    raise NotFoundError("Counterparty not found")

            existing = await self.db.scalar(
                select(Product.id).where(and_(Product.business_id == business_id, Product.sku == sku))
            )
            if existing is not None:
                raise ConflictError(f"SKU '{sku}' already exists")

            product = Product(
                business_id=business_id,
                counterparty_id=counterparty_id,
                name=name.strip(),
                sku=sku,
                unit=unit,
                price=price,
                reorder_level=reorder_level,
                created_at=self.clock(),
            )
            self.db.add(product)
            await self.db.flush()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Product creation failed for business {business_id}: {e}")
            raise

        logger.info(f"Product {product.sku} created for business {business_id}")
        return product

    async def get_product(self, business_id: uuid.UUID, product_id: uuid.UUID) -> Optional[Product]:
        return await self.db.scalar(
            select(Product).where(and_(Product.id == product_id, Product.business_id == business_id))
        )

    async def list_products(
        self,
        business_id: uuid.UUID,
        search: Optional[str] = None,
    ) -> List[Product]:
        query = select(Product).where(Product.business_id == business_id)
        if search:
            query = query.where(Product.name.ilike(f"%{search}%") | Product.sku.ilike(f"%{search}%"))
        result = await self.db.execute(query.order_by(Product.name, Product.sku))
        return list(result.scalars().all())

    async def update_product(
        self,
        business_id: uuid.UUID,
        product_id: uuid.UUID,
        price=None,
        reorder_level: Optional[int] = None,
    ) -> Product:
        """Change the mutable catalog fields. Identity (name, sku, unit) stays fixed."""
        if price is not None:
            price = _validate_price(price)
        if reorder_level is not None:
            reorder_level = _validate_reorder_level(reorder_level)

        try:
            product = await self.get_product(business_id, product_id)
            if product is None:
                raise NotFoundError("Product not found")
            if price is not None:
                product.price = price
            if reorder_level is not None:
                product.reorder_level = reorder_level
            await self.db.flush()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Product update failed for {product_id}: {e}")
            raise

        logger.info(f"Product {product.sku} updated: price={product.price} reorder_level={product.reorder_level}")
        return product

    async def delete_product(self, business_id: uuid.UUID, product_id: uuid.UUID) -> None:
        """
        Delete a product that never moved.

        Raises:
            NotFoundError: missing or owned by another business
            ConflictError: lots, usage, order items or ledger entries reference it
        """
        try:
            product = await self.get_product(business_id, product_id)
            if product is None:
                raise NotFoundError("Product not found")

            for model, label in (
                (InventoryLot, "inventory lots"),
                (InventoryUsage, "usage records"),
                (OrderItem, "order items"),
                (LedgerEntry, "ledger entries"),
            ):
                count = await self.db.scalar(
                    select(func.count(model.id)).where(model.product_id == product.id)
                )
                if count:
                    raise ConflictError(f"Product {product.sku} has {count} {label} and cannot be deleted")

            sku = product.sku
            await self.db.delete(product)
            await self.db.flush()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Delete of product {product_id} failed: {e}")
            raise

        logger.info(f"Product {sku} deleted by business {business_id}")
