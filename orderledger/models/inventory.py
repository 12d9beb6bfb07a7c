"""Inventory lots (FIFO receipt batches) and usage audit trail."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Text, DateTime, ForeignKey, Integer, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderledger.database import Base
from orderledger.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from orderledger.models.product import Product


class InventoryLot(Base):
    """
    A batch of stock received together at one cost.

    remaining_qty only decreases (FIFO allocation). Replenishment creates a new
    lot instead of topping one up. Depleted lots stay as history.
    """
    __tablename__ = "inventory_lots"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_lot_quantity_positive"),
        CheckConstraint(
            "remaining_qty >= 0 AND remaining_qty <= quantity",
            name="ck_lot_remaining_bounds"
        ),
        Index('ix_lot_fifo', 'business_id', 'product_id', 'received_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )
    # Set when the lot was produced by an order delivery
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    lot_number: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    cost_per_unit: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0.00"), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    product: Mapped["Product"] = relationship("Product", back_populates="inventory_lots")

    @property
    def is_exhausted(self) -> bool:
        return self.remaining_qty <= 0

    @property
    def current_value(self) -> Decimal:
        """Value of what is left in this lot."""
        return Decimal(self.remaining_qty) * self.cost_per_unit

    def __repr__(self) -> str:
        return f"<InventoryLot {self.lot_number} {self.remaining_qty}/{self.quantity}>"


class InventoryUsage(Base):
    """
    Consumption event. Deliberately not linked to the lots it drew from.
    """
    __tablename__ = "inventory_usages"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_usage_quantity_positive"),
        Index('ix_usage_product_created', 'business_id', 'product_id', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), default="Manual usage", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    product: Mapped["Product"] = relationship("Product", back_populates="inventory_usages")

    def __repr__(self) -> str:
        return f"<InventoryUsage product={self.product_id} qty={self.quantity}>"
