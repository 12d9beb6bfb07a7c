"""Append-only financial ledger."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Text, DateTime, ForeignKey, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderledger.database import Base
from orderledger.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from orderledger.models.product import Product
    from orderledger.models.order import Order
    from orderledger.models.business import Counterparty


class LedgerEntryType(str, Enum):
    """Ledger entry type."""
    PURCHASE = "PURCHASE"  # Bought from a supplier
    SALE = "SALE"          # Sold/fulfilled to a counterparty
    STOCK_IN = "STOCK_IN"  # Stock received into a lot


class LedgerEntry(Base):
    """
    Immutable ledger row. Corrections are new offsetting rows that point at
    the entry they reverse.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index('ix_ledger_business_type_created', 'business_id', 'entry_type', 'created_at'),
        Index('ix_ledger_product', 'business_id', 'product_id'),
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
    entry_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="PURCHASE, SALE, STOCK_IN"
    )

    # Signed: reversals carry negative quantity and amount
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    counterparty_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("counterparties.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    reverses_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("ledger_entries.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    product: Mapped[Optional["Product"]] = relationship("Product")
    order: Mapped[Optional["Order"]] = relationship("Order")
    counterparty: Mapped[Optional["Counterparty"]] = relationship("Counterparty")

    @property
    def is_reversal(self) -> bool:
        return self.reverses_entry_id is not None

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.entry_type} qty={self.quantity} total={self.total_amount}>"
