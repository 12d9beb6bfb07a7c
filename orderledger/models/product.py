import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderledger.database import Base
from orderledger.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from orderledger.models.business import Counterparty
    from orderledger.models.inventory import InventoryLot, InventoryUsage


class Product(Base):
    """
    Catalog product owned by a business.
    id/business_id/sku are fixed; price and reorder_level may change.
    """
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("business_id", "sku", name="uq_product_business_sku"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    counterparty_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("counterparties.id", ondelete="SET NULL"),
        nullable=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="pcs", nullable=False)
    price: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0.00"), nullable=False)
    reorder_level: Mapped[int] = mapped_column(Integer, default=10, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    counterparty: Mapped[Optional["Counterparty"]] = relationship(
        "Counterparty", back_populates="products"
    )
    inventory_lots: Mapped[List["InventoryLot"]] = relationship(
        "InventoryLot",
        back_populates="product",
        order_by="InventoryLot.received_at"
    )
    inventory_usages: Mapped[List["InventoryUsage"]] = relationship(
        "InventoryUsage",
        back_populates="product"
    )

    def __repr__(self) -> str:
        return f"<Product(sku='{self.sku}', name='{self.name}')>"
