import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderledger.database import Base
from orderledger.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from orderledger.models.business import Counterparty
    from orderledger.models.product import Product


class OrderStatus(str, Enum):
    """Order status enumeration."""
    PLACED = "PLACED"                      # Order received
    ACCEPTED = "ACCEPTED"                  # Accepted by the business
    IN_MANUFACTURING = "IN_MANUFACTURING"  # Manufacturing stages running
    DISPATCHED = "DISPATCHED"              # Handed to transporter
    DELIVERED = "DELIVERED"                # Fulfilled (terminal)
    CANCELLED = "CANCELLED"                # Cancelled (terminal)


class ManufacturingStageName(str, Enum):
    """Fixed manufacturing stages, in execution order."""
    RAW_MATERIAL_PREP = "RAW_MATERIAL_PREP"
    ASSEMBLY = "ASSEMBLY"
    QUALITY_CHECK = "QUALITY_CHECK"
    PACKAGING = "PACKAGING"


class StageStatus(str, Enum):
    """Manufacturing stage status."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Order(Base):
    """
    Order placed by (or with) a counterparty.
    Status is only ever changed by OrderService.transition.
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint('business_id', 'order_number', name='uq_order_business_number'),
        Index('ix_order_business_status', 'business_id', 'status'),
        Index('ix_order_business_created', 'business_id', 'created_at'),
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

    # Order Identification
    order_number: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    # Customer or supplier
    counterparty_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("counterparties.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(50),
        default=OrderStatus.PLACED.value,
        nullable=False,
        comment="PLACED, ACCEPTED, IN_MANUFACTURING, DISPATCHED, DELIVERED, CANCELLED"
    )

    total_amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0.00"), nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expected_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    counterparty: Mapped["Counterparty"] = relationship("Counterparty", back_populates="orders")
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan"
    )
    status_history: Mapped[List["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.created_at"
    )
    manufacturing_stages: Mapped[List["ManufacturingStage"]] = relationship(
        "ManufacturingStage",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ManufacturingStage.sequence"
    )

    @property
    def item_count(self) -> int:
        """Get total number of units."""
        return sum(item.quantity for item in self.items)

    def __repr__(self) -> str:
        return f"<Order(number='{self.order_number}', status='{self.status}')>"


class OrderItem(Base):
    """Order line snapshot. Never changed after the order is created."""
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )

    # Quantity & Pricing
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="items")
    product: Mapped["Product"] = relationship("Product")

    def __repr__(self) -> str:
        return f"<OrderItem(product={self.product_id}, qty={self.quantity})>"


class OrderStatusHistory(Base):
    """Order status change history (append-only)."""
    __tablename__ = "order_status_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    from_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    order: Mapped["Order"] = relationship("Order", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<OrderStatusHistory({self.from_status} -> {self.to_status})>"


class ManufacturingStage(Base):
    """One step of an order's manufacturing run, driven by operators."""
    __tablename__ = "manufacturing_stages"
    __table_args__ = (
        UniqueConstraint('order_id', 'stage', name='uq_manufacturing_stage_order_stage'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    stage: Mapped[str] = mapped_column(String(50), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=StageStatus.PENDING.value,
        nullable=False,
        comment="PENDING, IN_PROGRESS, COMPLETED"
    )
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    order: Mapped["Order"] = relationship("Order", back_populates="manufacturing_stages")

    def __repr__(self) -> str:
        return f"<ManufacturingStage({self.stage}, {self.status})>"
