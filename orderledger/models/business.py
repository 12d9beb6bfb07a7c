"""Tenant (business) and its counterparties."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderledger.database import Base
from orderledger.db_types import UUIDType

if TYPE_CHECKING:
    from orderledger.models.order import Order
    from orderledger.models.product import Product


class CounterpartyKind(str, Enum):
    """Who is on the other side of an order."""
    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"


class Business(Base):
    """A tenant. Every engine row is partitioned by business_id."""
    __tablename__ = "businesses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    subscription: Mapped[Optional["Subscription"]] = relationship(
        "Subscription",
        back_populates="business",
        uselist=False
    )

    def __repr__(self) -> str:
        return f"<Business(name='{self.name}')>"


class Subscription(Base):
    """
    Billing collaborator's view of a business subscription.

    Only status and current_period_end are read by the engine.
    """
    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(30),
        default="created",
        nullable=False,
        comment="Gateway status: created, authenticated, active, halted, cancelled, ..."
    )
    current_period_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    business: Mapped["Business"] = relationship("Business", back_populates="subscription")


class Counterparty(Base):
    """Customer or supplier of a business."""
    __tablename__ = "counterparties"
    __table_args__ = (
        Index('ix_counterparty_business_name', 'business_id', 'name'),
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
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    kind: Mapped[str] = mapped_column(
        String(20),
        default=CounterpartyKind.CUSTOMER.value,
        nullable=False,
        comment="CUSTOMER, SUPPLIER"
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    orders: Mapped[List["Order"]] = relationship("Order", back_populates="counterparty")
    products: Mapped[List["Product"]] = relationship("Product", back_populates="counterparty")

    def __repr__(self) -> str:
        return f"<Counterparty(name='{self.name}', kind='{self.kind}')>"
