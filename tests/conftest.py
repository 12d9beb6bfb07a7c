import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from orderledger.database import Base
from orderledger import models  # noqa: F401
from orderledger.models import Business, Counterparty, CounterpartyKind, Product, Subscription


START = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that moves forward one second per reading."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        self.current = self.current + self.step
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# Fixture rows are expunged after commit so a rollback inside a test cannot expire them
async def make_business(db, name: str, subscription_status: str = "active", period_end=None) -> Business:
    business = Business(name=name)
    db.add(business)
    await db.flush()
    if subscription_status is not None:
        db.add(
            Subscription(
                business_id=business.id,
                status=subscription_status,
                current_period_end=period_end or START + timedelta(days=30),
            )
        )
    await db.commit()
    db.expunge_all()
    return business


@pytest.fixture
async def business(db):
    return await make_business(db, "Shree Fabrics")


@pytest.fixture
async def other_business(db):
    return await make_business(db, "Other Mills")


@pytest.fixture
async def customer(db, business):
    counterparty = Counterparty(
        business_id=business.id,
        name="Acme Textiles",
        kind=CounterpartyKind.CUSTOMER.value,
    )
    db.add(counterparty)
    await db.commit()
    db.expunge_all()
    return counterparty


@pytest.fixture
async def supplier(db, business):
    counterparty = Counterparty(
        business_id=business.id,
        name="Cotton Supply Co",
        kind=CounterpartyKind.SUPPLIER.value,
    )
    db.add(counterparty)
    await db.commit()
    db.expunge_all()
    return counterparty


@pytest.fixture
async def product(db, business):
    product = Product(
        business_id=business.id,
        name="Cotton Fabric",
        sku="CF-001",
        unit="m",
        price=Decimal("15.00"),
        reorder_level=10,
    )
    db.add(product)
    await db.commit()
    db.expunge_all()
    return product


@pytest.fixture
async def other_product(db, other_business):
    product = Product(
        business_id=other_business.id,
        name="Silk Fabric",
        sku="SF-001",
        unit="m",
        price=Decimal("40.00"),
        reorder_level=5,
    )
    db.add(product)
    await db.commit()
    db.expunge_all()
    return product
