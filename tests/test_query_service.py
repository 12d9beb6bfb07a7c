from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from orderledger.models import Counterparty, LedgerEntry, Product
from orderledger.services.inventory_service import InventoryService
from orderledger.services.order_service import OrderService
from orderledger.services.query_service import QueryService, empty_history, resolve_period


async def place(db, clock, business, counterparty, product, quantity=2):
    return await OrderService(db, clock=clock).create_order(
        business.id,
        counterparty.id,
        [{"product_id": product.id, "quantity": quantity}],
    )


async def add_entry(db, business, entry_type, total, created_at, counterparty=None):
    db.add(
        LedgerEntry(
            business_id=business.id,
            entry_type=entry_type,
            quantity=1,
            unit_price=Decimal(total),
            total_amount=Decimal(total),
            counterparty_id=counterparty.id if counterparty else None,
            created_at=created_at,
        )
    )
    await db.commit()


def test_resolve_period():
    assert resolve_period(None) == 30
    assert resolve_period(" Last Week ") == 7
    assert resolve_period("last year") == 365
    with pytest.raises(ValueError):
        resolve_period("last decade")


async def test_order_tracking_returns_most_recent_ten(db, clock, business, customer, product):
    for _ in range(12):
        await place(db, clock, business, customer, product)

    orders = await QueryService(db, clock=clock).get_order_tracking(business.id)

    assert len(orders) == 10
    assert orders[0].order_number == "ORD-20261019-0012"
    assert orders[-1].order_number == "ORD-20261019-0003"
    assert orders[0].counterparty.name == "Acme Textiles"
    assert orders[0].items[0].product.name == "Cotton Fabric"


async def test_order_tracking_filters_by_counterparty_name(db, clock, business, customer, supplier, product):
    await place(db, clock, business, customer, product)
    await place(db, clock, business, supplier, product)
    service = QueryService(db, clock=clock)

    orders = await service.get_order_tracking(business.id, counterparty_name="acme")

    assert [o.counterparty_id for o in orders] == [customer.id]
    assert await service.get_order_tracking(business.id, counterparty_name="Nobody") == []


async def test_order_tracking_is_tenant_scoped(db, clock, business, other_business, customer, product):
    await place(db, clock, business, customer, product)

    assert await QueryService(db, clock=clock).get_order_tracking(other_business.id) == []


async def test_stock_levels_delegate_to_inventory(db, clock, business, product):
    await InventoryService(db, clock=clock).replenish(business.id, product.id, 40, Decimal("10.00"))

    levels = await QueryService(db, clock=clock).get_stock_levels(business.id, product_name="COTTON")

    assert [level["total_stock"] for level in levels] == [40]


async def test_history_defaults_to_last_month_sales(db, clock, business, customer):
    now = clock.current
    await add_entry(db, business, "SALE", "300.00", now - timedelta(days=3), customer)
    await add_entry(db, business, "SALE", "100.00", now - timedelta(days=20))
    await add_entry(db, business, "SALE", "999.00", now - timedelta(days=45))
    await add_entry(db, business, "PURCHASE", "50.00", now - timedelta(days=1))

    history = await QueryService(db, clock=clock).get_sales_or_purchase_history(business.id)

    assert history["count"] == 2
    assert history["total_amount"] == Decimal("400.00")
    assert history["total_quantity"] == 2
    assert [e.total_amount for e in history["entries"]] == [Decimal("300.00"), Decimal("100.00")]


async def test_history_period_type_and_counterparty(db, clock, business, customer, supplier):
    now = clock.current
    await add_entry(db, business, "SALE", "300.00", now - timedelta(days=3), customer)
    await add_entry(db, business, "SALE", "100.00", now - timedelta(days=20))
    await add_entry(db, business, "PURCHASE", "50.00", now - timedelta(days=2), supplier)
    service = QueryService(db, clock=clock)

    last_week = await service.get_sales_or_purchase_history(business.id, period="last week")
    assert last_week["count"] == 1

    purchases = await service.get_sales_or_purchase_history(business.id, entry_type="purchase")
    assert purchases["total_amount"] == Decimal("50.00")

    acme = await service.get_sales_or_purchase_history(business.id, counterparty_name="ACME")
    assert acme["count"] == 1
    assert acme["entries"][0].counterparty.name == "Acme Textiles"

    assert await service.get_sales_or_purchase_history(business.id, counterparty_name="nobody") == empty_history()


@pytest.mark.parametrize("kwargs", [{"period": "last decade"}, {"entry_type": "STOCK_IN"}, {"entry_type": "REFUND"}])
async def test_history_rejects_unknown_filters_with_empty_result(db, clock, business, customer, kwargs):
    await add_entry(db, business, "SALE", "300.00", clock.current - timedelta(days=1), customer)

    history = await QueryService(db, clock=clock).get_sales_or_purchase_history(business.id, **kwargs)

    assert history == empty_history()


async def test_counterparties_carry_order_and_product_counts(db, clock, business, customer, supplier, product):
    db.add(Product(business_id=business.id, counterparty_id=supplier.id, name="Yarn", sku="YN-001"))
    db.add(Product(business_id=business.id, counterparty_id=supplier.id, name="Dye", sku="DY-001"))
    await db.commit()
    await place(db, clock, business, customer, product)
    await place(db, clock, business, customer, product)

    rows = await QueryService(db, clock=clock).get_counterparties(business.id)

    assert [(r["name"], r["order_count"], r["product_count"]) for r in rows] == [
        ("Acme Textiles", 2, 0),
        ("Cotton Supply Co", 0, 2),
    ]


async def test_counterparties_are_tenant_scoped(db, clock, business, other_business, customer):
    db.add(Counterparty(business_id=other_business.id, name="Elsewhere Ltd"))
    await db.commit()

    rows = await QueryService(db, clock=clock).get_counterparties(business.id)

    assert [r["name"] for r in rows] == ["Acme Textiles"]


async def test_dashboard_summary(db, clock, business, customer, product):
    await InventoryService(db, clock=clock).replenish(business.id, product.id, 100, Decimal("10.00"))
    orders = OrderService(db, clock=clock)
    first = await place(db, clock, business, customer, product)
    await place(db, clock, business, customer, product)
    await orders.transition(business.id, first.id, "CANCELLED")

    summary = await QueryService(db, clock=clock).get_dashboard_summary(business.id)

    assert summary["total_orders"] == 2
    assert summary["active_orders"] == 1
    assert summary["total_counterparties"] == 1
    assert summary["total_products"] == 1
    assert summary["total_stock_units"] == 100
    assert summary["total_stock_value"] == Decimal("1000.00")
    assert len(summary["recent_orders"]) == 2


async def test_queries_degrade_to_empty_on_database_errors(db, clock, business, monkeypatch):
    async def broken_execute(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    async def broken_scalar(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "execute", broken_execute)
    monkeypatch.setattr(db, "scalar", broken_scalar)
    service = QueryService(db, clock=clock)

    assert await service.get_order_tracking(business.id) == []
    assert await service.get_stock_levels(business.id) == []
    assert await service.get_business_insights(business.id) == []
    assert await service.get_sales_or_purchase_history(business.id) == empty_history()
    assert await service.get_counterparties(business.id) == []
    assert await service.get_dashboard_summary(business.id) == {}
