from decimal import Decimal

import pytest
from sqlalchemy import select, func

from orderledger.core.errors import ConflictError, InvalidStatusError, NotFoundError
from orderledger.models import Counterparty, Product
from orderledger.services.catalog_service import CatalogService
from orderledger.services.inventory_service import InventoryService
from orderledger.services.ledger_service import LedgerService
from orderledger.services.order_service import OrderService


async def test_get_counterparty_is_tenant_scoped(db, clock, business, other_business, customer):
    service = CatalogService(db, clock=clock)

    assert (await service.get_counterparty(business.id, customer.id)).name == "Acme Textiles"
    assert await service.get_counterparty(other_business.id, customer.id) is None


async def test_update_counterparty_changes_only_given_fields(db, clock, business, customer):
    service = CatalogService(db, clock=clock)

    updated = await service.update_counterparty(business.id, customer.id, name="  Acme Mills ", phone="555-0101")

    assert updated.name == "Acme Mills"
    assert updated.phone == "555-0101"
    assert updated.email is None
    assert updated.kind == "CUSTOMER"


async def test_update_counterparty_rejects_blank_name_and_foreign_id(db, clock, business, other_business, customer):
    service = CatalogService(db, clock=clock)

    with pytest.raises(InvalidStatusError):
        await service.update_counterparty(business.id, customer.id, name="   ")
    with pytest.raises(NotFoundError):
        await service.update_counterparty(other_business.id, customer.id, name="Taken Over")

    assert (await service.get_counterparty(business.id, customer.id)).name == "Acme Textiles"


async def test_delete_counterparty_unlinks_its_products(db, clock, business, supplier):
    service = CatalogService(db, clock=clock)
    supplied = await service.create_product(business.id, "Linen", "LN-001", counterparty_id=supplier.id)
    product_id = supplied.id

    await service.delete_counterparty(business.id, supplier.id)

    assert await service.get_counterparty(business.id, supplier.id) is None
    product = await service.get_product(business.id, product_id)
    assert product is not None
    assert product.counterparty_id is None


async def test_delete_counterparty_with_orders_is_a_conflict(db, clock, business, customer, product):
    await OrderService(db, clock=clock).create_order(
        business.id, customer.id, [{"product_id": product.id, "quantity": 1}]
    )
    service = CatalogService(db, clock=clock)

    with pytest.raises(ConflictError):
        await service.delete_counterparty(business.id, customer.id)

    assert await db.scalar(select(func.count(Counterparty.id))) == 1


async def test_delete_counterparty_with_ledger_history_is_a_conflict(db, clock, business, supplier, product):
    await LedgerService(db, clock=clock).record_purchase(
        business.id, product.id, 5, Decimal("2.00"), counterparty_id=supplier.id
    )
    service = CatalogService(db, clock=clock)

    with pytest.raises(ConflictError):
        await service.delete_counterparty(business.id, supplier.id)


async def test_delete_counterparty_of_another_business(db, clock, other_business, customer):
    service = CatalogService(db, clock=clock)

    with pytest.raises(NotFoundError):
        await service.delete_counterparty(other_business.id, customer.id)


async def test_delete_unused_product(db, clock, business, product):
    service = CatalogService(db, clock=clock)

    await service.delete_product(business.id, product.id)

    assert await service.get_product(business.id, product.id) is None
    assert await db.scalar(select(func.count(Product.id))) == 0


async def test_delete_stocked_product_is_a_conflict(db, clock, business, product):
    await InventoryService(db, clock=clock).replenish(business.id, product.id, 10, Decimal("5.00"))
    service = CatalogService(db, clock=clock)

    with pytest.raises(ConflictError) as exc_info:
        await service.delete_product(business.id, product.id)

    assert "inventory lots" in str(exc_info.value)
    assert await service.get_product(business.id, product.id) is not None


async def test_delete_ordered_product_is_a_conflict(db, clock, business, customer, product):
    await OrderService(db, clock=clock).create_order(
        business.id, customer.id, [{"product_id": product.id, "quantity": 3}]
    )
    service = CatalogService(db, clock=clock)

    with pytest.raises(ConflictError):
        await service.delete_product(business.id, product.id)


async def test_delete_product_of_another_business(db, clock, business, other_product):
    service = CatalogService(db, clock=clock)

    with pytest.raises(NotFoundError):
        await service.delete_product(business.id, other_product.id)
