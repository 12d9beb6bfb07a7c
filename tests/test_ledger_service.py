from decimal import Decimal

import pytest
from sqlalchemy import select, func

from orderledger.core.errors import (
    InvalidQuantityError,
    InvalidStatusError,
    InvariantViolationError,
    NotFoundError,
)
from orderledger.models import Counterparty, LedgerEntry, LedgerEntryType
from orderledger.services.ledger_service import LedgerService


async def test_append_computes_total(db, clock, business, product):
    service = LedgerService(db, clock=clock)

    entry = await service.append(business.id, LedgerEntryType.SALE, 3, Decimal("0.10"), product_id=product.id)
    await db.commit()

    assert entry.total_amount == Decimal("0.30")
    assert entry.entry_type == "SALE"


async def test_append_accepts_matching_total_and_string_type(db, clock, business):
    service = LedgerService(db, clock=clock)

    entry = await service.append(business.id, "stock_in", 20, "15.00", total_amount="300")

    assert entry.entry_type == "STOCK_IN"
    assert entry.total_amount == Decimal("300.00")


async def test_append_rejects_total_mismatch(db, clock, business):
    service = LedgerService(db, clock=clock)

    with pytest.raises(InvariantViolationError):
        await service.append(business.id, LedgerEntryType.SALE, 20, Decimal("15.00"), total_amount=Decimal("299.99"))


async def test_append_rejects_sub_cent_price(db, clock, business):
    service = LedgerService(db, clock=clock)

    with pytest.raises(InvariantViolationError):
        await service.append(business.id, LedgerEntryType.PURCHASE, 3, Decimal("1.005"))


async def test_append_rejects_unknown_type(db, clock, business):
    service = LedgerService(db, clock=clock)

    with pytest.raises(InvalidStatusError):
        await service.append(business.id, "REFUND", 1, Decimal("1.00"))


@pytest.mark.parametrize("quantity,price", [(0, "1.00"), (-2, "1.00"), (2.5, "1.00"), (2, "-1.00"), (2, "abc")])
async def test_append_rejects_bad_quantity_or_price(db, clock, business, quantity, price):
    service = LedgerService(db, clock=clock)

    with pytest.raises(InvalidQuantityError):
        await service.append(business.id, LedgerEntryType.SALE, quantity, price)


async def test_record_purchase(db, clock, business, product, supplier):
    service = LedgerService(db, clock=clock)

    entry = await service.record_purchase(business.id, product.id, 50, Decimal("8.50"), counterparty_id=supplier.id)

    assert entry.entry_type == LedgerEntryType.PURCHASE.value
    assert entry.total_amount == Decimal("425.00")
    assert entry.description == "Purchase of Cotton Fabric"


async def test_record_purchase_is_tenant_scoped(db, clock, business, other_product):
    service = LedgerService(db, clock=clock)

    with pytest.raises(NotFoundError):
        await service.record_purchase(business.id, other_product.id, 1, Decimal("1.00"))
    assert await db.scalar(select(func.count(LedgerEntry.id))) == 0


async def test_append_rejects_counterparty_of_another_business(db, clock, business, other_business, product):
    foreign = Counterparty(business_id=other_business.id, name="Elsewhere Ltd")
    db.add(foreign)
    await db.commit()
    foreign_id = foreign.id
    service = LedgerService(db, clock=clock)

    with pytest.raises(NotFoundError):
        await service.append(business.id, LedgerEntryType.STOCK_IN, 5, Decimal("2.00"), counterparty_id=foreign_id)
    with pytest.raises(NotFoundError):
        await service.record_purchase(business.id, product.id, 5, Decimal("2.00"), counterparty_id=foreign_id)

    assert await db.scalar(select(func.count(LedgerEntry.id))) == 0


async def test_reverse_appends_offsetting_entry(db, clock, business, product):
    service = LedgerService(db, clock=clock)
    original = await service.record_purchase(business.id, product.id, 20, Decimal("15.00"))
    original_id = original.id

    reversal = await service.reverse(business.id, original_id, reason="wrong supplier")

    assert reversal.entry_type == LedgerEntryType.PURCHASE.value
    assert reversal.quantity == -20
    assert reversal.total_amount == Decimal("-300.00")
    assert reversal.reverses_entry_id == original_id
    assert reversal.is_reversal
    assert "wrong supplier" in reversal.description

    entries = await service.list_entries(business.id)
    assert LedgerService.summarize(entries) == {
        "count": 2,
        "total_amount": Decimal("0.00"),
        "total_quantity": 0,
    }


async def test_reverse_only_once(db, clock, business, product):
    service = LedgerService(db, clock=clock)
    original = await service.record_purchase(business.id, product.id, 2, Decimal("5.00"))
    original_id = original.id
    reversal = await service.reverse(business.id, original_id)
    reversal_id = reversal.id

    with pytest.raises(InvalidStatusError):
        await service.reverse(business.id, original_id)
    with pytest.raises(InvalidStatusError):
        await service.reverse(business.id, reversal_id)

    assert await db.scalar(select(func.count(LedgerEntry.id))) == 2


async def test_reverse_unknown_or_foreign_entry(db, clock, business, other_business, product):
    service = LedgerService(db, clock=clock)
    entry = await service.record_purchase(business.id, product.id, 1, Decimal("1.00"))
    entry_id = entry.id

    with pytest.raises(NotFoundError):
        await service.reverse(other_business.id, entry_id)


async def test_list_entries_filters_and_orders_newest_first(db, clock, business, product, supplier):
    service = LedgerService(db, clock=clock)
    first = await service.record_purchase(business.id, product.id, 1, Decimal("1.00"))
    second = await service.record_purchase(business.id, product.id, 2, Decimal("1.00"), counterparty_id=supplier.id)
    await service.append(business.id, LedgerEntryType.SALE, 1, Decimal("3.00"), product_id=product.id)
    await db.commit()

    purchases = await service.list_entries(business.id, entry_type="purchase")
    assert [e.id for e in purchases] == [second.id, first.id]

    from_supplier = await service.list_entries(business.id, counterparty_id=supplier.id)
    assert [e.id for e in from_supplier] == [second.id]

    assert len(await service.list_entries(business.id, product_id=product.id)) == 3
