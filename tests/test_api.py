"""
API tests: the FastAPI app against in-memory SQLite.

The database and clock dependencies are overridden; everything else runs as in production.
"""
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from orderledger.api.deps import get_clock
from orderledger.database import get_db
from orderledger.main import app
from tests.conftest import START, make_business


@pytest.fixture
async def client(session_factory, clock):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def headers_for(business):
    return {"X-Business-Id": str(business.id), "X-User-Id": str(uuid.uuid4())}


@pytest.fixture
def auth(business):
    return headers_for(business)


# ==================== Identity and subscription gate ====================

async def test_missing_business_identity_is_unauthorized(client):
    resp = await client.get("/api/v1/orders")
    assert resp.status_code == 401
    assert resp.json()["error"] == "UNAUTHORIZED"

    resp = await client.get("/api/v1/orders", headers={"X-Business-Id": "not-a-uuid"})
    assert resp.status_code == 401


async def test_business_without_subscription_is_gated(client, db):
    business = await make_business(db, "Unpaid Looms", subscription_status=None)

    resp = await client.get("/api/v1/orders", headers=headers_for(business))

    assert resp.status_code == 402
    assert resp.json() == {"error": "SUBSCRIPTION_REQUIRED", "detail": "Subscription required"}


async def test_lapsed_subscription_is_gated(client, db):
    business = await make_business(db, "Lapsed Looms", period_end=START - timedelta(days=1))

    resp = await client.get("/api/v1/inventory", headers=headers_for(business))

    assert resp.status_code == 402


async def test_cancelled_subscription_is_gated(client, db):
    business = await make_business(db, "Closed Looms", subscription_status="cancelled")

    resp = await client.get("/api/v1/dashboard", headers=headers_for(business))

    assert resp.status_code == 402


async def test_health_and_root(client):
    assert (await client.get("/")).status_code == 200
    resp = await client.get("/health")
    assert resp.json()["status"] in ("healthy", "unhealthy")


# ==================== Full flow ====================

async def test_order_to_delivery_flow(client, auth):
    resp = await client.post(
        "/api/v1/catalog/counterparties",
        json={"name": "Acme Textiles", "kind": "CUSTOMER", "email": "buying@acme.test"},
        headers=auth,
    )
    assert resp.status_code == 201
    customer_id = resp.json()["id"]

    resp = await client.post(
        "/api/v1/catalog/products",
        json={"name": "Cotton Fabric", "sku": "CF-100", "unit": "m", "price": "15.00", "reorder_level": 10},
        headers=auth,
    )
    assert resp.status_code == 201
    product_id = resp.json()["id"]

    resp = await client.post(
        "/api/v1/inventory/receipts",
        json={"product_id": product_id, "quantity": 100, "cost_per_unit": "10.00"},
        headers=auth,
    )
    assert resp.status_code == 201
    assert resp.json()["remaining_qty"] == 100

    resp = await client.post(
        "/api/v1/inventory/usage",
        json={"product_id": product_id, "quantity": 30, "reason": "Cutting"},
        headers=auth,
    )
    assert resp.status_code == 201
    assert [(d["quantity"], d["remaining_after"]) for d in resp.json()["deductions"]] == [(30, 70)]

    resp = await client.post(
        "/api/v1/orders",
        json={
            "counterparty_id": customer_id,
            "items": [{"product_id": product_id, "quantity": 20, "unit_price": "15.00"}],
            "notes": "Festival batch",
        },
        headers=auth,
    )
    assert resp.status_code == 201
    order = resp.json()
    order_id = order["id"]
    assert order["status"] == "PLACED"
    assert Decimal(order["total_amount"]) == Decimal("300.00")
    assert order["item_count"] == 20
    assert order["is_terminal"] is False
    assert len(order["status_history"]) == 1

    for target in ("ACCEPTED", "IN_MANUFACTURING"):
        resp = await client.put(f"/api/v1/orders/{order_id}/status", json={"status": target}, headers=auth)
        assert resp.status_code == 200
    stages = resp.json()["manufacturing_stages"]
    assert [s["stage"] for s in stages] == ["RAW_MATERIAL_PREP", "ASSEMBLY", "QUALITY_CHECK", "PACKAGING"]

    resp = await client.put(
        f"/api/v1/orders/{order_id}/manufacturing",
        json={"stage_id": stages[0]["id"], "status": "IN_PROGRESS", "note": "Started"},
        headers=auth,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "IN_PROGRESS"

    for target in ("DISPATCHED", "DELIVERED"):
        resp = await client.put(f"/api/v1/orders/{order_id}/status", json={"status": target}, headers=auth)
        assert resp.status_code == 200
    order = resp.json()
    assert order["status"] == "DELIVERED"
    assert order["is_terminal"] is True
    assert order["delivered_at"] is not None
    assert len(order["status_history"]) == 5

    resp = await client.get("/api/v1/inventory", params={"product_name": "cotton"}, headers=auth)
    assert resp.json()[0]["total_stock"] == 90

    resp = await client.get(f"/api/v1/inventory/{product_id}/lots", headers=auth)
    lots = resp.json()
    assert [lot["remaining_qty"] for lot in lots] == [70, 20]
    assert lots[1]["order_id"] == order_id

    resp = await client.get(f"/api/v1/inventory/{product_id}/conservation", headers=auth)
    assert resp.json() == {
        "product_id": product_id,
        "received": 120,
        "consumed": 30,
        "remaining": 90,
        "balanced": True,
    }

    resp = await client.get("/api/v1/ledger", params={"entry_type": "SALE"}, headers=auth)
    sales = resp.json()
    assert sales["count"] == 1
    assert Decimal(sales["total_amount"]) == Decimal("300.00")
    assert sales["items"][0]["order_id"] == order_id
    assert sales["items"][0]["counterparty_id"] == customer_id

    resp = await client.get("/api/v1/insights", headers=auth)
    assert resp.status_code == 200
    types = [i["type"] for i in resp.json()["insights"]]
    assert "REVENUE_SUMMARY" in types

    resp = await client.get("/api/v1/assistant/orders", params={"counterparty": "ACME"}, headers=auth)
    assert [o["id"] for o in resp.json()] == [order_id]

    resp = await client.get("/api/v1/assistant/history", headers=auth)
    assert resp.json()["count"] == 1

    resp = await client.get("/api/v1/assistant/counterparties", headers=auth)
    assert resp.json()[0]["order_count"] == 1

    resp = await client.get("/api/v1/dashboard", headers=auth)
    dashboard = resp.json()
    assert dashboard["total_orders"] == 1
    assert dashboard["active_orders"] == 0
    assert dashboard["total_stock_units"] == 90


# ==================== Errors ====================

async def test_insufficient_stock_is_a_conflict(client, auth, product):
    resp = await client.post(
        "/api/v1/inventory/usage",
        json={"product_id": str(product.id), "quantity": 5},
        headers=auth,
    )

    assert resp.status_code == 409
    assert resp.json()["error"] == "INSUFFICIENT_STOCK"


async def test_invalid_transition_is_rejected(client, auth, customer, product):
    resp = await client.post(
        "/api/v1/orders",
        json={"counterparty_id": str(customer.id), "items": [{"product_id": str(product.id), "quantity": 1}]},
        headers=auth,
    )
    order_id = resp.json()["id"]
    assert Decimal(resp.json()["total_amount"]) == Decimal("15.00")

    resp = await client.put(f"/api/v1/orders/{order_id}/status", json={"status": "DELIVERED"}, headers=auth)

    assert resp.status_code == 400
    assert resp.json()["error"] == "INVALID_STATUS"
    resp = await client.get(f"/api/v1/orders/{order_id}", headers=auth)
    assert resp.json()["status"] == "PLACED"


async def test_orders_are_invisible_to_other_businesses(client, auth, other_business, customer, product):
    resp = await client.post(
        "/api/v1/orders",
        json={"counterparty_id": str(customer.id), "items": [{"product_id": str(product.id), "quantity": 1}]},
        headers=auth,
    )
    order_id = resp.json()["id"]
    other = headers_for(other_business)

    assert (await client.get(f"/api/v1/orders/{order_id}", headers=other)).status_code == 404
    resp = await client.put(f"/api/v1/orders/{order_id}/status", json={"status": "ACCEPTED"}, headers=other)
    assert resp.status_code == 404
    assert resp.json()["error"] == "NOT_FOUND"
    assert (await client.get("/api/v1/orders", headers=other)).json() == []


async def test_unknown_order_is_not_found(client, auth):
    resp = await client.get(f"/api/v1/orders/{uuid.uuid4()}", headers=auth)

    assert resp.status_code == 404


async def test_delete_order(client, auth, customer, product):
    resp = await client.post(
        "/api/v1/orders",
        json={"counterparty_id": str(customer.id), "items": [{"product_id": str(product.id), "quantity": 1}]},
        headers=auth,
    )
    order_id = resp.json()["id"]

    assert (await client.delete(f"/api/v1/orders/{order_id}", headers=auth)).status_code == 204
    assert (await client.get(f"/api/v1/orders/{order_id}", headers=auth)).status_code == 404


@pytest.mark.parametrize(
    "path,payload",
    [
        ("/api/v1/inventory/usage", {"quantity": 0}),
        ("/api/v1/inventory/receipts", {"quantity": 5, "cost_per_unit": "-1.00"}),
        ("/api/v1/ledger/purchases", {"quantity": 1, "unit_price": "1.005"}),
    ],
)
async def test_request_validation(client, auth, product, path, payload):
    resp = await client.post(path, json={"product_id": str(product.id), **payload}, headers=auth)

    assert resp.status_code == 422


async def test_duplicate_sku_is_a_conflict(client, auth, product):
    resp = await client.post(
        "/api/v1/catalog/products",
        json={"name": "Cotton Again", "sku": "CF-001"},
        headers=auth,
    )

    assert resp.status_code == 409
    assert resp.json()["error"] == "CONFLICT"


async def test_purchase_and_reversal(client, auth, product, supplier):
    resp = await client.post(
        "/api/v1/ledger/purchases",
        json={
            "product_id": str(product.id),
            "quantity": 50,
            "unit_price": "8.50",
            "counterparty_id": str(supplier.id),
        },
        headers=auth,
    )
    assert resp.status_code == 201
    entry_id = resp.json()["id"]
    assert Decimal(resp.json()["total_amount"]) == Decimal("425.00")

    resp = await client.post(f"/api/v1/ledger/{entry_id}/reverse", json={"reason": "duplicate"}, headers=auth)
    assert resp.status_code == 201
    assert resp.json()["reverses_entry_id"] == entry_id
    assert resp.json()["quantity"] == -50

    resp = await client.post(f"/api/v1/ledger/{entry_id}/reverse", json={}, headers=auth)
    assert resp.status_code == 400

    resp = await client.get("/api/v1/ledger", params={"entry_type": "PURCHASE"}, headers=auth)
    assert resp.json()["count"] == 2
    assert Decimal(resp.json()["total_amount"]) == Decimal("0")


async def test_update_product(client, auth, product):
    resp = await client.patch(
        f"/api/v1/catalog/products/{product.id}",
        json={"price": "18.50"},
        headers=auth,
    )

    assert resp.status_code == 200
    assert Decimal(resp.json()["price"]) == Decimal("18.50")
    assert resp.json()["reorder_level"] == 10


async def test_assistant_history_with_unknown_period_is_empty(client, auth):
    resp = await client.get("/api/v1/assistant/history", params={"period": "last decade"}, headers=auth)

    assert resp.status_code == 200
    assert resp.json()["count"] == 0
    assert resp.json()["entries"] == []


async def test_update_product_ignores_unsent_fields(client, auth, product):
    resp = await client.patch(
        f"/api/v1/catalog/products/{product.id}",
        json={"reorder_level": 25, "price": None},
        headers=auth,
    )

    assert resp.status_code == 200
    assert resp.json()["price"] == "15.00"
    assert resp.json()["reorder_level"] == 25


async def test_money_is_rendered_to_the_cent(client, auth, customer, product):
    resp = await client.post(
        "/api/v1/orders",
        json={
            "counterparty_id": str(customer.id),
            "items": [{"product_id": str(product.id), "quantity": 3, "unit_price": "2.5"}],
        },
        headers=auth,
    )

    assert resp.status_code == 201
    assert resp.json()["total_amount"] == "7.50"
    assert resp.json()["items"][0]["unit_price"] == "2.50"


# ==================== Catalog ====================

async def test_counterparty_get_update_and_delete(client, auth):
    resp = await client.post(
        "/api/v1/catalog/counterparties",
        json={"name": "  Loom Works  ", "kind": "SUPPLIER"},
        headers=auth,
    )
    assert resp.status_code == 201
    assert resp.json()["name"] == "Loom Works"
    counterparty_id = resp.json()["id"]

    resp = await client.get(f"/api/v1/catalog/counterparties/{counterparty_id}", headers=auth)
    assert resp.status_code == 200
    assert resp.json()["kind"] == "SUPPLIER"

    resp = await client.patch(
        f"/api/v1/catalog/counterparties/{counterparty_id}",
        json={"email": "orders@loom.example"},
        headers=auth,
    )
    assert resp.status_code == 200
    assert resp.json()["email"] == "orders@loom.example"
    assert resp.json()["name"] == "Loom Works"

    resp = await client.delete(f"/api/v1/catalog/counterparties/{counterparty_id}", headers=auth)
    assert resp.status_code == 204
    resp = await client.get(f"/api/v1/catalog/counterparties/{counterparty_id}", headers=auth)
    assert resp.status_code == 404


async def test_counterparty_with_orders_cannot_be_deleted(client, auth, customer, product):
    await client.post(
        "/api/v1/orders",
        json={"counterparty_id": str(customer.id), "items": [{"product_id": str(product.id), "quantity": 1}]},
        headers=auth,
    )

    resp = await client.delete(f"/api/v1/catalog/counterparties/{customer.id}", headers=auth)

    assert resp.status_code == 409
    assert resp.json()["error"] == "CONFLICT"


async def test_catalog_records_of_other_businesses_are_not_found(client, auth, other_product):
    assert (await client.get(f"/api/v1/catalog/products/{other_product.id}", headers=auth)).status_code == 404
    assert (await client.delete(f"/api/v1/catalog/products/{other_product.id}", headers=auth)).status_code == 404
    missing = uuid.uuid4()
    assert (await client.get(f"/api/v1/catalog/counterparties/{missing}", headers=auth)).status_code == 404
    assert (
        await client.patch(f"/api/v1/catalog/counterparties/{missing}", json={"name": "X"}, headers=auth)
    ).status_code == 404


async def test_product_get_and_delete(client, auth, product):
    resp = await client.get(f"/api/v1/catalog/products/{product.id}", headers=auth)
    assert resp.status_code == 200
    assert resp.json()["sku"] == "CF-001"
    assert resp.json()["price"] == "15.00"

    resp = await client.delete(f"/api/v1/catalog/products/{product.id}", headers=auth)
    assert resp.status_code == 204
    assert (await client.get(f"/api/v1/catalog/products/{product.id}", headers=auth)).status_code == 404


async def test_stocked_product_cannot_be_deleted(client, auth, product):
    await client.post(
        "/api/v1/inventory/receipts",
        json={"product_id": str(product.id), "quantity": 5, "cost_per_unit": "3.00"},
        headers=auth,
    )

    resp = await client.delete(f"/api/v1/catalog/products/{product.id}", headers=auth)

    assert resp.status_code == 409
