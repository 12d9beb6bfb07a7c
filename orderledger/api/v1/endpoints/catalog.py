from typing import List, Optional
import uuid

from fastapi import APIRouter, HTTPException, Query, status

from orderledger.api.deps import DB, Clock, ActiveTenant
from orderledger.models.business import CounterpartyKind
from orderledger.schemas.catalog import (
    CounterpartyCreate,
    CounterpartyResponse,
    CounterpartyUpdate,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
)
from orderledger.services.catalog_service import CatalogService


router = APIRouter(tags=["Catalog"])


# ==================== Counterparties ====================

@router.post("/counterparties", response_model=CounterpartyResponse, status_code=status.HTTP_201_CREATED)
async def create_counterparty(
    data: CounterpartyCreate,
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    service = CatalogService(db, clock=clock)
    counterparty = await service.create_counterparty(
        tenant.business_id,
        data.name,
        kind=data.kind,
        email=data.email,
        phone=data.phone,
    )
    return CounterpartyResponse.model_validate(counterparty)


@router.get("/counterparties", response_model=List[CounterpartyResponse])
async def list_counterparties(
    db: DB,
    tenant: ActiveTenant,
    kind: Optional[CounterpartyKind] = Query(None),
):
    service = CatalogService(db)
    counterparties = await service.list_counterparties(tenant.business_id, kind=kind)
    return [CounterpartyResponse.model_validate(c) for c in counterparties]


@router.get("/counterparties/{counterparty_id}", response_model=CounterpartyResponse)
async def get_counterparty(
    counterparty_id: uuid.UUID,
    db: DB,
    tenant: ActiveTenant,
):
    service = CatalogService(db)
    counterparty = await service.get_counterparty(tenant.business_id, counterparty_id)

    if not counterparty:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Counterparty not found"
        )

    return CounterpartyResponse.model_validate(counterparty)


@router.patch("/counterparties/{counterparty_id}", response_model=CounterpartyResponse)
async def update_counterparty(
    counterparty_id: uuid.UUID,
    data: CounterpartyUpdate,
    db: DB,
    tenant: ActiveTenant,
):
    """Change name or contact details."""
    service = CatalogService(db)
    counterparty = await service.update_counterparty(tenant.business_id, counterparty_id, **data.changes())
    return CounterpartyResponse.model_validate(counterparty)


@router.delete("/counterparties/{counterparty_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_counterparty(
    counterparty_id: uuid.UUID,
    db: DB,
    tenant: ActiveTenant,
):
    """Delete a counterparty that has no orders or ledger entries."""
    service = CatalogService(db)
    await service.delete_counterparty(tenant.business_id, counterparty_id)


# ==================== Products ====================

@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    service = CatalogService(db, clock=clock)
    product = await service.create_product(
        tenant.business_id,
        data.name,
        data.sku,
        unit=data.unit,
        price=data.price,
        reorder_level=data.reorder_level,
        counterparty_id=data.counterparty_id,
    )
    return ProductResponse.model_validate(product)


@router.get("/products", response_model=List[ProductResponse])
async def list_products(
    db: DB,
    tenant: ActiveTenant,
    search: Optional[str] = Query(None, description="Name or SKU contains"),
):
    service = CatalogService(db)
    products = await service.list_products(tenant.business_id, search=search)
    return [ProductResponse.model_validate(p) for p in products]


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: uuid.UUID,
    db: DB,
    tenant: ActiveTenant,
):
    service = CatalogService(db)
    product = await service.get_product(tenant.business_id, product_id)

    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )

    return ProductResponse.model_validate(product)


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: uuid.UUID,
    data: ProductUpdate,
    db: DB,
    tenant: ActiveTenant,
):
    """Change price or reorder level."""
    service = CatalogService(db)
    product = await service.update_product(tenant.business_id, product_id, **data.changes())
    return ProductResponse.model_validate(product)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: uuid.UUID,
    db: DB,
    tenant: ActiveTenant,
):
    """Delete a product with no stock, orders or ledger history."""
    service = CatalogService(db)
    await service.delete_product(tenant.business_id, product_id)
