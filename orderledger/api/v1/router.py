from fastapi import APIRouter

from orderledger.api.v1.endpoints import (
    # Order lifecycle
    orders,
    # Lots and stock
    inventory,
    # Append-only ledger
    ledger,
    # Advisories
    insights,
    # Read-only reporting surface
    assistant,
    dashboard,
    # Products and counterparties
    catalog,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Orders ====================
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)

# ==================== Inventory ====================
api_router.include_router(
    inventory.router,
    prefix="/inventory",
    tags=["Inventory"]
)

# ==================== Ledger ====================
api_router.include_router(
    ledger.router,
    prefix="/ledger",
    tags=["Ledger"]
)

# ==================== Insights ====================
api_router.include_router(
    insights.router,
    prefix="/insights",
    tags=["Insights"]
)

# ==================== Assistant / Reporting ====================
api_router.include_router(
    assistant.router,
    prefix="/assistant",
    tags=["Assistant"]
)
api_router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)

# ==================== Catalog ====================
api_router.include_router(
    catalog.router,
    prefix="/catalog",
    tags=["Catalog"]
)
