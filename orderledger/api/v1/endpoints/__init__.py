# API endpoints
from orderledger.api.v1.endpoints import (
    orders,
    inventory,
    ledger,
    insights,
    assistant,
    dashboard,
    catalog,
)

__all__ = [
    "orders",
    "inventory",
    "ledger",
    "insights",
    "assistant",
    "dashboard",
    "catalog",
]
