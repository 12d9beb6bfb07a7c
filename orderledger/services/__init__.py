# Services module
from orderledger.services.ledger_service import LedgerService
from orderledger.services.inventory_service import InventoryService
from orderledger.services.order_service import OrderService
from orderledger.services.insights_service import InsightsService
from orderledger.services.query_service import QueryService
from orderledger.services.catalog_service import CatalogService

__all__ = [
    "LedgerService",
    "InventoryService",
    "OrderService",
    "InsightsService",
    "QueryService",
    "CatalogService",
]
