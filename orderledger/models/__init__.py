# Models module
from orderledger.models.business import Business, Subscription, Counterparty, CounterpartyKind
from orderledger.models.product import Product
from orderledger.models.inventory import InventoryLot, InventoryUsage
from orderledger.models.ledger import LedgerEntry, LedgerEntryType
from orderledger.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    ManufacturingStage,
    ManufacturingStageName,
    StageStatus,
)

__all__ = [
    "Business",
    "Subscription",
    "Counterparty",
    "CounterpartyKind",
    "Product",
    "InventoryLot",
    "InventoryUsage",
    "LedgerEntry",
    "LedgerEntryType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
    "ManufacturingStage",
    "ManufacturingStageName",
    "StageStatus",
]
