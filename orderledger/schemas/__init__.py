# Schemas module
from orderledger.schemas.base import Amount, Money, BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema
from orderledger.schemas.catalog import (
    CounterpartyCreate, CounterpartyUpdate, CounterpartyResponse, CounterpartySummary,
    ProductCreate, ProductUpdate, ProductResponse,
)
from orderledger.schemas.order import (
    OrderCreate, OrderItemCreate, OrderStatusUpdate, ManufacturingStageUpdate,
    OrderBrief, OrderResponse, ManufacturingStageResponse,
)
from orderledger.schemas.inventory import (
    InventoryLotResponse, StockLevelResponse, UsageCreate, AllocationResponse,
    ReceiptCreate, ConservationResponse,
)
from orderledger.schemas.ledger import (
    LedgerEntryResponse, LedgerListResponse, PurchaseCreate, ReversalCreate,
)
from orderledger.schemas.insights import (
    InsightResponse, InsightsResponse, HistoryResponse, DashboardResponse,
)
