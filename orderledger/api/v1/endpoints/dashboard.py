from fastapi import APIRouter

from orderledger.api.deps import DB, Clock, ActiveTenant
from orderledger.schemas.insights import DashboardResponse
from orderledger.schemas.order import OrderBrief
from orderledger.services.query_service import QueryService


router = APIRouter(tags=["Dashboard"])


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    """Headline counts, stock valuation and the latest orders."""
    service = QueryService(db, clock=clock)
    summary = await service.get_dashboard_summary(tenant.business_id)
    if not summary:
        return DashboardResponse()
    summary["recent_orders"] = [OrderBrief.model_validate(o) for o in summary["recent_orders"]]
    return DashboardResponse(**summary)
