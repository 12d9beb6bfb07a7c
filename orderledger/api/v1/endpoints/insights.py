"""
Business insights endpoint.

Rule-based stock and revenue advisories, recomputed on every call.
"""

from fastapi import APIRouter

from orderledger.api.deps import DB, Clock, ActiveTenant
from orderledger.schemas.insights import InsightResponse, InsightsResponse
from orderledger.services.insights_service import InsightsService


router = APIRouter(tags=["Insights"])


@router.get("", response_model=InsightsResponse)
async def get_insights(
    db: DB,
    tenant: ActiveTenant,
    clock: Clock,
):
    """
    Advisories sorted critical, warning, info.

    - Stock alerts: low, out of stock, running low, slow moving
    - Demand: high demand, usage trend
    - Revenue summary for the trailing window
    """
    now = clock()
    service = InsightsService(db, clock=clock)
    insights = await service.compute(tenant.business_id, now=now)
    return InsightsResponse(
        insights=[InsightResponse.model_validate(i) for i in insights],
        generated_at=now,
    )
