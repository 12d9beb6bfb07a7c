from typing import Annotated, Callable, Optional
from datetime import datetime
import logging

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.config import settings
from orderledger.core.subscription_gate import ensure_active_subscription
from orderledger.core.tenant_context import TenantContext, parse_tenant_identity
from orderledger.database import get_db
from orderledger.db_types import utc_now


logger = logging.getLogger(__name__)


def get_clock() -> Callable[[], datetime]:
    """Clock handed to services. Overridden in tests."""
    return utc_now


async def get_tenant_context(
    x_business_id: Annotated[Optional[str], Header()] = None,
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> TenantContext:
    """
    Resolve the request identity set by the upstream auth layer.

    Raises UnauthorizedError (401) when the business header is missing or malformed.
    """
    return parse_tenant_identity(x_business_id, x_user_id)


async def require_active_subscription(
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
) -> TenantContext:
    """
    Gate every engine route on the billing collaborator's answer.

    Raises SubscriptionRequiredError (402) unless the business has an active
    subscription. Skipped when SUBSCRIPTION_GATE_ENABLED is false.
    """
    if settings.SUBSCRIPTION_GATE_ENABLED:
        await ensure_active_subscription(db, tenant.business_id, now=clock())
    return tenant


# Type aliases for cleaner dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
Clock = Annotated[Callable[[], datetime], Depends(get_clock)]
Tenant = Annotated[TenantContext, Depends(get_tenant_context)]
ActiveTenant = Annotated[TenantContext, Depends(require_active_subscription)]
