"""
Subscription gate.

The billing collaborator owns subscriptions; the engine only asks one
question before mutating or reporting: is this business's subscription active?
"""
from datetime import datetime, timezone
from typing import Optional
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.errors import SubscriptionRequiredError
from orderledger.models.business import Subscription

logger = logging.getLogger(__name__)

# Gateway statuses that still grant access
ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"created", "authenticated", "active"})


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_subscription_active(
    subscription: Optional[Subscription],
    now: Optional[datetime] = None,
) -> bool:
    """Check whether a subscription grants access at `now`."""
    if subscription is None:
        return False

    if (subscription.status or "").lower() not in ACTIVE_SUBSCRIPTION_STATUSES:
        return False

    if subscription.current_period_end is not None:
        now = now or datetime.now(timezone.utc)
        if _as_aware(subscription.current_period_end) < _as_aware(now):
            return False

    return True


async def get_subscription_for_business(
    db: AsyncSession,
    business_id: uuid.UUID,
) -> Optional[Subscription]:
    result = await db.execute(
        select(Subscription).where(Subscription.business_id == business_id)
    )
    return result.scalar_one_or_none()


async def ensure_active_subscription(
    db: AsyncSession,
    business_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Raise SubscriptionRequiredError unless the business has an active subscription.
    """
    subscription = await get_subscription_for_business(db, business_id)
    if not is_subscription_active(subscription, now):
        logger.info(f"Subscription gate closed for business {business_id}")
        raise SubscriptionRequiredError("Subscription required")
    return subscription
