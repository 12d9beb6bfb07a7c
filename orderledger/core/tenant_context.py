"""
Tenant Context for the order ledger engine.

Key Principles:
1. NEVER query tenant tables without a business_id
2. The identity is resolved upstream (auth collaborator) and passed in
   explicitly; there is no thread-local or context-var tenant state
3. Services take business_id as a parameter on every call

Usage:

    ctx = TenantContext(business_id=..., user_id=...)
    await OrderService(db).transition(ctx.business_id, order_id, "ACCEPTED")
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from orderledger.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantContext:
    """Resolved (business, user) identity for one request."""
    business_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None


def parse_tenant_identity(
    business_id: Optional[str],
    user_id: Optional[str] = None,
) -> TenantContext:
    """
    Build a TenantContext from the opaque identity strings handed over by the
    auth collaborator.

    Raises:
        UnauthorizedError: If business_id is missing or not a UUID
    """
    if not business_id:
        raise UnauthorizedError("No business identity on request")

    try:
        business_uuid = uuid.UUID(str(business_id))
    except ValueError:
        logger.warning(f"Invalid business_id in identity: {business_id}")
        raise UnauthorizedError("Invalid business identity")

    user_uuid = None
    if user_id:
        try:
            user_uuid = uuid.UUID(str(user_id))
        except ValueError:
            logger.warning(f"Invalid user_id in identity: {user_id}")
            raise UnauthorizedError("Invalid user identity")

    return TenantContext(business_id=business_uuid, user_id=user_uuid)
