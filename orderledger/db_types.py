"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import Numeric
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

# UUID type that works with both databases
UUIDType = PG_UUID

# Money columns: two decimal places, Decimal in and out
MoneyType = Numeric(14, 2, asdecimal=True)

CENT = Decimal("0.01")


def utc_now() -> datetime:
    """Default clock for timestamps."""
    return datetime.now(timezone.utc)


def to_money(value) -> Decimal:
    """Coerce int/str/float/Decimal to Decimal via its string form (no float drift)."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e
