"""
Zeene Storefront - Shared Helpers
==================================
Pure utility functions with NO database or module dependencies.
"""

import secrets
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional

from config.settings import CURRENCY

CENTS = Decimal("0.01")


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def to_money(value) -> Decimal:
    """Coerce a number/string to a 2-place Decimal (half-up)."""
    if value is None:
        return Decimal("0.00")
    try:
        return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")


def format_price(value) -> str:
    """Format an amount for display, e.g. 'PKR 1,250'."""
    if value is None:
        value = 0
    try:
        amount = to_money(value)
    except ValueError:
        return str(value)
    if amount == amount.to_integral_value():
        return f"{CURRENCY} {int(amount):,}"
    return f"{CURRENCY} {amount:,.2f}"


def get_real_ip(request) -> str:
    """Extract real client IP from request (handles X-Forwarded-For proxy header)."""
    x_forwarded = request.headers.get("X-Forwarded-For")
    if x_forwarded:
        return x_forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


# ==========================================
# Order Number Generator
# ==========================================

_ORDER_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"  # no O/0/I/1/L


def generate_order_number(length: int = 6) -> str:
    """Human-readable order number: ORD-YYYYMMDD-XXXXXX."""
    suffix = "".join(secrets.choice(_ORDER_ALPHABET) for _ in range(length))
    return f"ORD-{now_utc():%Y%m%d}-{suffix}"


def generate_unique_order_number(db, length: int = 6, max_retries: int = 10) -> str:
    """Generate an order number not yet present in the orders table."""
    from common.exceptions import PersistenceError
    from modules.order.models import Order
    for _ in range(max_retries):
        number = generate_order_number(length)
        exists = db.query(Order.id).filter(Order.order_number == number).first()
        if not exists:
            return number
    raise PersistenceError("Could not allocate an order number. Please try again.")
