"""
Coupon Routes - Customer Facing
==================================
AJAX coupon validation for the checkout page.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import get_session_key
from modules.cart.service import cart_service
from modules.coupon.service import coupon_service
from modules.order.service import compute_totals

router = APIRouter(prefix="/api/coupon", tags=["coupon"])


@router.get("/check")
async def check_coupon(
    code: str = Query(""),
    db: Session = Depends(get_db),
    session_key: str = Depends(get_session_key),
):
    """AJAX: Validate coupon code against current cart."""
    if not code.strip():
        return {"valid": False, "error": "Please enter a coupon code", "discount_amount": "0.00"}

    summary = cart_service.get_summary(db, session_key)
    if summary.is_empty:
        return {"valid": False, "error": "Your cart is empty", "discount_amount": "0.00"}

    result = coupon_service.quick_check(db, code, summary.subtotal)
    if result["valid"]:
        totals = compute_totals(summary.subtotal, result["discount_amount"])
        result["subtotal"] = str(totals.subtotal)
        result["applied_discount"] = str(totals.discount)
        result["total"] = str(totals.total)
    return result
