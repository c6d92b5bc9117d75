"""
Order Routes - Customer Facing
=================================
Receipt upload, checkout, order lookup.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import CHECKOUT_RATE_LIMIT, CHECKOUT_RATE_WINDOW
from common.upload import save_receipt
from modules.auth.deps import (
    CheckoutContext, get_checkout_context, get_session_key, require_login, rate_limit,
)
from modules.cart.service import cart_service
from modules.order.models import PaymentMethod
from modules.order.service import order_service, CheckoutForm, serialize_order

router = APIRouter(prefix="/api", tags=["order"])


# ==========================================
# Schemas
# ==========================================

class CheckoutRequest(BaseModel):
    customer_name: str = Field("", max_length=200)
    email: str = Field("", max_length=300)
    address: str = Field("", max_length=1000)
    phone: str = Field("", max_length=40)
    payment_method: str = PaymentMethod.COD.value
    receipt_url: Optional[str] = Field(None, max_length=500)
    coupon_code: Optional[str] = Field(None, max_length=50)


# ==========================================
# 🧾 Payment Receipt Upload
# ==========================================

@router.post("/receipts")
async def upload_receipt(
    file: UploadFile = File(...),
    _ip: str = Depends(rate_limit("receipt", CHECKOUT_RATE_LIMIT, CHECKOUT_RATE_WINDOW)),
):
    url = save_receipt(file)
    return {"success": True, "receipt_url": url}


# ==========================================
# ✅ Checkout
# ==========================================

@router.post("/checkout")
async def checkout(
    body: CheckoutRequest,
    db: Session = Depends(get_db),
    session_key: str = Depends(get_session_key),
    context: CheckoutContext = Depends(get_checkout_context),
    _ip: str = Depends(rate_limit("checkout", CHECKOUT_RATE_LIMIT, CHECKOUT_RATE_WINDOW)),
):
    cart = cart_service.get_cart(db, session_key)
    form = CheckoutForm(
        customer_name=body.customer_name,
        email=body.email,
        address=body.address,
        phone=body.phone,
        payment_method=body.payment_method,
    )

    result = order_service.place_order(
        db, cart, form, context,
        coupon_code=body.coupon_code,
        receipt_url=body.receipt_url,
    )
    order = result.order

    if result.notification_sent:
        message = f"Order {order.order_number} placed successfully"
    else:
        message = f"Order {order.order_number} placed, but we couldn't send the confirmation email"

    return {
        "success": True,
        "order_number": order.order_number,
        "subtotal": str(order.subtotal_amount),
        "discount": str(order.discount_amount),
        "total": str(order.total_amount),
        "notification_sent": result.notification_sent,
        "message": message,
    }


# ==========================================
# 📦 Orders
# ==========================================

@router.get("/orders")
async def my_orders(
    db: Session = Depends(get_db),
    user=Depends(require_login),
):
    orders = order_service.list_user_orders(db, user.id)
    return {"items": [serialize_order(o) for o in orders]}


@router.get("/orders/{order_number}")
async def order_status(
    order_number: str,
    db: Session = Depends(get_db),
):
    """Public order-confirmation lookup. Customer contact details are omitted."""
    order = order_service.get_order_by_number(db, order_number)
    return serialize_order(order, include_customer=False)
