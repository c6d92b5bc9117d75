"""
Cart Routes
=============
JSON cart API for the storefront: view, add, change quantity, remove, clear.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import get_current_user, get_session_key
from modules.cart.service import cart_service, serialize_cart
from modules.catalog.service import catalog_service

router = APIRouter(prefix="/api/cart", tags=["cart"])


# ==========================================
# Schemas
# ==========================================

class AddLineRequest(BaseModel):
    product_id: int = Field(..., gt=0)
    variant_id: Optional[int] = Field(None, gt=0)
    quantity: int = Field(1, ge=1, le=1000)


class UpdateQuantityRequest(BaseModel):
    quantity: int = Field(..., le=1000)


# ==========================================
# 🛒 View Cart
# ==========================================

@router.get("")
async def view_cart(
    db: Session = Depends(get_db),
    session_key: str = Depends(get_session_key),
):
    return serialize_cart(cart_service.get_summary(db, session_key))


# ==========================================
# ➕ Add to Cart
# ==========================================

@router.post("/items")
async def add_to_cart(
    body: AddLineRequest,
    db: Session = Depends(get_db),
    session_key: str = Depends(get_session_key),
    user=Depends(get_current_user),
):
    product = catalog_service.get_product(db, body.product_id)
    variant = catalog_service.get_variant(db, product, body.variant_id)

    cart = cart_service.get_or_create_cart(db, session_key, user.id if user else None)
    line = cart_service.add_line(db, cart, product, body.quantity, variant)
    if line.quantity > line.max_quantity:
        cart_service.update_quantity(db, cart, line.id, line.max_quantity)

    data = serialize_cart(cart_service.summarize(cart.lines))
    data["line_id"] = line.id
    data["message"] = f"Added {line.display_name} to cart"
    data["open_cart"] = True
    return data


# ==========================================
# ➕➖ Change Quantity
# ==========================================

@router.patch("/items/{line_id}")
async def update_cart_line(
    line_id: int,
    body: UpdateQuantityRequest,
    db: Session = Depends(get_db),
    session_key: str = Depends(get_session_key),
):
    cart = cart_service.get_or_create_cart(db, session_key)
    quantity = body.quantity
    line = cart_service.get_line(cart, line_id)
    if line and quantity > line.max_quantity:
        quantity = line.max_quantity

    cart_service.update_quantity(db, cart, line_id, quantity)
    return serialize_cart(cart_service.summarize(cart.lines))


# ==========================================
# ❌ Remove / Clear
# ==========================================

@router.delete("/items/{line_id}")
async def remove_cart_line(
    line_id: int,
    db: Session = Depends(get_db),
    session_key: str = Depends(get_session_key),
):
    cart = cart_service.get_or_create_cart(db, session_key)
    cart_service.remove_line(db, cart, line_id)
    data = serialize_cart(cart_service.summarize(cart.lines))
    data["message"] = "Item removed from cart"
    return data


@router.delete("")
async def clear_cart(
    db: Session = Depends(get_db),
    session_key: str = Depends(get_session_key),
):
    cart = cart_service.get_cart(db, session_key)
    if cart:
        cart_service.clear_cart(db, cart)
    return serialize_cart(cart_service.get_summary(db, session_key))
