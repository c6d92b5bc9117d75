"""
Cart Module - Service Layer
==============================
Cart management: get/create, add/update/remove lines, calculate totals.

Line matching is per (product, variant): two options of the same product
are separate lines, and a product added without an option only merges with
other option-less lines of that product.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.settings import DEFAULT_MAX_QUANTITY
from common.exceptions import ValidationError
from common.helpers import to_money
from modules.cart.models import Cart, CartLine
from modules.catalog.models import Product, ProductVariant

logger = logging.getLogger("storefront.cart")


@dataclass
class CartSummary:
    lines: List[CartLine] = field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")
    count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.lines


class CartService:

    def get_cart(self, db: Session, session_key: str) -> Optional[Cart]:
        return db.query(Cart).filter(Cart.session_key == session_key).first()

    def get_or_create_cart(self, db: Session, session_key: str, user_id: str = None) -> Cart:
        """Get existing cart for this browser session or create a new one."""
        cart = self.get_cart(db, session_key)
        if not cart:
            cart = Cart(session_key=session_key, user_id=user_id)
            db.add(cart)
            self._persist(db)
        elif user_id and cart.user_id != user_id:
            cart.user_id = user_id
            self._persist(db)
        return cart

    def find_line(self, cart: Cart, product_id: int, variant_id: Optional[int]) -> Optional[CartLine]:
        for line in cart.lines:
            if line.product_id == product_id and line.variant_id == variant_id:
                return line
        return None

    def get_line(self, cart: Cart, line_id: int) -> Optional[CartLine]:
        for line in cart.lines:
            if line.id == line_id:
                return line
        return None

    # ==========================================
    # Mutations
    # ==========================================

    def add_line(
        self,
        db: Session,
        cart: Cart,
        product: Product,
        quantity: int = 1,
        variant: Optional[ProductVariant] = None,
    ) -> CartLine:
        """
        Add product (+ optional variant) to the cart.
        Existing matching line → quantity is incremented.
        New line → priced at the sale price if on sale, else the base price,
        plus the variant's price override.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", {"quantity": "Must be at least 1"})

        variant_id = variant.id if variant else None
        line = self.find_line(cart, product.id, variant_id)

        if line:
            line.quantity += quantity
        else:
            unit_price = variant.unit_price if variant else product.current_price
            max_qty = (variant.stock_quantity if variant else 0) or product.stock_quantity or DEFAULT_MAX_QUANTITY
            line = CartLine(
                product_id=product.id,
                variant_id=variant_id,
                name=product.name,
                variant_name=variant.name if variant else None,
                unit_price=to_money(unit_price),
                quantity=quantity,
                max_quantity=max_qty,
                image_url=product.image_url,
            )
            cart.lines.append(line)

        self._persist(db)
        return line

    def update_quantity(self, db: Session, cart: Cart, line_id: int, quantity: int) -> Optional[CartLine]:
        """
        Set a line's quantity. Below 1 removes the line (returns None).
        No max_quantity clamping here; callers facing the shopper do that.
        """
        if quantity < 1:
            self.remove_line(db, cart, line_id)
            return None

        line = self.get_line(cart, line_id)
        if line:
            line.quantity = quantity
            self._persist(db)
        return line

    def remove_line(self, db: Session, cart: Cart, line_id: int) -> bool:
        line = self.get_line(cart, line_id)
        if not line:
            return False
        cart.lines.remove(line)
        self._persist(db)
        return True

    def clear_cart(self, db: Session, cart: Cart, commit: bool = True):
        """Remove all lines. commit=False lets checkout clear inside its own transaction."""
        cart.lines.clear()
        if commit:
            self._persist(db)
        else:
            db.flush()

    # ==========================================
    # Totals
    # ==========================================

    @staticmethod
    def summarize(lines: List[CartLine]) -> CartSummary:
        """subtotal = Σ unit_price × quantity, count = Σ quantity."""
        subtotal = sum((Decimal(l.unit_price) * l.quantity for l in lines), Decimal("0"))
        count = sum(l.quantity for l in lines)
        return CartSummary(lines=list(lines), subtotal=to_money(subtotal), count=count)

    def get_summary(self, db: Session, session_key: str) -> CartSummary:
        cart = self.get_cart(db, session_key)
        if not cart:
            return CartSummary()
        return self.summarize(cart.lines)

    # ==========================================
    # Private helpers
    # ==========================================

    def _persist(self, db: Session) -> bool:
        """Commit cart changes. Storage failures are logged, not surfaced."""
        try:
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Cart save failed: {e}")
            return False


def serialize_cart(summary: CartSummary) -> dict:
    return {
        "items": [
            {
                "id": line.id,
                "product_id": line.product_id,
                "variant_id": line.variant_id,
                "name": line.display_name,
                "unit_price": str(line.unit_price),
                "quantity": line.quantity,
                "max_quantity": line.max_quantity,
                "line_total": str(to_money(line.line_total)),
                "image_url": line.image_url,
            }
            for line in summary.lines
        ],
        "subtotal": str(summary.subtotal),
        "count": summary.count,
    }


# Singleton
cart_service = CartService()
