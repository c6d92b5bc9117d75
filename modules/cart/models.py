"""
Cart Module - Models
=====================
Shopping cart keyed by the browser session, with quantity constraints.
Lines carry a price snapshot taken when the product was added.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, ForeignKey, DateTime,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    session_key = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(String(64), nullable=True, index=True)  # auth provider user id
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    lines = relationship(
        "CartLine", back_populates="cart",
        cascade="all, delete-orphan", order_by="CartLine.id",
    )


class CartLine(Base):
    __tablename__ = "cart_lines"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=True)
    name = Column(String(100), nullable=False)
    variant_name = Column(String(100), nullable=True)
    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    max_quantity = Column(Integer, nullable=False)
    image_url = Column(String, nullable=True)

    cart = relationship("Cart", back_populates="lines")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "variant_id", name="uq_cart_product_variant"),
        CheckConstraint("quantity >= 1", name="ck_cart_line_qty"),
        CheckConstraint("unit_price >= 0", name="ck_cart_line_price"),
    )

    @property
    def display_name(self) -> str:
        """'Product' or 'Product (Variant)'."""
        if self.variant_name:
            return f"{self.name} ({self.variant_name})"
        return self.name

    @property
    def line_total(self):
        return self.unit_price * self.quantity
