"""
Catalog Module - Models
========================
Products and their variants (size, pack, scent...).
"""

from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Boolean, Text, Numeric,
    DateTime, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    sale_price = Column(Numeric(12, 2), nullable=True)
    is_on_sale = Column(Boolean, default=False, nullable=False)
    stock_quantity = Column(Integer, default=0, nullable=False)
    image_url = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_product_price"),
    )

    @property
    def current_price(self) -> Decimal:
        """Sale price while on sale, otherwise the base price."""
        if self.is_on_sale and self.sale_price:
            return Decimal(self.sale_price)
        return Decimal(self.price)


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    price_override = Column(Numeric(12, 2), nullable=True)  # added on top of the product price
    stock_quantity = Column(Integer, default=0, nullable=False)

    product = relationship("Product", back_populates="variants")

    @property
    def unit_price(self) -> Decimal:
        base = self.product.current_price
        if self.price_override:
            return base + Decimal(self.price_override)
        return base
