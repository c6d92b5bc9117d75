"""
Coupon Module - Models
========================
Discount coupons applied at checkout.

Features:
  - Percentage (with optional cap) or Fixed amount
  - Minimum order amount
  - Total usage limit
  - Date range (valid_from / valid_until)
  - Active flag (admin toggle)
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Boolean, Numeric,
    DateTime, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base
from common.helpers import format_price


# ==========================================
# Enums
# ==========================================

class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


# ==========================================
# Coupon
# ==========================================

class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), unique=True, nullable=False, index=True)  # stored upper-case
    title = Column(String(200), nullable=True)

    discount_type = Column(String, default=DiscountType.PERCENTAGE.value, nullable=False)
    discount_value = Column(Numeric(12, 2), nullable=False)  # percent (e.g. 10) or fixed amount

    # Caps & constraints
    max_discount = Column(Numeric(12, 2), nullable=True)      # cap for percentage coupons
    min_order_amount = Column(Numeric(12, 2), nullable=True)

    # Usage
    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, default=0, nullable=False)

    # Date range
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    usages = relationship("CouponUsage", back_populates="coupon", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("discount_value >= 0", name="ck_coupon_value"),
        CheckConstraint("usage_count >= 0", name="ck_coupon_usage"),
    )

    @property
    def discount_display(self) -> str:
        """Human-readable discount value."""
        if self.discount_type == DiscountType.PERCENTAGE.value:
            s = f"{self.discount_value.normalize():f}%"
            if self.max_discount:
                s += f" (up to {format_price(self.max_discount)})"
            return s
        return format_price(self.discount_value)

    @property
    def remaining_uses(self):
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - (self.usage_count or 0))


# ==========================================
# CouponUsage (audit trail)
# ==========================================

class CouponUsage(Base):
    __tablename__ = "coupon_usages"

    id = Column(Integer, primary_key=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    coupon = relationship("Coupon", back_populates="usages")
    order = relationship("Order")
