"""
Order Module - Models
======================
Order with a price snapshot per item, plus an audit log of status changes.
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, Text,
    ForeignKey, DateTime, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(str, enum.Enum):
    COD = "cod"                        # cash on delivery
    BANK_TRANSFER = "bank_transfer"    # receipt image required


# pending → approved | rejected; both terminal
ORDER_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.APPROVED.value, OrderStatus.REJECTED.value},
    OrderStatus.APPROVED.value: set(),
    OrderStatus.REJECTED.value: set(),
}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    user_id = Column(String(64), nullable=True, index=True)  # auth provider user id, null for guests

    # Customer
    customer_name = Column(String(100), nullable=False)
    customer_email = Column(String(254), nullable=False)
    address = Column(Text, nullable=False)
    phone = Column(String(20), nullable=False)

    status = Column(String, default=OrderStatus.PENDING.value, nullable=False, index=True)

    # Payment
    payment_method = Column(String, default=PaymentMethod.COD.value, nullable=False)
    receipt_url = Column(String, nullable=True)

    # Amounts
    subtotal_amount = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), default=0, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    coupon_code = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")
    status_logs = relationship("OrderStatusLog", back_populates="order", cascade="all, delete-orphan", order_by="OrderStatusLog.id")

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_order_total"),
    )

    @property
    def status_label(self) -> str:
        labels = {
            OrderStatus.PENDING.value: "Pending",
            OrderStatus.APPROVED.value: "Approved",
            OrderStatus.REJECTED.value: "Rejected",
        }
        return labels.get(self.status, self.status)

    @property
    def payment_method_label(self) -> str:
        labels = {
            PaymentMethod.COD.value: "Cash on Delivery",
            PaymentMethod.BANK_TRANSFER.value: "Bank Transfer",
        }
        return labels.get(self.payment_method, self.payment_method)

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True)

    # Snapshot at time of purchase
    product_name = Column(String(220), nullable=False)  # "Product" or "Product (Variant)"
    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_item_qty"),
    )


class OrderStatusLog(Base):
    __tablename__ = "order_status_logs"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(String, nullable=False)
    to_status = Column(String, nullable=False)
    changed_by = Column(String(254), nullable=True)  # admin email or id
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="status_logs")
