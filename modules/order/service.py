"""
Order Module - Service Layer
===============================
Checkout validation, pricing, order placement, status changes.

Placement is one database transaction:
  1. Order row (pending, unique order number) → flush
  2. One OrderItem per cart line (price snapshot) → flush
  3. Coupon redemption (conditional usage_count increment)
  4. Cart cleared
  5. Commit
Any storage error rolls the whole thing back; the cart stays as it was.
The new_order email goes out after commit and can't undo the order.
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Any

from sqlalchemy import desc, func as sa_func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from config.settings import MIN_ORDER_TOTAL
from common.exceptions import (
    ValidationError, InvalidCoupon, InvalidStatusTransition,
    NotFoundError, PersistenceError,
)
from common.helpers import to_money, generate_unique_order_number
from common.security import sanitize_input, validate_email, validate_phone
from common.upload import is_receipt_url
from modules.auth.deps import CheckoutContext, CurrentUser
from modules.cart.models import Cart
from modules.cart.service import cart_service
from modules.coupon.service import coupon_service, CouponQuote
from modules.notification.service import notifier, NotificationEvent
from modules.order.models import (
    Order, OrderItem, OrderStatusLog, OrderStatus, PaymentMethod, ORDER_TRANSITIONS,
)

logger = logging.getLogger("storefront.order")


# ==========================================
# Pricing
# ==========================================

@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount: Decimal   # applied discount, never above subtotal
    total: Decimal


def compute_totals(subtotal, discount=None) -> OrderTotals:
    """total = subtotal - discount, floored at MIN_ORDER_TOTAL."""
    subtotal = to_money(subtotal)
    discount = min(to_money(discount), subtotal - MIN_ORDER_TOTAL)
    discount = max(discount, Decimal("0.00"))
    return OrderTotals(subtotal=subtotal, discount=to_money(discount), total=to_money(subtotal - discount))


# ==========================================
# Checkout form
# ==========================================

MAX_NAME_LENGTH = 100
MAX_ADDRESS_LENGTH = 500


@dataclass(frozen=True)
class CheckoutForm:
    customer_name: str
    email: str
    address: str
    phone: str
    payment_method: str = PaymentMethod.COD.value


def validate_checkout(form: CheckoutForm, receipt_url: Optional[str] = None) -> CheckoutForm:
    """
    Sanitize and validate checkout fields.
    Returns the cleaned form; raises ValidationError with every field error.
    """
    cleaned = replace(
        form,
        customer_name=sanitize_input(form.customer_name),
        email=sanitize_input(form.email, 254).lower(),
        address=sanitize_input(form.address),
        phone=sanitize_input(form.phone, 20),
        payment_method=sanitize_input(form.payment_method, 20).lower(),
    )
    errors: Dict[str, str] = {}

    if not cleaned.customer_name:
        errors["customer_name"] = "Name is required"
    elif len(cleaned.customer_name) < 2:
        errors["customer_name"] = "Name must be at least 2 characters"
    elif len(cleaned.customer_name) > MAX_NAME_LENGTH:
        errors["customer_name"] = f"Name must be at most {MAX_NAME_LENGTH} characters"

    if not cleaned.email:
        errors["email"] = "Email is required"
    elif not validate_email(cleaned.email):
        errors["email"] = "Please enter a valid email address"

    if not cleaned.address:
        errors["address"] = "Address is required"
    elif len(cleaned.address) < 10:
        errors["address"] = "Please enter a complete address"
    elif len(cleaned.address) > MAX_ADDRESS_LENGTH:
        errors["address"] = f"Address must be at most {MAX_ADDRESS_LENGTH} characters"

    if not cleaned.phone:
        errors["phone"] = "Phone number is required"
    elif not validate_phone(cleaned.phone):
        errors["phone"] = "Please enter a valid phone number"

    valid_methods = {m.value for m in PaymentMethod}
    if cleaned.payment_method not in valid_methods:
        errors["payment_method"] = "Please choose a payment method"
    elif cleaned.payment_method == PaymentMethod.BANK_TRANSFER.value:
        if not receipt_url:
            errors["receipt_url"] = "Please upload your payment receipt"
        elif not is_receipt_url(receipt_url):
            errors["receipt_url"] = "Please upload your receipt again"

    if errors:
        raise ValidationError("Please correct the highlighted fields.", errors)
    return cleaned


# ==========================================
# Results
# ==========================================

@dataclass
class PlacementResult:
    order: Order
    notification_sent: bool


@dataclass
class StatusChangeResult:
    order: Order
    notification_sent: bool


class OrderService:

    # ==========================================
    # Placement
    # ==========================================

    def place_order(
        self,
        db: Session,
        cart: Cart,
        form: CheckoutForm,
        context: CheckoutContext,
        coupon_code: Optional[str] = None,
        receipt_url: Optional[str] = None,
    ) -> PlacementResult:
        """
        Turn the cart into a pending order.

        Raises:
            ValidationError: empty cart or bad checkout fields (nothing written)
            InvalidCoupon: coupon rejected (nothing written)
            PersistenceError: storage failed (rolled back, cart untouched)
        """
        lines = list(cart.lines) if cart else []
        if not lines:
            raise ValidationError("Your cart is empty", {"cart": "Your cart is empty"})

        form = validate_checkout(form, receipt_url)
        summary = cart_service.summarize(lines)

        try:
            quote: Optional[CouponQuote] = None
            if coupon_code and coupon_code.strip():
                quote = coupon_service.evaluate(db, coupon_code, summary.subtotal)

            totals = compute_totals(summary.subtotal, quote.discount_amount if quote else None)

            order = Order(
                order_number=generate_unique_order_number(db),
                user_id=context.user_id,
                customer_name=form.customer_name,
                customer_email=form.email,
                address=form.address,
                phone=form.phone,
                status=OrderStatus.PENDING.value,
                payment_method=form.payment_method,
                receipt_url=receipt_url if form.payment_method == PaymentMethod.BANK_TRANSFER.value else None,
                subtotal_amount=totals.subtotal,
                discount_amount=totals.discount,
                total_amount=totals.total,
                coupon_code=quote.coupon.code if quote else None,
            )
            db.add(order)
            db.flush()  # get order.id

            self._insert_items(db, order, lines)

            if quote:
                coupon_service.redeem(db, quote.coupon, order.id, totals.discount)

            cart_service.clear_cart(db, cart, commit=False)
            db.commit()
        except InvalidCoupon:
            db.rollback()
            raise
        except PersistenceError as e:
            db.rollback()
            logger.error(f"Order placement failed (ip={context.client_ip}): {e.message}")
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Order placement failed (ip={context.client_ip}): {e}")
            raise PersistenceError()

        db.refresh(order)
        logger.info(
            f"Order {order.order_number} placed: total={order.total_amount} "
            f"items={len(lines)} user={context.user_id or 'guest'}"
        )

        sent = notifier.notify(NotificationEvent.NEW_ORDER, order)
        return PlacementResult(order=order, notification_sent=sent)

    def _insert_items(self, db: Session, order: Order, lines) -> List[OrderItem]:
        """Snapshot each cart line into an OrderItem. Caller owns the transaction."""
        items = []
        for line in lines:
            unit_price = to_money(line.unit_price)
            item = OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                variant_id=line.variant_id,
                product_name=line.display_name,
                unit_price=unit_price,
                quantity=line.quantity,
                subtotal=to_money(unit_price * line.quantity),
            )
            db.add(item)
            items.append(item)
        db.flush()
        return items

    # ==========================================
    # Status changes (admin)
    # ==========================================

    def update_status(self, db: Session, order_id: int, new_status: str, admin: CurrentUser) -> StatusChangeResult:
        """
        pending → approved | rejected. Commits, then emails the customer.
        Raises NotFoundError / InvalidStatusTransition.
        """
        order = self.get_order(db, order_id)

        allowed = ORDER_TRANSITIONS.get(order.status, set())
        if new_status not in allowed:
            raise InvalidStatusTransition(order.status, new_status)

        old_status = order.status
        order.status = new_status
        db.add(OrderStatusLog(
            order_id=order.id,
            from_status=old_status,
            to_status=new_status,
            changed_by=admin.email or admin.id,
        ))

        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Status change failed for {order.order_number}: {e}")
            raise PersistenceError("Failed to update order status. Please try again.")

        db.refresh(order)
        logger.info(f"Order {order.order_number}: {old_status} → {new_status} by {admin.email or admin.id}")

        event = (
            NotificationEvent.ORDER_APPROVED
            if new_status == OrderStatus.APPROVED.value
            else NotificationEvent.ORDER_REJECTED
        )
        sent = notifier.notify(event, order)
        return StatusChangeResult(order=order, notification_sent=sent)

    def approve(self, db: Session, order_id: int, admin: CurrentUser) -> StatusChangeResult:
        return self.update_status(db, order_id, OrderStatus.APPROVED.value, admin)

    def reject(self, db: Session, order_id: int, admin: CurrentUser) -> StatusChangeResult:
        return self.update_status(db, order_id, OrderStatus.REJECTED.value, admin)

    # ==========================================
    # Queries
    # ==========================================

    def get_order(self, db: Session, order_id: int) -> Order:
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    def get_order_by_number(self, db: Session, order_number: str) -> Order:
        order = (
            db.query(Order)
            .filter(Order.order_number == (order_number or "").strip().upper())
            .first()
        )
        if not order:
            raise NotFoundError("Order not found")
        return order

    def list_orders(
        self, db: Session, status: str = None, search: str = None,
        page: int = 1, per_page: int = 30,
    ) -> Tuple[List[Order], int]:
        q = db.query(Order)
        if status:
            q = q.filter(Order.status == status)
        if search:
            term = f"%{search.strip()}%"
            q = q.filter(
                (Order.order_number.ilike(term))
                | (Order.customer_name.ilike(term))
                | (Order.customer_email.ilike(term))
                | (Order.phone.ilike(term))
            )
        total = q.count()
        orders = (
            q.options(selectinload(Order.items))
            .order_by(desc(Order.created_at), desc(Order.id))
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return orders, total

    def list_user_orders(self, db: Session, user_id: str) -> List[Order]:
        return (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.user_id == user_id)
            .order_by(desc(Order.created_at), desc(Order.id))
            .all()
        )

    def get_dashboard_stats(self, db: Session) -> Dict[str, Any]:
        counts = dict(
            db.query(Order.status, sa_func.count(Order.id))
            .group_by(Order.status)
            .all()
        )
        revenue = (
            db.query(sa_func.coalesce(sa_func.sum(Order.total_amount), 0))
            .filter(Order.status == OrderStatus.APPROVED.value)
            .scalar()
        )
        return {
            "total_orders": sum(counts.values()),
            "pending": counts.get(OrderStatus.PENDING.value, 0),
            "approved": counts.get(OrderStatus.APPROVED.value, 0),
            "rejected": counts.get(OrderStatus.REJECTED.value, 0),
            "revenue": str(to_money(revenue)),
        }


def serialize_order(order: Order, include_customer: bool = True) -> dict:
    data = {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "status_label": order.status_label,
        "payment_method": order.payment_method,
        "payment_method_label": order.payment_method_label,
        "subtotal_amount": str(order.subtotal_amount),
        "discount_amount": str(order.discount_amount),
        "total_amount": str(order.total_amount),
        "coupon_code": order.coupon_code,
        "item_count": order.item_count,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "items": [
            {
                "product_id": item.product_id,
                "variant_id": item.variant_id,
                "name": item.product_name,
                "unit_price": str(item.unit_price),
                "quantity": item.quantity,
                "subtotal": str(item.subtotal),
            }
            for item in order.items
        ],
    }
    if include_customer:
        data.update({
            "customer_name": order.customer_name,
            "customer_email": order.customer_email,
            "address": order.address,
            "phone": order.phone,
            "receipt_url": order.receipt_url,
            "user_id": order.user_id,
        })
    return data


# Singleton
order_service = OrderService()
