"""
Coupon Service
================
Validate, calculate, and redeem coupons.

Validation chain:
  1. Code exists & is active
  2. Date range check (valid_from / valid_until)
  3. Total usage limit
  4. Min order amount
  5. Calculate discount amount with caps

Redemption happens inside the order transaction with a conditional
UPDATE, so two checkouts racing for the last use cannot both win.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List, Tuple

from sqlalchemy import or_, func as sa_func, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from common.exceptions import InvalidCoupon, DuplicateError, NotFoundError, ValidationError
from common.helpers import now_utc, as_utc, to_money, format_price
from modules.coupon.models import Coupon, CouponUsage, DiscountType

logger = logging.getLogger("storefront.coupon")


@dataclass
class CouponQuote:
    """Result of a successful evaluation."""
    coupon: Coupon
    discount_amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.coupon.code,
            "title": self.coupon.title,
            "discount_type": self.coupon.discount_type,
            "discount_value": str(self.coupon.discount_value),
            "discount_amount": str(self.discount_amount),
            "discount_display": self.coupon.discount_display,
        }


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


class CouponService:

    # ------------------------------------------
    # Evaluate coupon (raises InvalidCoupon)
    # ------------------------------------------

    def evaluate(self, db: Session, code: str, subtotal: Decimal, now: datetime = None) -> CouponQuote:
        """
        Full validation chain. Returns coupon + calculated discount.
        Raises InvalidCoupon on failure.
        """
        code = normalize_code(code)
        if not code:
            raise InvalidCoupon("Please enter a coupon code")

        subtotal = to_money(subtotal)

        # 1. Exists & active
        coupon = db.query(Coupon).filter(Coupon.code == code).first()
        if not coupon or not coupon.is_active:
            raise InvalidCoupon("Invalid coupon code")

        now = now or now_utc()

        # 2. Date range
        valid_from = as_utc(coupon.valid_from)
        valid_until = as_utc(coupon.valid_until)
        if valid_from and now < valid_from:
            raise InvalidCoupon("This coupon is not active yet")
        if valid_until and now > valid_until:
            raise InvalidCoupon("This coupon has expired")

        # 3. Usage limit
        if coupon.usage_limit is not None and (coupon.usage_count or 0) >= coupon.usage_limit:
            raise InvalidCoupon("This coupon has reached its usage limit")

        # 4. Min order amount
        if coupon.min_order_amount and subtotal < coupon.min_order_amount:
            raise InvalidCoupon(f"Minimum order for this coupon is {format_price(coupon.min_order_amount)}")

        # 5. Calculate discount
        return CouponQuote(coupon=coupon, discount_amount=self.calculate_discount(coupon, subtotal))

    # ------------------------------------------
    # Calculate discount amount
    # ------------------------------------------

    def calculate_discount(self, coupon: Coupon, subtotal: Decimal) -> Decimal:
        """
        percentage: subtotal × value / 100, capped at max_discount.
        fixed: exactly the coupon value. The order total is floored at zero
        by the order service, not here.
        """
        value = Decimal(coupon.discount_value)
        if coupon.discount_type == DiscountType.PERCENTAGE.value:
            raw = to_money(Decimal(subtotal) * value / Decimal(100))
            if coupon.max_discount is not None and raw > coupon.max_discount:
                raw = to_money(coupon.max_discount)
            return raw
        return to_money(value)

    # ------------------------------------------
    # Quick check (AJAX, no side effects)
    # ------------------------------------------

    def quick_check(self, db: Session, code: str, subtotal: Decimal) -> Dict[str, Any]:
        """Same as evaluate but returns an error dict on failure."""
        try:
            quote = self.evaluate(db, code, subtotal)
        except InvalidCoupon as e:
            return {"valid": False, "error": e.message, "discount_amount": "0.00"}
        return {"valid": True, **quote.to_dict()}

    # ------------------------------------------
    # Redeem (record usage, inside order transaction)
    # ------------------------------------------

    def redeem(self, db: Session, coupon: Coupon, order_id: int, discount_amount: Decimal) -> CouponUsage:
        """
        Increment usage_count only while below usage_limit, then record usage.
        Caller owns the transaction (flush only).
        """
        updated = (
            db.query(Coupon)
            .filter(
                Coupon.id == coupon.id,
                or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
            )
            .update({Coupon.usage_count: Coupon.usage_count + 1}, synchronize_session=False)
        )
        if not updated:
            raise InvalidCoupon("This coupon has reached its usage limit")

        usage = CouponUsage(coupon_id=coupon.id, order_id=order_id, discount_amount=discount_amount)
        db.add(usage)
        db.flush()
        db.expire(coupon, ["usage_count"])
        return usage

    # ------------------------------------------
    # Admin: CRUD
    # ------------------------------------------

    def list_coupons(
        self, db: Session, page: int = 1, per_page: int = 30,
        active: bool = None, search: str = None,
    ) -> Tuple[List[Coupon], int]:
        q = db.query(Coupon)
        if active is not None:
            q = q.filter(Coupon.is_active == active)
        if search:
            q = q.filter(
                (Coupon.code.ilike(f"%{search}%")) | (Coupon.title.ilike(f"%{search}%"))
            )
        total = q.count()
        coupons = (
            q.order_by(desc(Coupon.created_at), desc(Coupon.id))
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return coupons, total

    def get_coupon(self, db: Session, coupon_id: int) -> Coupon:
        coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
        if not coupon:
            raise NotFoundError("Coupon not found")
        return coupon

    def create_coupon(self, db: Session, data: dict) -> Coupon:
        code = normalize_code(data.get("code"))
        if not code:
            raise ValidationError("Coupon code is required", {"code": "Required"})
        if db.query(Coupon.id).filter(Coupon.code == code).first():
            raise DuplicateError(f"Coupon {code} already exists")

        coupon = Coupon(
            code=code,
            title=data.get("title") or None,
            discount_type=DiscountType(data.get("discount_type", DiscountType.PERCENTAGE.value)).value,
            discount_value=to_money(data["discount_value"]),
            max_discount=to_money(data["max_discount"]) if data.get("max_discount") is not None else None,
            min_order_amount=to_money(data["min_order_amount"]) if data.get("min_order_amount") is not None else None,
            usage_limit=data.get("usage_limit"),
            valid_from=data.get("valid_from"),
            valid_until=data.get("valid_until"),
            is_active=bool(data.get("is_active", True)),
        )
        self._check_rules(coupon)
        db.add(coupon)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise DuplicateError(f"Coupon {code} already exists")
        logger.info(f"Coupon created: {code}")
        return coupon

    def update_coupon(self, db: Session, coupon_id: int, data: dict) -> Coupon:
        coupon = self.get_coupon(db, coupon_id)

        if "title" in data:
            coupon.title = data["title"] or None
        if data.get("discount_type"):
            coupon.discount_type = DiscountType(data["discount_type"]).value
        if data.get("discount_value") is not None:
            coupon.discount_value = to_money(data["discount_value"])

        for key in ["max_discount", "min_order_amount"]:
            if key in data:
                setattr(coupon, key, to_money(data[key]) if data[key] is not None else None)

        for key in ["usage_limit", "valid_from", "valid_until"]:
            if key in data:
                setattr(coupon, key, data[key])

        if "is_active" in data and data["is_active"] is not None:
            coupon.is_active = bool(data["is_active"])

        self._check_rules(coupon)
        db.flush()
        return coupon

    def set_active(self, db: Session, coupon_id: int, is_active: bool) -> Coupon:
        coupon = self.get_coupon(db, coupon_id)
        coupon.is_active = is_active
        db.flush()
        return coupon

    def _check_rules(self, coupon: Coupon):
        errors = {}
        if coupon.discount_value is None or coupon.discount_value < 0:
            errors["discount_value"] = "Must be zero or more"
        elif coupon.discount_type == DiscountType.PERCENTAGE.value and coupon.discount_value > 100:
            errors["discount_value"] = "Percentage cannot exceed 100"
        if coupon.usage_limit is not None and coupon.usage_limit < 0:
            errors["usage_limit"] = "Must be zero or more"
        if coupon.valid_from and coupon.valid_until and as_utc(coupon.valid_until) < as_utc(coupon.valid_from):
            errors["valid_until"] = "Must be after the start date"
        if errors:
            raise ValidationError("Please correct the coupon fields.", errors)

    # ------------------------------------------
    # Stats
    # ------------------------------------------

    def get_stats(self, db: Session) -> Dict[str, Any]:
        total = db.query(Coupon).count()
        active = db.query(Coupon).filter(Coupon.is_active == True).count()  # noqa: E712
        total_usages = db.query(CouponUsage).count()
        total_discount = (
            db.query(sa_func.coalesce(sa_func.sum(CouponUsage.discount_amount), 0))
            .scalar()
        )
        return {
            "total_coupons": total,
            "active_coupons": active,
            "total_usages": total_usages,
            "total_discount": str(to_money(total_discount)),
        }


def serialize_coupon(coupon: Coupon) -> dict:
    return {
        "id": coupon.id,
        "code": coupon.code,
        "title": coupon.title,
        "discount_type": coupon.discount_type,
        "discount_value": str(coupon.discount_value),
        "discount_display": coupon.discount_display,
        "max_discount": str(coupon.max_discount) if coupon.max_discount is not None else None,
        "min_order_amount": str(coupon.min_order_amount) if coupon.min_order_amount is not None else None,
        "usage_limit": coupon.usage_limit,
        "usage_count": coupon.usage_count,
        "valid_from": coupon.valid_from.isoformat() if coupon.valid_from else None,
        "valid_until": coupon.valid_until.isoformat() if coupon.valid_until else None,
        "is_active": coupon.is_active,
    }


# Singleton
coupon_service = CouponService()
