"""
Coupon Admin Routes
=====================
JSON CRUD for coupons plus usage stats.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.coupon.models import DiscountType
from modules.coupon.service import coupon_service, serialize_coupon

router = APIRouter(prefix="/admin/api/coupons", tags=["admin-coupon"])


# ==========================================
# Schemas
# ==========================================

class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    title: Optional[str] = Field(None, max_length=200)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(..., ge=0)
    max_discount: Optional[Decimal] = Field(None, ge=0)
    min_order_amount: Optional[Decimal] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True


class CouponUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, ge=0)
    min_order_amount: Optional[Decimal] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None


# ==========================================
# 📋 Coupon List
# ==========================================

@router.get("")
async def coupon_list(
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=100),
    active: Optional[bool] = Query(None),
    search: str = Query(None),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    coupons, total = coupon_service.list_coupons(db, page=page, per_page=per_page, active=active, search=search)
    return {
        "items": [serialize_coupon(c) for c in coupons],
        "total": total,
        "page": page,
        "per_page": per_page,
        "stats": coupon_service.get_stats(db),
    }


# ==========================================
# ➕ Create / ✏️ Edit
# ==========================================

@router.post("", status_code=201)
async def coupon_create(
    body: CouponCreate,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    data = body.model_dump()
    data["discount_type"] = body.discount_type.value
    coupon = coupon_service.create_coupon(db, data)
    db.commit()
    db.refresh(coupon)
    return serialize_coupon(coupon)


@router.patch("/{coupon_id}")
async def coupon_update(
    coupon_id: int,
    body: CouponUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    data = body.model_dump(exclude_unset=True)
    if body.discount_type is not None:
        data["discount_type"] = body.discount_type.value
    coupon = coupon_service.update_coupon(db, coupon_id, data)
    db.commit()
    db.refresh(coupon)
    return serialize_coupon(coupon)


@router.post("/{coupon_id}/toggle")
async def coupon_toggle(
    coupon_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    coupon = coupon_service.get_coupon(db, coupon_id)
    coupon = coupon_service.set_active(db, coupon_id, not coupon.is_active)
    db.commit()
    db.refresh(coupon)
    return serialize_coupon(coupon)
