"""
Order Module - Admin Routes
==============================
Order management for admin: list, stats, detail, approve, reject.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.order.models import OrderStatus
from modules.order.service import order_service, serialize_order

router = APIRouter(prefix="/admin/api/orders", tags=["order-admin"])


@router.get("")
async def admin_orders(
    status: str = Query(None),
    search: str = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=100),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    if status and status not in {s.value for s in OrderStatus}:
        status = None
    orders, total = order_service.list_orders(db, status=status, search=search, page=page, per_page=per_page)
    return {
        "items": [serialize_order(o) for o in orders],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


@router.get("/stats")
async def admin_order_stats(
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    return order_service.get_dashboard_stats(db)


@router.get("/{order_id}")
async def admin_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    order = order_service.get_order(db, order_id)
    data = serialize_order(order)
    data["status_history"] = [
        {
            "from_status": log.from_status,
            "to_status": log.to_status,
            "changed_by": log.changed_by,
            "created_at": log.created_at.isoformat() if log.created_at else None,
        }
        for log in order.status_logs
    ]
    return data


@router.post("/{order_id}/approve")
async def approve_order(
    order_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    result = order_service.approve(db, order_id, user)
    return _status_response(result)


@router.post("/{order_id}/reject")
async def reject_order(
    order_id: int,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    result = order_service.reject(db, order_id, user)
    return _status_response(result)


def _status_response(result) -> dict:
    order = result.order
    if result.notification_sent:
        message = f"Order {order.order_number} {order.status}, customer notified"
    else:
        message = f"Order {order.order_number} {order.status}, but the email to the customer failed"
    return {
        "success": True,
        "order": serialize_order(order),
        "notification_sent": result.notification_sent,
        "message": message,
    }
