"""
Catalog Routes
================
Public product listing and detail (JSON).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from modules.catalog.service import catalog_service, serialize_product

router = APIRouter(prefix="/api/products", tags=["catalog"])


@router.get("")
async def list_products(
    page: int = Query(1, ge=1),
    per_page: int = Query(24, ge=1, le=100),
    search: Optional[str] = Query(None),
    on_sale: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
):
    products, total = catalog_service.list_products(
        db, page=page, per_page=per_page, search=search, on_sale=on_sale,
    )
    return {
        "items": [serialize_product(p) for p in products],
        "total": total,
        "page": page,
        "total_pages": max(1, (total + per_page - 1) // per_page),
    }


@router.get("/{product_id}")
async def product_detail(product_id: int, db: Session = Depends(get_db)):
    return serialize_product(catalog_service.get_product(db, product_id))
