"""
Catalog Module - Service Layer
================================
Read-only product lookups for the shop and the cart.
"""

from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from common.exceptions import NotFoundError
from modules.catalog.models import Product, ProductVariant


class CatalogService:

    def list_products(
        self, db: Session, page: int = 1, per_page: int = 24,
        search: str = None, on_sale: bool = None,
    ) -> Tuple[List[Product], int]:
        q = db.query(Product).filter(Product.is_active == True)  # noqa: E712
        if search:
            q = q.filter(Product.name.ilike(f"%{search}%"))
        if on_sale is not None:
            q = q.filter(Product.is_on_sale == on_sale)
        total = q.count()
        products = (
            q.options(selectinload(Product.variants))
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return products, total

    def get_product(self, db: Session, product_id: int) -> Product:
        """Active product by id. Raises NotFoundError."""
        product = (
            db.query(Product)
            .options(selectinload(Product.variants))
            .filter(Product.id == product_id, Product.is_active == True)  # noqa: E712
            .first()
        )
        if not product:
            raise NotFoundError("Product not found")
        return product

    def get_variant(self, db: Session, product: Product, variant_id: Optional[int]) -> Optional[ProductVariant]:
        """Variant belonging to product, or None when no variant was chosen."""
        if variant_id is None:
            return None
        variant = (
            db.query(ProductVariant)
            .filter(ProductVariant.id == variant_id, ProductVariant.product_id == product.id)
            .first()
        )
        if not variant:
            raise NotFoundError("Product option not found")
        return variant


def serialize_product(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": str(product.price),
        "sale_price": str(product.sale_price) if product.sale_price is not None else None,
        "is_on_sale": product.is_on_sale,
        "current_price": str(product.current_price),
        "stock_quantity": product.stock_quantity,
        "image_url": product.image_url,
        "variants": [
            {
                "id": v.id,
                "name": v.name,
                "price_override": str(v.price_override) if v.price_override is not None else None,
                "unit_price": str(v.unit_price),
                "stock_quantity": v.stock_quantity,
            }
            for v in product.variants
        ],
    }


# Singleton
catalog_service = CatalogService()
