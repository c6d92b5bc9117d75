"""
Zeene Storefront - Database Seeder
====================================
Creates tables and seeds sample products, variants and coupons for local
development.

Usage:
    python scripts/seed.py          # Create tables + seed (skips existing rows)
    python scripts/seed.py --reset  # Drop all tables and reseed
"""

import sys
import os
from datetime import timedelta
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import SessionLocal, Base, engine  # noqa: E402
from common.helpers import now_utc  # noqa: E402
from modules.catalog.models import Product, ProductVariant  # noqa: E402
from modules.cart.models import Cart, CartLine  # noqa: E402,F401
from modules.coupon.models import Coupon, CouponUsage, DiscountType  # noqa: E402,F401
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa: E402,F401


PRODUCTS = [
    # name, price, sale_price, stock, variants [(name, price_override, stock)]
    ("Oud Candle", "2500", "2200", 30, [("Small", None, 20), ("Large", "900", 10)]),
    ("Rose Soap Bar", "650", None, 100, []),
    ("Musk Body Mist", "1800", None, 0, [("100ml", None, 15), ("200ml", "700", 8)]),
    ("Gift Box", "4200", "3900", 12, []),
]

COUPONS = [
    # code, title, type, value, max_discount, min_order, usage_limit, valid_days
    ("WELCOME10", "10% off your first order", DiscountType.PERCENTAGE, "10", "500", None, None, 90),
    ("FLAT300", "PKR 300 off", DiscountType.FIXED, "300", None, "2000", 100, 30),
    ("EID25", "Eid sale", DiscountType.PERCENTAGE, "25", "1500", "5000", 50, 7),
]


def seed_products(db):
    created = 0
    for name, price, sale_price, stock, variants in PRODUCTS:
        if db.query(Product.id).filter(Product.name == name).first():
            continue
        product = Product(
            name=name,
            price=Decimal(price),
            sale_price=Decimal(sale_price) if sale_price else None,
            is_on_sale=bool(sale_price),
            stock_quantity=stock,
        )
        for v_name, override, v_stock in variants:
            product.variants.append(ProductVariant(
                name=v_name,
                price_override=Decimal(override) if override else None,
                stock_quantity=v_stock,
            ))
        db.add(product)
        created += 1
    db.flush()
    print(f"  Products: {created} created")


def seed_coupons(db):
    created = 0
    now = now_utc()
    for code, title, dtype, value, max_discount, min_order, limit, days in COUPONS:
        if db.query(Coupon.id).filter(Coupon.code == code).first():
            continue
        db.add(Coupon(
            code=code,
            title=title,
            discount_type=dtype.value,
            discount_value=Decimal(value),
            max_discount=Decimal(max_discount) if max_discount else None,
            min_order_amount=Decimal(min_order) if min_order else None,
            usage_limit=limit,
            valid_from=now,
            valid_until=now + timedelta(days=days),
        ))
        created += 1
    db.flush()
    print(f"  Coupons: {created} created")


def main(reset=False):
    if reset:
        print("Dropping all tables...")
        Base.metadata.drop_all(bind=engine)

    print("Creating all tables...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_products(db)
        seed_coupons(db)
        db.commit()
        print("\nSeed complete.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main(reset="--reset" in sys.argv)
