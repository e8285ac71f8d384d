"""Seed (or reset) the store catalog with the sample electronics products."""
import sys

from chatshop.db.init_db import init_db, seed_products
from chatshop.db.sample_catalog import SAMPLE_PRODUCTS
from chatshop.db.session import SessionLocal
from chatshop.models.product import Product


def seed_inventory(reset: bool = False):
    init_db(seed=False)
    db = SessionLocal()
    try:
        if reset:
            deleted = db.query(Product).delete()
            db.commit()
            print(f"🗑️  Removed {deleted} existing products")
    finally:
        db.close()

    added = seed_products(SessionLocal)
    print(f"✅ Added {added} products ({len(SAMPLE_PRODUCTS) - added} already present)")

    db = SessionLocal()
    try:
        for product in db.query(Product).order_by(Product.product_id).all():
            print(f"   {product.product_id}  {product.name:<40} ₦{product.price:>12,.0f}  stock {product.stock}")
    finally:
        db.close()


if __name__ == "__main__":
    seed_inventory(reset="--reset" in sys.argv)
