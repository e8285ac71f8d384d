"""Create all tables. Run on app startup.

Seeds the sample catalog into an empty products table when
SEED_SAMPLE_PRODUCTS is enabled, so a fresh install is immediately usable.
"""
import logging

from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker

from chatshop.core.config import settings
from chatshop.db.base import Base
from chatshop.db.sample_catalog import SAMPLE_PRODUCTS
from chatshop.db.session import engine as default_engine
from chatshop import models  # noqa: F401 - register models
from chatshop.models.product import Product

logger = logging.getLogger(__name__)


def seed_products(session_factory: sessionmaker, products=None) -> int:
    """Insert products whose ids are not present yet. Returns how many were added."""
    products = SAMPLE_PRODUCTS if products is None else products
    db = session_factory()
    try:
        existing = {pid for (pid,) in db.query(Product.product_id).all()}
        added = 0
        for data in products:
            if data["product_id"] in existing:
                continue
            db.add(Product(**data))
            added += 1
        db.commit()
        return added
    finally:
        db.close()


def init_db(engine: Engine = None, seed: bool = None) -> None:
    engine = engine or default_engine
    Base.metadata.create_all(bind=engine)

    seed = settings.SEED_SAMPLE_PRODUCTS if seed is None else seed
    if not seed:
        return

    session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    db = session_factory()
    try:
        has_products = db.query(Product.id).first() is not None
    finally:
        db.close()

    if not has_products:
        added = seed_products(session_factory)
        logger.info(f"📦 Seeded {added} sample products")
