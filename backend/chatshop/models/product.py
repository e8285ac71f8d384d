from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Text
from sqlalchemy.sql import func
from chatshop.db.base import Base


class Product(Base):
    """
    Catalog entry with live stock.

    Stock is only ever decremented through a conditional UPDATE
    (stock >= quantity), never read-modify-write, so two buyers cannot
    both take the last unit.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(String(32), unique=True, nullable=False, index=True)  # e.g. PRD-001
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(14, 2), nullable=False)  # ₦ per unit
    stock = Column(Integer, nullable=False, default=0)
    category = Column(String(64), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="active")  # active | inactive | out-of-stock | discontinued
    featured = Column(Boolean, default=False)
    views = Column(Integer, nullable=False, default=0)
    orders_count = Column(Integer, nullable=False, default=0)
    revenue = Column(Numeric(16, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
