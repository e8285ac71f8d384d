"""
Order record. Created exactly once per committed negotiation; afterwards
only status transitions are allowed and status_history is append-only.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from chatshop.db.base import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(32), unique=True, nullable=False, index=True)  # ORD-YYMM-NNNN
    customer_id = Column(String(64), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    # Set from the negotiation; a second commit of the same one is refused
    negotiation_id = Column(String(32), unique=True, nullable=True, index=True)
    # [{product_id, name, unit_price, quantity, subtotal}], money as strings
    items = Column(JSON, nullable=False, default=list)
    subtotal = Column(Numeric(14, 2), nullable=False)
    delivery_fee = Column(Numeric(14, 2), nullable=False, default=0)
    discount = Column(Numeric(14, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False)
    # {address: {street, city, region, landmark}, zone, estimated_days}
    delivery = Column(JSON, nullable=False, default=dict)
    payment_method = Column(String(16), nullable=False)  # cod | transfer
    payment_status = Column(String(16), nullable=False, default="pending")  # pending | paid | failed
    status = Column(String(32), nullable=False, default="pending", index=True)
    status_history = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Order {self.order_id} status={self.status} total={self.total}>"


class OrderSequence(Base):
    """Last issued order number per period (YYMM). Only ever incremented."""
    __tablename__ = "order_sequences"

    period = Column(String(8), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
