"""
Customer aggregate. Keyed by the messaging identifier (phone / chat id).

Spending totals and VIP tier are maintained by the order service after a
committed order; the conversation layer only reads addresses and history.
"""
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from chatshop.db.base import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    # [{street, city, region, landmark, is_default}]
    addresses = Column(JSON, nullable=False, default=list)
    # Newest first: [{order_id, total, date, status}]
    order_history = Column(JSON, nullable=False, default=list)
    total_spent = Column(Numeric(14, 2), nullable=False, default=0)
    total_orders = Column(Integer, nullable=False, default=0)
    is_vip = Column(Boolean, nullable=False, default=False)
    vip_tier = Column(String(16), nullable=True)  # bronze | silver | gold | platinum
    loyalty_points = Column(Integer, nullable=False, default=0)
    cart = Column(JSON, nullable=False, default=list)
    last_intent = Column(String(32), nullable=True)
    last_message = Column(String(1000), nullable=True)
    last_interaction = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def default_address(self) -> dict | None:
        addresses = self.addresses or []
        for address in addresses:
            if address.get("is_default"):
                return address
        return addresses[0] if addresses else None

    def __repr__(self):
        return f"<Customer customer_id={self.customer_id} orders={self.total_orders}>"
