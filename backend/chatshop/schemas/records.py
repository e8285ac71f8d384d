"""Read-only views of persisted records, detached from the ORM session."""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


class ProductSnapshot(BaseModel):
    """Point-in-time view of a catalog entry. Re-read before any commit."""
    product_id: str
    name: str
    price: Decimal
    stock: int
    category: str
    status: str = "active"
    description: Optional[str] = None

    class Config:
        from_attributes = True

    def is_available(self, quantity: int = 1) -> bool:
        return self.status == "active" and self.stock >= quantity


class CustomerProfile(BaseModel):
    customer_id: str
    name: Optional[str] = None
    addresses: list[dict] = Field(default_factory=list)
    order_history: list[dict] = Field(default_factory=list)
    total_spent: Decimal = Decimal("0")
    total_orders: int = 0
    is_vip: bool = False
    vip_tier: Optional[str] = None
    loyalty_points: int = 0
    cart: list[dict] = Field(default_factory=list)

    class Config:
        from_attributes = True

    def default_address(self) -> Optional[dict]:
        for address in self.addresses:
            if address.get("is_default"):
                return address
        return self.addresses[0] if self.addresses else None

    @property
    def display_name(self) -> str:
        return self.name or self.customer_id


class OrderRecord(BaseModel):
    order_id: str
    customer_id: str
    customer_name: Optional[str] = None
    items: list[dict]
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal
    total: Decimal
    delivery: dict
    payment_method: str
    payment_status: str
    status: str
    status_history: list[dict] = Field(default_factory=list)
    negotiation_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
