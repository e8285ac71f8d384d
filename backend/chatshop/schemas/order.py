from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class PaymentMethod(str, Enum):
    COD = "cod"
    TRANSFER = "transfer"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Terminal states have no outgoing transitions
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

OPEN_STATUSES = [
    OrderStatus.PENDING.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.PROCESSING.value,
    OrderStatus.SHIPPED.value,
]


class Address(BaseModel):
    street: str
    city: str
    region: str
    landmark: Optional[str] = None

    def one_line(self) -> str:
        return f"{self.street}, {self.city}, {self.region}"


class PricingBreakdown(BaseModel):
    """Server-computed totals. total = subtotal + delivery_fee - discount."""
    subtotal: Decimal
    delivery_fee: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    total: Decimal
    zone: Optional[str] = None
    estimated_days: Optional[str] = None
    free_delivery: bool = False


class LineItem(BaseModel):
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int = Field(gt=0)
    subtotal: Decimal


class OrderDraft(BaseModel):
    """Everything needed to persist one order, built from a confirmed negotiation."""
    customer_id: str
    customer_name: Optional[str] = None
    items: list[LineItem]
    pricing: PricingBreakdown
    address: Address
    payment_method: PaymentMethod
    negotiation_id: Optional[str] = None


class OrderSummary(BaseModel):
    """Entry appended to the customer's order history."""
    order_id: str
    total: Decimal
    date: datetime
    status: str = OrderStatus.PENDING.value
