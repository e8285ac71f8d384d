"""
Order pricing. Totals are always computed here from catalog prices, never
taken from the classifier or the client.

    total = subtotal + delivery_fee - discount
"""
from decimal import Decimal, ROUND_HALF_UP

from chatshop.core.business import (
    BULK_DISCOUNTS,
    DEFAULT_ZONE,
    DELIVERY_ZONES,
    FREE_DELIVERY_MINIMUM,
)
from chatshop.schemas.order import LineItem, PricingBreakdown
from chatshop.schemas.records import ProductSnapshot

CENT = Decimal("0.01")


def _round(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def zone_for(region: str | None) -> dict:
    """Delivery zone for a region name; unknown regions get the standard zone."""
    if region:
        wanted = region.strip().lower()
        for zone in DELIVERY_ZONES:
            if any(r.lower() == wanted for r in zone["regions"]):
                return zone
    return DEFAULT_ZONE


def bulk_discount_rate(quantity: int) -> Decimal:
    for tier in BULK_DISCOUNTS:
        if quantity >= tier["min_quantity"]:
            return tier["rate"]
    return Decimal("0")


def line_item(product: ProductSnapshot, quantity: int) -> LineItem:
    return LineItem(
        product_id=product.product_id,
        name=product.name,
        unit_price=product.price,
        quantity=quantity,
        subtotal=_round(Decimal(product.price) * quantity),
    )


def calculate_pricing(unit_price: Decimal, quantity: int, region: str | None) -> PricingBreakdown:
    """
    Price one line shipped to `region`.

    Example:
        >>> calculate_pricing(Decimal("50000"), 2, "Ogun").total
        Decimal('103000.00')
    """
    subtotal = _round(Decimal(unit_price) * quantity)
    zone = zone_for(region)

    # Strictly above the threshold
    free_delivery = subtotal > FREE_DELIVERY_MINIMUM
    delivery_fee = Decimal("0") if free_delivery else zone["fee"]
    discount = _round(subtotal * bulk_discount_rate(quantity))

    return PricingBreakdown(
        subtotal=subtotal,
        delivery_fee=_round(delivery_fee),
        discount=discount,
        total=_round(subtotal + delivery_fee - discount),
        zone=zone["zone"],
        estimated_days=zone["estimated_days"],
        free_delivery=free_delivery,
    )
