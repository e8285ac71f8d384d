"""Pricing rules, delivery zones, VIP tiers and address parsing."""
from decimal import Decimal

from chatshop.core.business import vip_tier_for
from chatshop.schemas.records import ProductSnapshot
from chatshop.services.address import normalize_region, parse_address
from chatshop.services.pricing import bulk_discount_rate, calculate_pricing, line_item, zone_for


def test_two_units_to_south_west_totals_103000():
    pricing = calculate_pricing(Decimal("50000"), 2, "Ogun")

    assert pricing.subtotal == Decimal("100000")
    assert pricing.delivery_fee == Decimal("3000")
    assert pricing.discount == Decimal("0")
    assert pricing.total == Decimal("103000")
    assert pricing.free_delivery is False
    assert pricing.zone == "South-West Region"


def test_free_delivery_only_above_threshold():
    pricing = calculate_pricing(Decimal("185000"), 1, "Kano")

    assert pricing.free_delivery is True
    assert pricing.delivery_fee == Decimal("0")
    assert pricing.total == Decimal("185000")


def test_bulk_discounts():
    assert bulk_discount_rate(2) == Decimal("0")
    assert bulk_discount_rate(3) == Decimal("0.05")
    assert bulk_discount_rate(4) == Decimal("0.05")
    assert bulk_discount_rate(5) == Decimal("0.08")

    pricing = calculate_pricing(Decimal("10000"), 5, "Lagos")
    assert pricing.subtotal == Decimal("50000")
    assert pricing.discount == Decimal("4000")
    assert pricing.delivery_fee == Decimal("2000")
    assert pricing.total == pricing.subtotal + pricing.delivery_fee - pricing.discount


def test_total_invariant_across_cases():
    for price, qty, region in [
        ("1450000", 1, "Lagos"),
        ("185000", 3, "Rivers"),
        ("2500.50", 7, "Benue"),
        ("99999", 1, "Nowhere"),
    ]:
        pricing = calculate_pricing(Decimal(price), qty, region)
        assert pricing.subtotal == Decimal(price) * qty
        assert pricing.total == pricing.subtotal + pricing.delivery_fee - pricing.discount


def test_unknown_region_uses_standard_delivery():
    zone = zone_for("Atlantis")
    assert zone["zone"] == "Standard Delivery"
    assert zone["fee"] == Decimal("5000")
    assert zone_for(None)["zone"] == "Standard Delivery"
    assert zone_for("lagos")["fee"] == Decimal("2000")


def test_line_item_subtotal():
    product = ProductSnapshot(product_id="PRD-005", name="AirPods", price=Decimal("185000"), stock=3, category="accessories")
    item = line_item(product, 2)
    assert item.subtotal == Decimal("370000")
    assert item.unit_price == Decimal("185000")


def test_vip_tiers_highest_first():
    assert vip_tier_for(Decimal("49999")) is None
    assert vip_tier_for(Decimal("50000")) == "bronze"
    assert vip_tier_for(Decimal("150000")) == "silver"
    assert vip_tier_for(Decimal("300000")) == "gold"
    assert vip_tier_for(Decimal("2000000")) == "platinum"


def test_parse_full_address_with_landmark():
    address = parse_address("15 Allen Avenue, Ikeja, Lagos, near Computer Village")
    assert address.street == "15 Allen Avenue"
    assert address.city == "Ikeja"
    assert address.region == "Lagos"
    assert address.landmark == "near Computer Village"


def test_parse_address_normalizes_region():
    assert parse_address("2 Wuse Close, Wuse, FCT").region == "Abuja"
    assert parse_address("7 Ring Road, Ibadan, oyo state").region == "Oyo"
    assert normalize_region("Akwa Ibom State") == "Akwa Ibom"


def test_parse_two_part_address_detects_state():
    address = parse_address("12 Aba Road, Port Harcourt Rivers")
    assert address.region == "Rivers"
    assert address.city == "Port Harcourt"


def test_unparsable_addresses_rejected():
    assert parse_address("") is None
    assert parse_address("hello") is None
    assert parse_address("tomorrow, please") is None
    assert parse_address("12, Ikeja, Lagos") is None
