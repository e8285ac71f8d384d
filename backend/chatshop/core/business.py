"""
Business configuration: store identity, delivery zones, pricing rules.

All money values are in Naira and kept as Decimal so totals never drift.
Pricing logic reads these tables; nothing here talks to the database.
"""
import os
from decimal import Decimal


STORE_NAME = os.getenv("BUSINESS_NAME", "TechHub Nigeria")
SUPPORT_PHONE = os.getenv("BUSINESS_PHONE", "+234XXXXXXXXXX")
SUPPORT_EMAIL = os.getenv("BUSINESS_EMAIL", "support@techhub.ng")
CURRENCY = "₦"
BUSINESS_HOURS = "Mon-Fri: 9AM-7PM | Sat: 10AM-6PM"
ESCALATION_RESPONSE_TIME = "2 hours during business hours"

# Delivery zones keyed by region (Nigerian state)
DELIVERY_ZONES = [
    {
        "zone": "Lagos & Abuja (Major Cities)",
        "regions": ["Lagos", "Abuja"],
        "fee": Decimal("2000"),
        "estimated_days": "1-2 days",
    },
    {
        "zone": "South-West Region",
        "regions": ["Ogun", "Oyo", "Osun", "Ondo", "Ekiti"],
        "fee": Decimal("3000"),
        "estimated_days": "2-3 days",
    },
    {
        "zone": "South-South & South-East",
        "regions": [
            "Rivers", "Delta", "Edo", "Akwa Ibom", "Cross River", "Bayelsa",
            "Anambra", "Enugu", "Abia", "Imo", "Ebonyi",
        ],
        "fee": Decimal("3500"),
        "estimated_days": "2-3 days",
    },
    {
        "zone": "North-Central Region",
        "regions": ["Kogi", "Kwara", "Niger", "Benue", "Plateau", "Nasarawa"],
        "fee": Decimal("4000"),
        "estimated_days": "2-3 days",
    },
    {
        "zone": "North-West & North-East",
        "regions": [
            "Kaduna", "Kano", "Katsina", "Sokoto", "Kebbi", "Zamfara", "Jigawa",
            "Bauchi", "Gombe", "Borno", "Yobe", "Adamawa", "Taraba",
        ],
        "fee": Decimal("5000"),
        "estimated_days": "3-4 days",
    },
]

# Regions outside the schedule pay the highest fee
DEFAULT_ZONE = {
    "zone": "Standard Delivery",
    "fee": Decimal("5000"),
    "estimated_days": "3-4 days",
}

KNOWN_REGIONS = [region for zone in DELIVERY_ZONES for region in zone["regions"]]

# Free delivery applies to subtotals strictly above this amount
FREE_DELIVERY_MINIMUM = Decimal("100000")

# Highest threshold first
BULK_DISCOUNTS = [
    {"min_quantity": 5, "rate": Decimal("0.08"), "description": "8% off on 5+ items"},
    {"min_quantity": 3, "rate": Decimal("0.05"), "description": "5% off on 3+ items"},
]

# Evaluated highest-first against total spent
VIP_TIERS = [
    ("platinum", Decimal("500000")),
    ("gold", Decimal("300000")),
    ("silver", Decimal("150000")),
    ("bronze", Decimal("50000")),
]

LOYALTY_POINT_VALUE = Decimal("100")  # 1 point per ₦100 spent

PAYMENT_METHODS = {
    "cod": "Cash on Delivery",
    "transfer": "Bank Transfer",
}

BANK_DETAILS = {
    "bank": os.getenv("BANK_NAME", "GTBank"),
    "account": os.getenv("BANK_ACCOUNT", "0123456789"),
    "name": os.getenv("BANK_ACCOUNT_NAME", STORE_NAME),
}
PAYMENT_LINK_BASE = os.getenv("PAYMENT_LINK_BASE", "https://paystack.com/pay")


def vip_tier_for(total_spent) -> str | None:
    """Highest tier whose threshold the lifetime spend reaches, or None."""
    total_spent = Decimal(total_spent or 0)
    for tier, threshold in VIP_TIERS:
        if total_spent >= threshold:
            return tier
    return None
