"""
Free-text delivery address parsing.

Customers are asked for "Street, City, State" and usually comply, but they
also send "12 Allen Avenue, Ikeja Lagos" or "Lagos state". We accept the
comma form and a two-part form where the state name can be detected;
anything else is rejected so the dialogue can re-prompt.
"""
import logging
import re
from typing import Optional

from chatshop.core.business import KNOWN_REGIONS
from chatshop.schemas.order import Address

logger = logging.getLogger(__name__)

REGION_ALIASES = {
    "fct": "Abuja",
    "federal capital territory": "Abuja",
    "abuja fct": "Abuja",
    "akwa-ibom": "Akwa Ibom",
    "cross-river": "Cross River",
}

ADDRESS_FORMAT_HINT = (
    "Please send your delivery address in this format:\n"
    "Street, City, State, Landmark (optional)\n\n"
    "Example: 15 Allen Avenue, Ikeja, Lagos, near Computer Village"
)

_STATE_SUFFIX = re.compile(r"\s+state$", re.IGNORECASE)


def normalize_region(text: str) -> str:
    """Map "lagos state" / "FCT" style input to the canonical region name."""
    cleaned = _STATE_SUFFIX.sub("", text.strip()).strip()
    lowered = cleaned.lower()
    if lowered in REGION_ALIASES:
        return REGION_ALIASES[lowered]
    for region in KNOWN_REGIONS:
        if region.lower() == lowered:
            return region
    return cleaned.title()


def detect_region(text: str) -> Optional[str]:
    """Find a known region name anywhere in the text (longest names first)."""
    lowered = text.lower()
    candidates = list(KNOWN_REGIONS) + list(REGION_ALIASES)
    for name in sorted(candidates, key=len, reverse=True):
        if re.search(rf"\b{re.escape(name.lower())}\b", lowered):
            return REGION_ALIASES.get(name, name)
    return None


def parse_address(text: str) -> Optional[Address]:
    """
    Parse a reply into an Address, or None when it doesn't look like one.

    "15 Allen Avenue, Ikeja, Lagos, near Computer Village"
        -> street="15 Allen Avenue", city="Ikeja", region="Lagos",
           landmark="near Computer Village"
    """
    if not text:
        return None
    parts = [part.strip() for part in text.split(",") if part.strip()]

    if len(parts) >= 3:
        street, city, region = parts[0], parts[1], normalize_region(parts[2])
        landmark = ", ".join(parts[3:]) or None
    elif len(parts) == 2:
        region = detect_region(parts[1])
        if not region:
            return None
        street = parts[0]
        city_text = re.sub(rf"\b{re.escape(region)}\b(\s+state)?", "", parts[1], flags=re.IGNORECASE).strip()
        city = city_text or region
        landmark = None
    else:
        return None

    if len(street) < 3 or not re.search(r"[a-zA-Z]", street) or not city or not region:
        logger.debug(f"[ADDRESS] Rejected: {text[:60]}")
        return None

    return Address(street=street, city=city, region=region, landmark=landmark)
