"""Inventory reads for the negotiation: product resolution and stock checks.

Writes (the actual decrement) happen only inside the order commit
transaction; see chatshop.services.order_service.
"""
import logging
import re
from typing import Optional

from chatshop.core.exceptions import InsufficientStockError, ProductNotFoundError
from chatshop.db.repository import StoreRepository
from chatshop.schemas.records import ProductSnapshot

logger = logging.getLogger(__name__)

_PRODUCT_ID = re.compile(r"\bPRD-\d{3,}\b", re.IGNORECASE)


def resolve_product(repo: StoreRepository, target: Optional[str], message: Optional[str] = None) -> Optional[ProductSnapshot]:
    """
    Resolve what the customer asked for: by product id first, then by name.

    `target` comes from the classifier and may be an id ("PRD-005") or a
    name ("AirPods"); `message` is the raw text, scanned for an id as a
    last resort.
    """
    candidates = [target] if target else []
    if message:
        match = _PRODUCT_ID.search(message)
        if match:
            candidates.append(match.group(0))

    for candidate in candidates:
        candidate = candidate.strip()
        if _PRODUCT_ID.fullmatch(candidate):
            product = repo.find_product(candidate.upper())
            if product:
                return product

    if target:
        matches = repo.search_products(target, limit=1)
        if matches:
            logger.debug(f"[INVENTORY] '{target}' resolved by name to {matches[0].product_id}")
            return matches[0]

    return None


def check_availability(repo: StoreRepository, product_id: str, quantity: int) -> ProductSnapshot:
    """
    Fresh stock check. Returns a current snapshot.

    Raises:
        ProductNotFoundError: unknown product, or no longer sold
        InsufficientStockError: fewer than `quantity` units on hand
    """
    product = repo.find_product(product_id)
    if product is None or product.status in ("inactive", "discontinued"):
        raise ProductNotFoundError(product_id)
    if product.stock < quantity:
        raise InsufficientStockError(product_id, quantity, max(product.stock, 0))
    return product
