"""
Classified actions as a closed set of variants.

Handlers dispatch with isinstance over the variants; an unknown one is a
programming error and raises TypeError instead of silently falling through.
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from oracle.intent_schema import OracleAction, OracleResult


@dataclass(frozen=True)
class Browse:
    message: str
    suggested_products: Tuple[str, ...] = field(default_factory=tuple)
    tag = "browse"


@dataclass(frozen=True)
class PlaceOrder:
    message: str
    target_product: Optional[str] = None
    quantity: Optional[int] = None
    tag = "order"


@dataclass(frozen=True)
class Track:
    message: str
    tag = "track"


@dataclass(frozen=True)
class Escalate:
    message: str
    tag = "escalate"


@dataclass(frozen=True)
class General:
    message: str
    tag = "general"


Action = Union[Browse, PlaceOrder, Track, Escalate, General]


def action_from_result(result: OracleResult) -> Action:
    """Map a validated oracle result to its variant. requires_human wins."""
    if result.requires_human or result.action == OracleAction.ESCALATE:
        return Escalate(message=result.message)
    if result.action == OracleAction.BROWSE:
        return Browse(message=result.message, suggested_products=tuple(result.suggested_products))
    if result.action == OracleAction.ORDER:
        return PlaceOrder(message=result.message, target_product=result.target_product, quantity=result.quantity)
    if result.action == OracleAction.TRACK:
        return Track(message=result.message)
    if result.action == OracleAction.GENERAL:
        return General(message=result.message)
    raise TypeError(f"Unhandled oracle action: {result.action!r}")
