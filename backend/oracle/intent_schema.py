"""Oracle contract - request bundle in, validated classification out.

The LLM is asked for exactly the OracleResult JSON shape. Anything that
fails validation here is relayed as plain text instead of being acted on.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from chatshop.schemas.conversation import Turn
from chatshop.schemas.records import CustomerProfile, OrderRecord, ProductSnapshot


class OracleAction(str, Enum):
    """Allowed actions - FIXED, cannot be extended by the LLM."""
    BROWSE = "browse"
    ORDER = "order"
    TRACK = "track"
    ESCALATE = "escalate"
    GENERAL = "general"


# Older prompt vocabulary still produced by some models
ACTION_ALIASES = {
    "browse_products": OracleAction.BROWSE.value,
    "place_order": OracleAction.ORDER.value,
    "track_order": OracleAction.TRACK.value,
    "general_inquiry": OracleAction.GENERAL.value,
}

MAX_QUANTITY = 1000


class OracleRequest(BaseModel):
    """Everything the oracle may look at for one turn. Read-only copies."""
    message: str
    customer: CustomerProfile
    candidate_products: list[ProductSnapshot] = Field(default_factory=list)
    open_orders: list[OrderRecord] = Field(default_factory=list)
    history: list[Turn] = Field(default_factory=list)


class OracleResult(BaseModel):
    """Validated oracle output.

    Fields:
        message: reply text for the customer
        action: one of OracleAction
        requires_human: the oracle thinks a person should take over
        target_product: product id or name the customer wants
        quantity: requested units (order only)
        suggested_products: product ids worth showing
        source: "llm", "fallback" or "raw" (audit trail)
    """
    message: str
    action: OracleAction = OracleAction.GENERAL
    requires_human: bool = Field(default=False, alias="requiresHuman")
    target_product: Optional[str] = Field(default=None, alias="targetProduct")
    quantity: Optional[int] = None
    suggested_products: list[str] = Field(default_factory=list, alias="suggestedProducts")
    source: str = "llm"

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def flatten_order_intent(cls, data):
        """Accept {"orderIntent": {"productId", "quantity"}} from the older format."""
        if isinstance(data, dict) and isinstance(data.get("orderIntent"), dict):
            data = dict(data)
            intent = data.pop("orderIntent")
            data.setdefault("targetProduct", intent.get("productId"))
            data.setdefault("quantity", intent.get("quantity"))
        return data

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return ACTION_ALIASES.get(v, v)
        return v

    @field_validator("target_product")
    @classmethod
    def strip_target(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        v = v.strip()
        return v if 0 < len(v) <= 100 else None

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, v):
        """Non-positive, fractional or absurd quantities become None (treated as 1)."""
        if v is None or isinstance(v, bool):
            return None
        try:
            number = float(v)
        except (TypeError, ValueError):
            return None
        if number <= 0 or number > MAX_QUANTITY or number != int(number):
            return None
        return int(number)

    @field_validator("suggested_products", mode="before")
    @classmethod
    def clean_suggestions(cls, v):
        if not v:
            return []
        if not isinstance(v, list):
            return []
        return [str(item).strip() for item in v if str(item).strip()][:5]
