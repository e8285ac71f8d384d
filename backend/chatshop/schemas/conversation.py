"""
Conversation schemas: session, negotiation, inbound events and turn results.

A Session is serialized as one JSON document (see DatabaseSessionStore), so
everything in here must round-trip through model_dump(mode="json").
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from chatshop.schemas.order import Address, PricingBreakdown, PaymentMethod
from chatshop.schemas.records import ProductSnapshot

PROCESSED_ID_LIMIT = 50


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NegotiationStage(str, Enum):
    NONE = "none"
    COLLECTING_ADDRESS = "collecting_address"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class Negotiation(BaseModel):
    """One order being assembled across turns. At most one per session."""
    negotiation_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    product: ProductSnapshot
    quantity: int = Field(gt=0)
    address: Optional[Address] = None
    pricing: Optional[PricingBreakdown] = None
    stage: NegotiationStage = NegotiationStage.COLLECTING_ADDRESS
    payment_method: Optional[PaymentMethod] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def touch(self, now: Optional[datetime] = None) -> None:
        self.updated_at = now or utcnow()

    def is_expired(self, timeout_seconds: int, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return (now - self.updated_at).total_seconds() >= timeout_seconds


class Turn(BaseModel):
    user_message: str
    reply: str
    action: str
    timestamp: datetime = Field(default_factory=utcnow)


class Session(BaseModel):
    customer_id: str
    history: list[Turn] = Field(default_factory=list)
    last_intent: Optional[str] = None
    negotiation: Optional[Negotiation] = None
    processed_message_ids: list[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)

    def add_turn(self, turn: Turn, limit: int) -> None:
        """Append and evict oldest turns beyond the limit."""
        self.history.append(turn)
        if len(self.history) > limit:
            del self.history[: len(self.history) - limit]
        self.updated_at = turn.timestamp

    def recent_turns(self, count: int = 3) -> list[Turn]:
        return [turn.model_copy() for turn in self.history[-count:]]

    def has_seen(self, message_id: Optional[str]) -> bool:
        return bool(message_id) and message_id in self.processed_message_ids

    def remember(self, message_id: Optional[str]) -> None:
        if not message_id:
            return
        self.processed_message_ids.append(message_id)
        if len(self.processed_message_ids) > PROCESSED_ID_LIMIT:
            del self.processed_message_ids[: len(self.processed_message_ids) - PROCESSED_ID_LIMIT]

    @property
    def stage(self) -> NegotiationStage:
        return self.negotiation.stage if self.negotiation else NegotiationStage.NONE


class InboundMessage(BaseModel):
    """Transport-neutral inbound chat event. Accepts camelCase from web clients."""
    sender_id: str = Field(alias="senderId", min_length=1)
    text: str
    timestamp: datetime = Field(default_factory=utcnow)
    message_id: Optional[str] = Field(default=None, alias="messageId")
    sender_name: Optional[str] = Field(default=None, alias="senderName")

    class Config:
        populate_by_name = True


class TurnResult(BaseModel):
    replies: list[str] = Field(default_factory=list)
    action: Optional[str] = None
    stage: NegotiationStage = NegotiationStage.NONE
    order_id: Optional[str] = None
    duplicate: bool = False
