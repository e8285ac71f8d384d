"""
Stored conversation sessions, one row per customer.

Backs DatabaseSessionStore so an open negotiation survives a restart and is
visible to the timeout sweeper.
"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from chatshop.db.base import Base


class ConversationState(Base):
    """
    Schema:
        customer_id: sender id on the chat channel (unique)
        stage: negotiation stage, "none" when idle; the sweeper filters on it
        payload: Session.model_dump(mode="json")
        updated_at: last saved turn
    """
    __tablename__ = "conversation_states"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(String(64), unique=True, nullable=False, index=True)
    stage = Column(String(32), nullable=False, default="none", index=True)
    payload = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<ConversationState {self.customer_id} stage={self.stage}>"
