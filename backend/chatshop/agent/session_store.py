"""
Session storage for the conversation layer.

The orchestrator loads a private copy of the session at the start of a turn
and saves it only when the turn completes, so a failed turn leaves the stored
session untouched. Two backings:

- InMemorySessionStore: one process, lost on restart (tests, development)
- DatabaseSessionStore: conversation_states table, survives restarts. Still
  needs a single worker process: CustomerLocks only serialise turns within
  one process
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from chatshop.core.exceptions import RepositoryError
from chatshop.db.session import SessionLocal
from chatshop.models.conversation_state import ConversationState
from chatshop.schemas.conversation import NegotiationStage, Session

logger = logging.getLogger(__name__)

PENDING_STAGES = [
    NegotiationStage.COLLECTING_ADDRESS.value,
    NegotiationStage.AWAITING_CONFIRMATION.value,
]


class SessionStore(ABC):
    @abstractmethod
    def load(self, customer_id: str) -> Session:
        """Return the customer's session, or a fresh one. Callers own the copy."""

    @abstractmethod
    def save(self, session: Session) -> None:
        ...

    @abstractmethod
    def pending_customer_ids(self) -> List[str]:
        """Customers that currently have a negotiation open."""


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def load(self, customer_id: str) -> Session:
        stored = self._sessions.get(customer_id)
        if stored is None:
            return Session(customer_id=customer_id)
        return stored.model_copy(deep=True)

    def save(self, session: Session) -> None:
        self._sessions[session.customer_id] = session.model_copy(deep=True)

    def pending_customer_ids(self) -> List[str]:
        return [cid for cid, s in self._sessions.items() if s.negotiation is not None]


class DatabaseSessionStore(SessionStore):
    """One ConversationState row per customer, session serialized as JSON."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def load(self, customer_id: str) -> Session:
        db = self._session_factory()
        try:
            record = db.query(ConversationState).filter(ConversationState.customer_id == customer_id).first()
        except SQLAlchemyError as e:
            logger.error(f"[SESSION] Load failed for {customer_id}: {e}")
            raise RepositoryError("Session store unavailable") from e
        finally:
            db.close()

        if record is None or not record.payload:
            return Session(customer_id=customer_id)
        return Session.model_validate(record.payload)

    def save(self, session: Session) -> None:
        db = self._session_factory()
        try:
            record = db.query(ConversationState).filter(ConversationState.customer_id == session.customer_id).first()
            if record is None:
                record = ConversationState(customer_id=session.customer_id)
                db.add(record)
            record.stage = session.stage.value
            record.payload = session.model_dump(mode="json")
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[SESSION] Save failed for {session.customer_id}: {e}")
            raise RepositoryError("Session store unavailable") from e
        finally:
            db.close()

    def pending_customer_ids(self) -> List[str]:
        db = self._session_factory()
        try:
            rows = (
                db.query(ConversationState.customer_id)
                .filter(ConversationState.stage.in_(PENDING_STAGES))
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"[SESSION] Pending scan failed: {e}")
            raise RepositoryError("Session store unavailable") from e
        finally:
            db.close()
