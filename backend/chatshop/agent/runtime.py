"""Wiring: builds the orchestrator and its collaborators from settings."""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from chatshop.agent.admin import AdminCommandHandler
from chatshop.agent.locks import CustomerLocks
from chatshop.agent.negotiation import NegotiationMachine
from chatshop.agent.orchestrator import Orchestrator
from chatshop.agent.session_store import DatabaseSessionStore, InMemorySessionStore, SessionStore
from chatshop.agent.sweeper import NegotiationSweeper
from chatshop.core.config import settings
from chatshop.db.repository import SqlStoreRepository, StoreRepository
from chatshop.db.session import SessionLocal
from chatshop.services.notifications import LoggingNotificationSink, NotificationDispatcher, NotificationSink
from chatshop.services.order_service import OrderCommitService
from oracle.groq_client import GroqClient, get_groq_client
from oracle.intent_parser import IntentOracle

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    repository: StoreRepository
    sessions: SessionStore
    locks: CustomerLocks
    dispatcher: NotificationDispatcher
    orchestrator: Orchestrator
    sweeper: NegotiationSweeper

    async def start(self) -> None:
        await self.dispatcher.start()
        await self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()
        await self.dispatcher.stop()


def build_runtime(
    session_factory: sessionmaker = SessionLocal,
    oracle_client: Optional[GroqClient] = None,
    sink: Optional[NotificationSink] = None,
    session_backend: Optional[str] = None,
) -> Runtime:
    repository = SqlStoreRepository(session_factory)
    backend = session_backend or settings.SESSION_BACKEND
    if backend == "memory":
        sessions: SessionStore = InMemorySessionStore()
    else:
        sessions = DatabaseSessionStore(session_factory)

    operator_id = settings.ADMIN_ID or None
    locks = CustomerLocks()
    dispatcher = NotificationDispatcher(sink or LoggingNotificationSink())
    commit_service = OrderCommitService(repository, dispatcher, operator_id=operator_id)
    negotiation = NegotiationMachine(repository, commit_service, settings.NEGOTIATION_TIMEOUT_SECONDS)
    oracle = IntentOracle(oracle_client if oracle_client is not None else get_groq_client())

    orchestrator = Orchestrator(
        repository=repository,
        sessions=sessions,
        oracle=oracle,
        negotiation=negotiation,
        dispatcher=dispatcher,
        locks=locks,
        admin=AdminCommandHandler(repository, operator_id, settings.ADMIN_COMMAND_PREFIX),
        operator_id=operator_id,
        history_limit=settings.HISTORY_LIMIT,
        catalog_limit=settings.CATALOG_PROMPT_LIMIT,
    )
    sweeper = NegotiationSweeper(sessions, locks, negotiation, settings.SWEEP_INTERVAL_SECONDS)
    logger.info(f"[RUNTIME] Built (sessions={backend}, oracle={'groq' if oracle.client.is_available() else 'keywords'})")
    return Runtime(repository, sessions, locks, dispatcher, orchestrator, sweeper)


_runtime: Optional[Runtime] = None


def get_runtime() -> Runtime:
    """Process-wide runtime, created on first use."""
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime
