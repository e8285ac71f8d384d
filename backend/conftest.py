"""Shared fixtures: throwaway SQLite store, scripted oracle, recording sink."""
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from chatshop.agent.locks import CustomerLocks
from chatshop.agent.admin import AdminCommandHandler
from chatshop.agent.negotiation import NegotiationMachine
from chatshop.agent.orchestrator import Orchestrator
from chatshop.agent.session_store import InMemorySessionStore
from chatshop.db.base import Base
from chatshop.db.repository import SqlStoreRepository
from chatshop.db.session import build_engine
from chatshop.models import Product
from chatshop.services.notifications import NotificationDispatcher, NotificationSink
from chatshop.services.order_service import OrderCommitService
from oracle.intent_parser import IntentOracle

OPERATOR_ID = "999000"


class ScriptedClient:
    """Stands in for GroqClient: returns (or raises) queued responses in order."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.prompts = []

    def is_available(self):
        return True

    def complete(self, prompt, system=None):
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class UnavailableClient:
    def is_available(self):
        return False

    def complete(self, prompt, system=None):
        raise AssertionError("should not be called")


class RecordingSink(NotificationSink):
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def notify(self, recipient_id, content):
        if self.fail:
            raise RuntimeError("transport down")
        self.sent.append((recipient_id, content))


@pytest.fixture
def session_factory(tmp_path):
    # File-backed: each NullPool connection must see the same database
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def repo(session_factory):
    return SqlStoreRepository(session_factory)


@pytest.fixture
def add_product(session_factory):
    def _add(product_id="PRD-100", name="Test Speaker", price="50000", stock=5, category="audio", status="active"):
        db = session_factory()
        try:
            db.add(Product(
                product_id=product_id,
                name=name,
                price=Decimal(price),
                stock=stock,
                category=category,
                status=status,
            ))
            db.commit()
        finally:
            db.close()
    return _add


@pytest.fixture
def build_orchestrator(repo):
    """Returns a factory: (responses or client, sink) -> Orchestrator wired to the test store."""

    def _build(client=None, sink=None, sessions=None, timeout_seconds=1800):
        if client is None or isinstance(client, list):
            client = ScriptedClient(client)
        dispatcher = NotificationDispatcher(sink or RecordingSink())
        commit_service = OrderCommitService(repo, dispatcher, operator_id=OPERATOR_ID)
        negotiation = NegotiationMachine(repo, commit_service, timeout_seconds)
        return Orchestrator(
            repository=repo,
            sessions=sessions or InMemorySessionStore(),
            oracle=IntentOracle(client),
            negotiation=negotiation,
            dispatcher=dispatcher,
            locks=CustomerLocks(),
            admin=AdminCommandHandler(repo, OPERATOR_ID, "!"),
            operator_id=OPERATOR_ID,
        )

    return _build
