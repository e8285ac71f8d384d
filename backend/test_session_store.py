"""Session history bounds, store backings and per-customer locks."""
import asyncio
from datetime import timedelta
from decimal import Decimal

from chatshop.agent.locks import CustomerLocks
from chatshop.agent.session_store import DatabaseSessionStore, InMemorySessionStore
from chatshop.schemas.conversation import (
    InboundMessage,
    Negotiation,
    NegotiationStage,
    PROCESSED_ID_LIMIT,
    Session,
    Turn,
    utcnow,
)
from chatshop.schemas.order import Address
from chatshop.schemas.records import ProductSnapshot

PRODUCT = ProductSnapshot(product_id="PRD-100", name="Test Speaker", price=Decimal("50000"), stock=5, category="audio")


def test_history_is_bounded_oldest_first():
    session = Session(customer_id="c1")
    for i in range(13):
        session.add_turn(Turn(user_message=f"m{i}", reply=f"r{i}", action="general"), limit=10)

    assert len(session.history) == 10
    assert session.history[0].user_message == "m3"
    assert session.history[-1].user_message == "m12"
    assert [t.user_message for t in session.recent_turns(3)] == ["m10", "m11", "m12"]


def test_recent_turns_are_copies():
    session = Session(customer_id="c1")
    session.add_turn(Turn(user_message="hello", reply="hi", action="general"), limit=10)
    copy = session.recent_turns(3)
    copy[0].reply = "tampered"
    assert session.history[0].reply == "hi"


def test_processed_message_ids_are_bounded():
    session = Session(customer_id="c1")
    for i in range(PROCESSED_ID_LIMIT + 5):
        session.remember(f"id-{i}")
    assert len(session.processed_message_ids) == PROCESSED_ID_LIMIT
    assert not session.has_seen("id-0")
    assert session.has_seen(f"id-{PROCESSED_ID_LIMIT + 4}")
    assert not session.has_seen(None)


def test_negotiation_expiry():
    negotiation = Negotiation(product=PRODUCT, quantity=1)
    assert not negotiation.is_expired(1800)
    assert negotiation.is_expired(1800, now=utcnow() + timedelta(minutes=31))


def test_in_memory_store_isolates_unsaved_changes():
    store = InMemorySessionStore()
    session = store.load("c1")
    session.add_turn(Turn(user_message="a", reply="b", action="general"), limit=10)
    store.save(session)

    loaded = store.load("c1")
    loaded.add_turn(Turn(user_message="not saved", reply="x", action="general"), limit=10)
    assert len(store.load("c1").history) == 1


def test_database_store_round_trip(session_factory):
    store = DatabaseSessionStore(session_factory)
    session = store.load("2348000000001")
    assert session.history == []

    session.negotiation = Negotiation(
        product=PRODUCT,
        quantity=2,
        address=Address(street="15 Allen Avenue", city="Abeokuta", region="Ogun"),
        stage=NegotiationStage.AWAITING_CONFIRMATION,
    )
    session.add_turn(Turn(user_message="hi", reply="hello", action="general"), limit=10)
    session.remember("tg-1")
    store.save(session)

    loaded = store.load("2348000000001")
    assert loaded.stage == NegotiationStage.AWAITING_CONFIRMATION
    assert loaded.negotiation.product.price == Decimal("50000")
    assert loaded.negotiation.address.region == "Ogun"
    assert loaded.has_seen("tg-1")
    assert store.pending_customer_ids() == ["2348000000001"]

    loaded.negotiation = None
    store.save(loaded)
    assert store.pending_customer_ids() == []


def test_inbound_message_accepts_camel_case():
    message = InboundMessage.model_validate({"senderId": "42", "text": "hi", "messageId": "m-1"})
    assert message.sender_id == "42"
    assert message.message_id == "m-1"


def test_customer_lock_serializes_same_customer_only():
    locks = CustomerLocks()
    events = []

    async def turn(customer_id, label, delay):
        async with locks.hold(customer_id):
            events.append(f"{label}-start")
            await asyncio.sleep(delay)
            events.append(f"{label}-end")

    async def run():
        await asyncio.gather(turn("a", "a1", 0.05), turn("a", "a2", 0), turn("b", "b1", 0))

    asyncio.run(run())

    # a2 cannot start before a1 ends; b1 is not held up by a1
    assert events.index("a1-end") < events.index("a2-start")
    assert events.index("b1-end") < events.index("a1-end")


def test_lock_prune_keeps_held_locks():
    locks = CustomerLocks()

    async def run():
        async with locks.hold("busy"):
            async with locks.hold("other"):
                pass
            assert locks.is_locked("busy")
            assert not locks.is_locked("other")
            locks.prune()
            assert len(locks) == 1
        assert not locks.is_locked("busy")

    asyncio.run(run())
