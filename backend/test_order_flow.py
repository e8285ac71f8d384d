"""
End-to-end conversation flows through the orchestrator.

Oracle responses are scripted; everything else (store, sessions, commit,
notifications) is the real thing on a throwaway SQLite file.
"""
import asyncio
import json
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.exc import OperationalError

from chatshop.agent.session_store import InMemorySessionStore
from chatshop.agent.sweeper import NegotiationSweeper
from chatshop.core.business import SUPPORT_PHONE
from chatshop.core.exceptions import OracleError, RepositoryError
from chatshop.db.repository import StoreTransaction
from chatshop.schemas.conversation import InboundMessage, NegotiationStage, utcnow
from chatshop.services import messages

from conftest import OPERATOR_ID, RecordingSink

CUSTOMER = "2348000000001"
ADDRESS = "15 Allen Avenue, Abeokuta, Ogun"


def inbound(text, message_id=None, sender=CUSTOMER):
    return InboundMessage(sender_id=sender, text=text, message_id=message_id, sender_name="Ada")


def order_reply(target="PRD-100", quantity=None):
    return json.dumps({
        "message": "Let me set that up!",
        "action": "order",
        "requiresHuman": False,
        "targetProduct": target,
        "quantity": quantity,
    })


def general_reply(text="Happy to help!"):
    return json.dumps({"message": text, "action": "general", "requiresHuman": False})


def converse(orch, *events, notify=True):
    """
    Run the events in order inside one loop, with the dispatcher draining.

    Callables are invoked in place (store changes between turns) and produce
    no result. Everything must happen in one loop: the dispatcher queue binds
    to the loop its worker first waits on.
    """

    async def run():
        if notify:
            await orch.dispatcher.start()
        results = []
        for event in events:
            if callable(event):
                event()
                continue
            if isinstance(event, str):
                event = inbound(event)
            results.append(await orch.handle(event))
        if notify:
            await orch.dispatcher.join()
            await orch.dispatcher.stop()
        return results

    return asyncio.run(run())


def test_order_placed_end_to_end(repo, add_product, build_orchestrator):
    add_product(stock=5, price="50000")
    sink = RecordingSink()
    orch = build_orchestrator([order_reply("PRD-100", 2)], sink=sink)

    asked, priced, placed = converse(orch, "I want PRD-100, qty 2", ADDRESS, "confirm cash on delivery")

    assert asked.stage == NegotiationStage.COLLECTING_ADDRESS
    assert "Where should we deliver" in asked.replies[0]

    assert priced.stage == NegotiationStage.AWAITING_CONFIRMATION
    assert "TOTAL: ₦103,000" in priced.replies[0]

    assert placed.order_id is not None
    assert placed.stage == NegotiationStage.NONE
    assert placed.order_id in placed.replies[0]

    assert repo.find_product("PRD-100").stock == 3
    [order] = repo.recent_orders(CUSTOMER)
    assert order.order_id == placed.order_id
    assert order.status == "pending"
    assert order.payment_method == "cod"
    assert order.total == Decimal("103000")
    assert order.total == order.subtotal + order.delivery_fee - order.discount
    assert order.subtotal == Decimal("50000") * 2
    assert order.delivery["address"]["city"] == "Abeokuta"

    customer = repo.find_or_create_customer(CUSTOMER)
    assert customer.total_orders == 1
    assert customer.total_spent == Decimal("103000")
    assert customer.default_address()["region"] == "Ogun"

    recipients = [recipient for recipient, _ in sink.sent]
    assert recipients == [CUSTOMER, OPERATOR_ID]
    assert "Order Confirmed" in sink.sent[0][1]
    assert "NEW ORDER RECEIVED" in sink.sent[1][1]


def test_transfer_confirmation_carries_payment_details(repo, add_product, build_orchestrator):
    add_product(stock=5)
    sink = RecordingSink()
    orch = build_orchestrator([order_reply("PRD-100", 1)], sink=sink)

    *_, placed = converse(orch, "I want the speaker", ADDRESS, "CONFIRM TRANSFER")

    [order] = repo.recent_orders(CUSTOMER)
    assert order.payment_method == "transfer"
    assert f"/{placed.order_id}" in sink.sent[0][1]


def test_saved_address_skips_collection(repo, add_product, build_orchestrator):
    add_product(stock=5)
    orch = build_orchestrator([order_reply("PRD-100", 1), order_reply("PRD-100", 1)])

    results = converse(
        orch,
        "I want PRD-100", ADDRESS, "confirm cod",
        "I want PRD-100 again",
    )

    assert results[-1].stage == NegotiationStage.AWAITING_CONFIRMATION
    assert "15 Allen Avenue" in results[-1].replies[0]


def test_insufficient_stock_at_start_keeps_stage(repo, add_product, build_orchestrator):
    add_product(stock=1)
    orch = build_orchestrator([order_reply("PRD-100", 2)])

    [result] = converse(orch, "I want 2 of PRD-100")

    assert result.stage == NegotiationStage.NONE
    assert "Only 1 unit" in result.replies[0]
    assert repo.recent_orders(CUSTOMER) == []


def test_unknown_and_out_of_stock_products(repo, add_product, build_orchestrator):
    add_product(stock=0, status="out-of-stock")
    orch = build_orchestrator([order_reply("Nokia 3310", 1), order_reply("PRD-100", 1)])

    missing, empty = converse(orch, "I want a Nokia 3310", "I want PRD-100")

    assert "couldn't find" in missing.replies[0]
    assert "out of stock" in empty.replies[0]
    assert empty.stage == NegotiationStage.NONE


def test_invalid_address_reprompts_then_cancel(repo, add_product, build_orchestrator):
    add_product()
    orch = build_orchestrator([order_reply("PRD-100", 1)])

    _, bad, cancelled = converse(orch, "I want PRD-100", "tomorrow please", "never mind")

    assert bad.stage == NegotiationStage.COLLECTING_ADDRESS
    assert "couldn't read that address" in bad.replies[0]
    assert "order for Test Speaker is still open" in bad.replies[0]
    assert cancelled.replies == [messages.ORDER_CANCELLED]
    assert cancelled.stage == NegotiationStage.NONE
    assert repo.find_product("PRD-100").stock == 5


def test_confirm_without_method_asks_for_one(repo, add_product, build_orchestrator):
    add_product()
    orch = build_orchestrator([order_reply("PRD-100", 1)])

    *_, asked = converse(orch, "I want PRD-100", ADDRESS, "yes")

    assert asked.replies == [messages.payment_method_prompt()]
    assert asked.stage == NegotiationStage.AWAITING_CONFIRMATION
    assert repo.recent_orders(CUSTOMER) == []


def test_payment_question_is_not_a_confirmation(repo, add_product, build_orchestrator):
    add_product(stock=5)
    orch = build_orchestrator([order_reply("PRD-100", 1), general_reply("Yes, bank transfer works.")])

    *_, answered, placed = converse(orch, "I want PRD-100", ADDRESS, "Do you accept bank transfer?", "transfer")

    assert answered.replies == ["Yes, bank transfer works."]
    assert answered.order_id is None
    assert answered.stage == NegotiationStage.AWAITING_CONFIRMATION

    # A bare method is an explicit go-ahead
    assert placed.order_id is not None
    [order] = repo.recent_orders(CUSTOMER)
    assert order.payment_method == "transfer"


def test_conflicting_methods_ask_which_one(repo, add_product, build_orchestrator):
    add_product(stock=5)
    orch = build_orchestrator([order_reply("PRD-100", 1)])

    *_, asked = converse(orch, "I want PRD-100", ADDRESS, "confirm cash on delivery, not bank transfer")

    assert asked.replies == [messages.payment_method_prompt()]
    assert asked.stage == NegotiationStage.AWAITING_CONFIRMATION
    assert repo.recent_orders(CUSTOMER) == []
    assert repo.find_product("PRD-100").stock == 5


def test_sweeper_expires_idle_negotiation(repo, add_product, build_orchestrator):
    add_product()
    orch = build_orchestrator([order_reply("PRD-100", 1), order_reply("PRD-100", 2)])
    sweeper = NegotiationSweeper(orch.sessions, orch.locks, orch.negotiation)

    async def run():
        first = await orch.handle(inbound("I want PRD-100"))
        not_yet = await sweeper.sweep_once()
        expired = await sweeper.sweep_once(now=utcnow() + timedelta(minutes=31))
        stage_after = orch.sessions.load(CUSTOMER).stage
        fresh = await orch.handle(inbound("I want 2 PRD-100"))
        return first, not_yet, expired, stage_after, fresh

    first, not_yet, expired, stage_after, fresh = asyncio.run(run())

    assert first.stage == NegotiationStage.COLLECTING_ADDRESS
    assert not_yet == 0
    assert expired == 1
    assert stage_after == NegotiationStage.NONE
    # A brand new negotiation, not a "finish the pending one" prompt
    assert fresh.stage == NegotiationStage.COLLECTING_ADDRESS
    assert "2 x Test Speaker" in fresh.replies[0]


def test_stale_negotiation_expires_at_turn_start(repo, add_product, build_orchestrator):
    add_product()
    orch = build_orchestrator([order_reply("PRD-100", 1), general_reply("What can I do for you?")], timeout_seconds=0)

    _, later = converse(orch, "I want PRD-100", ADDRESS)

    # The address arrives after the timeout, so it is an ordinary message
    assert later.stage == NegotiationStage.NONE
    assert later.replies == ["What can I do for you?"]


def test_unparsable_oracle_output_is_relayed(repo, add_product, build_orchestrator):
    add_product()
    raw = "Hello! We have speakers and phones today."
    orch = build_orchestrator([raw, order_reply("PRD-100", 1)])

    relayed, following = converse(orch, "hi", "I want PRD-100")

    assert relayed.replies == [raw]
    assert relayed.action == "general"
    assert following.stage == NegotiationStage.COLLECTING_ADDRESS


def test_oracle_failure_escalates(repo, build_orchestrator):
    sink = RecordingSink()
    orch = build_orchestrator([OracleError("Oracle timed out")], sink=sink)

    [result] = converse(orch, "my delivery never came")

    assert result.action == "escalate"
    assert messages.ESCALATION_FALLBACK in result.replies[0]
    assert SUPPORT_PHONE in result.replies[0]
    assert sink.sent[0][0] == OPERATOR_ID
    assert "CUSTOMER NEEDS ASSISTANCE" in sink.sent[0][1]


def test_requires_human_escalates(repo, build_orchestrator):
    sink = RecordingSink()
    flagged = json.dumps({"message": "Let me get someone.", "action": "general", "requiresHuman": True})
    orch = build_orchestrator([flagged], sink=sink)

    [result] = converse(orch, "I want a refund")

    assert result.action == "escalate"
    assert result.replies[0].startswith("Let me get someone.")
    assert [r for r, _ in sink.sent] == [OPERATOR_ID]


def test_commit_failure_rolls_back(repo, add_product, build_orchestrator, monkeypatch):
    add_product(stock=5)
    orch = build_orchestrator([order_reply("PRD-100", 2)])

    def broken_record_sale(self, product_id, quantity, revenue):
        raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))

    monkeypatch.setattr(StoreTransaction, "record_sale", broken_record_sale)

    snapshot = {}

    def check_nothing_written():
        snapshot["orders"] = repo.recent_orders(CUSTOMER)
        snapshot["stock"] = repo.find_product("PRD-100").stock
        snapshot["total_orders"] = repo.find_or_create_customer(CUSTOMER).total_orders

    *_, failed, retried = converse(
        orch,
        "I want PRD-100", ADDRESS, "confirm cod",
        check_nothing_written,
        monkeypatch.undo,
        "confirm cod",
    )

    assert failed.replies == [messages.RETRY_LATER]
    assert failed.stage == NegotiationStage.AWAITING_CONFIRMATION
    assert failed.order_id is None
    assert snapshot == {"orders": [], "stock": 5, "total_orders": 0}

    # Once the store recovers, the same negotiation commits; the rolled-back
    # attempt did not consume an order number
    assert retried.order_id.endswith("-0001")
    assert repo.find_product("PRD-100").stock == 3


def test_notification_failure_does_not_undo_order(repo, add_product, build_orchestrator):
    add_product(stock=5)
    orch = build_orchestrator([order_reply("PRD-100", 1)], sink=RecordingSink(fail=True))

    *_, placed = converse(orch, "I want PRD-100", ADDRESS, "confirm cod")

    assert placed.order_id is not None
    assert len(repo.recent_orders(CUSTOMER)) == 1
    assert orch.dispatcher.pending == 0


def test_new_order_while_pending_is_rejected(repo, add_product, build_orchestrator):
    add_product()
    add_product("PRD-101", "Phone Case", price="5000", stock=10, category="accessories")
    orch = build_orchestrator([order_reply("PRD-100", 1), order_reply("PRD-101", 1)])

    *_, rejected = converse(orch, "I want PRD-100", ADDRESS, "I want PRD-101 as well")

    assert "still have an order for Test Speaker" in rejected.replies[0]
    assert rejected.stage == NegotiationStage.AWAITING_CONFIRMATION
    session = orch.sessions.load(CUSTOMER)
    assert session.negotiation.product.product_id == "PRD-100"


def test_duplicate_message_is_ignored(repo, add_product, build_orchestrator):
    add_product(stock=5)
    orch = build_orchestrator([order_reply("PRD-100", 1)])

    results = converse(
        orch,
        inbound("I want PRD-100", "m-1"),
        inbound(ADDRESS, "m-2"),
        inbound("confirm cod", "m-3"),
        inbound("confirm cod", "m-3"),
    )

    assert results[2].order_id is not None
    assert results[3].duplicate is True
    assert results[3].replies == []
    assert len(repo.recent_orders(CUSTOMER)) == 1
    assert repo.find_product("PRD-100").stock == 4


class FlakySessionStore(InMemorySessionStore):
    """Fails the next save once armed."""

    def __init__(self):
        super().__init__()
        self.fail_next = False

    def arm(self):
        self.fail_next = True

    def save(self, session):
        if self.fail_next:
            self.fail_next = False
            raise RepositoryError("Session store unavailable")
        super().save(session)


def test_redelivered_confirm_after_failed_save_places_one_order(repo, add_product, build_orchestrator):
    add_product(stock=5)
    sessions = FlakySessionStore()
    orch = build_orchestrator([order_reply("PRD-100", 1)], sessions=sessions)

    *_, placed, redelivered = converse(
        orch,
        inbound("I want PRD-100", "m-1"),
        inbound(ADDRESS, "m-2"),
        sessions.arm,
        inbound("confirm cod", "m-3"),
        inbound("confirm cod", "m-3"),
    )

    # The order went through even though the turn could not be saved
    assert placed.order_id is not None
    assert placed.replies != [messages.GENERIC_APOLOGY]

    # The stored session never saw m-3, so it comes back as new; the existing
    # order is acknowledged instead of committing again
    assert redelivered.duplicate is False
    assert redelivered.order_id == placed.order_id
    assert redelivered.stage == NegotiationStage.NONE
    assert len(repo.recent_orders(CUSTOMER)) == 1
    assert repo.find_product("PRD-100").stock == 4


def test_concurrent_confirms_place_one_order(repo, add_product, build_orchestrator):
    add_product(stock=5)
    orch = build_orchestrator([order_reply("PRD-100", 1), general_reply("Your order is already in!")])

    async def run():
        await orch.dispatcher.start()
        await orch.handle(inbound("I want PRD-100", "m-1"))
        await orch.handle(inbound(ADDRESS, "m-2"))
        results = await asyncio.gather(
            orch.handle(inbound("confirm cod", "a")),
            orch.handle(inbound("confirm cod", "b")),
        )
        await orch.dispatcher.join()
        await orch.dispatcher.stop()
        return results

    first, second = asyncio.run(run())

    placed = [r.order_id for r in (first, second) if r.order_id is not None]
    assert len(placed) == 1
    assert len(repo.recent_orders(CUSTOMER)) == 1
    assert repo.find_product("PRD-100").stock == 4


def test_repeat_confirm_after_commit_creates_nothing(repo, add_product, build_orchestrator):
    add_product(stock=5)
    orch = build_orchestrator([order_reply("PRD-100", 1), general_reply("Your order is already in!")])

    *_, again = converse(orch, "I want PRD-100", ADDRESS, "confirm cod", "confirm cod")

    # No negotiation left, so the second "confirm cod" is an ordinary message
    assert again.replies == ["Your order is already in!"]
    assert again.order_id is None
    assert len(repo.recent_orders(CUSTOMER)) == 1


def test_stock_drop_before_confirm_revises_quantity(repo, add_product, build_orchestrator):
    add_product(stock=5, price="10000")
    orch = build_orchestrator([order_reply("PRD-100", 3)])

    *_, revised, placed = converse(
        orch,
        "I want 3 PRD-100", ADDRESS,
        lambda: repo.set_stock("PRD-100", 2),
        "confirm cod", "confirm cod",
    )

    assert revised.order_id is None
    assert revised.stage == NegotiationStage.AWAITING_CONFIRMATION
    assert "Only 2 units" in revised.replies[0]
    assert "Quantity: 2" in revised.replies[1]

    assert placed.order_id is not None
    [order] = repo.recent_orders(CUSTOMER)
    assert order.items[0]["quantity"] == 2
    assert repo.find_product("PRD-100").stock == 0


def test_sold_out_before_confirm_discards_negotiation(repo, add_product, build_orchestrator):
    add_product(stock=5)
    orch = build_orchestrator([order_reply("PRD-100", 1)])

    *_, result = converse(orch, "I want PRD-100", ADDRESS, lambda: repo.set_stock("PRD-100", 0), "confirm cod")

    assert "out of stock" in result.replies[0]
    assert result.stage == NegotiationStage.NONE
    assert repo.recent_orders(CUSTOMER) == []


def test_track_and_browse(repo, add_product, build_orchestrator):
    add_product(stock=5)
    track = json.dumps({"message": "Here are your orders", "action": "track"})
    browse = json.dumps({"message": "Take a look", "action": "browse", "suggestedProducts": ["PRD-100", "PRD-999"]})
    orch = build_orchestrator([order_reply("PRD-100", 1), track, browse])

    results = converse(orch, "I want PRD-100", ADDRESS, "confirm cod", "track my order", "show me speakers")
    placed, tracked, browsed = results[2], results[3], results[4]

    assert tracked.action == "track"
    assert placed.order_id in tracked.replies[1]
    assert browsed.action == "browse"
    assert len(browsed.replies) == 2
    assert "PRD-100" in browsed.replies[1]


def test_unexpected_error_leaves_session_untouched(repo, add_product, build_orchestrator, monkeypatch):
    orch = build_orchestrator([general_reply()])

    def boom(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(repo, "find_or_create_customer", boom)
    [result] = converse(orch, inbound("hello", "m-1"))

    assert result.replies == [messages.GENERIC_APOLOGY]
    session = orch.sessions.load(CUSTOMER)
    assert session.history == []
    assert not session.has_seen("m-1")


def test_admin_commands(repo, add_product, build_orchestrator):
    add_product(stock=5)
    orch = build_orchestrator([order_reply("PRD-100", 1)])

    converse(orch, "I want PRD-100", ADDRESS, "confirm cod")
    order_id = repo.recent_orders(CUSTOMER)[0].order_id

    # Operator commands never touch the notification queue
    results = converse(
        orch,
        inbound("!help", sender=OPERATOR_ID),
        inbound("!updatestock PRD-100 9", sender=OPERATOR_ID),
        inbound(f"!updateorder {order_id} confirmed", sender=OPERATOR_ID),
        inbound(f"!updateorder {order_id} delivered", sender=OPERATOR_ID),
        inbound("!frobnicate", sender=OPERATOR_ID),
        notify=False,
    )
    help_text, stock, confirmed, invalid, unknown = [r.replies[0] for r in results]

    assert "updatestock" in help_text
    assert "stock set to 9" in stock
    assert repo.find_product("PRD-100").stock == 9
    assert "is now confirmed" in confirmed
    assert invalid.startswith("❌")
    assert "Unknown command" in unknown
    assert all(r.action == "admin" for r in results)


def test_bang_message_from_customer_goes_to_oracle(repo, add_product, build_orchestrator):
    add_product(stock=5)
    orch = build_orchestrator([general_reply("Not sure what you mean!")])

    [result] = converse(orch, "!updatestock PRD-100 0")

    assert result.replies == ["Not sure what you mean!"]
    assert repo.find_product("PRD-100").stock == 5
