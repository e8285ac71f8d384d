"""
Conversational order orchestrator: one inbound message in, replies out.

Per message:
1. Operator commands ("!...") from the admin go to AdminCommandHandler
   before any session is touched.
2. Everything else runs under the customer's lock:
   load session -> drop duplicates -> expire stale negotiation ->
   slot reply (address / confirm / cancel) or oracle classification ->
   action handler -> append turn -> save session.
3. Any unexpected error yields a generic apology and the stored session is
   left exactly as it was before the turn. The exception is a failed save
   after an order commit: the order acknowledgement is still returned.
"""
import asyncio
import logging
from typing import Optional

from chatshop.agent.actions import (
    Action,
    Browse,
    Escalate,
    General,
    PlaceOrder,
    Track,
    action_from_result,
)
from chatshop.agent.admin import AdminCommandHandler
from chatshop.agent.locks import CustomerLocks
from chatshop.agent.negotiation import NegotiationMachine, Outcome
from chatshop.agent.session_store import SessionStore
from chatshop.core.exceptions import StoreError
from chatshop.db.repository import StoreRepository
from chatshop.schemas.conversation import InboundMessage, Session, Turn, TurnResult
from chatshop.schemas.records import CustomerProfile
from chatshop.services import messages
from chatshop.services.notifications import NotificationDispatcher
from oracle.intent_parser import IntentOracle, escalation_result
from oracle.intent_schema import OracleRequest, OracleResult

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        repository: StoreRepository,
        sessions: SessionStore,
        oracle: IntentOracle,
        negotiation: NegotiationMachine,
        dispatcher: NotificationDispatcher,
        locks: Optional[CustomerLocks] = None,
        admin: Optional[AdminCommandHandler] = None,
        operator_id: Optional[str] = None,
        history_limit: int = 10,
        catalog_limit: int = 10,
    ):
        self.repository = repository
        self.sessions = sessions
        self.oracle = oracle
        self.negotiation = negotiation
        self.dispatcher = dispatcher
        self.locks = locks or CustomerLocks()
        self.admin = admin
        self.operator_id = operator_id
        self.history_limit = history_limit
        self.catalog_limit = catalog_limit

    async def handle(self, inbound: InboundMessage) -> TurnResult:
        text = inbound.text.strip()
        logger.info(f"[MSG] {inbound.sender_id}: {text[:80]}")

        if self.admin is not None and self.admin.matches(inbound):
            return TurnResult(replies=[self.admin.handle(text)], action="admin")

        async with self.locks.hold(inbound.sender_id):
            try:
                return await self._process(inbound, text)
            except Exception as e:
                logger.exception(f"[MSG] Turn failed for {inbound.sender_id}: {type(e).__name__}: {e}")
                return TurnResult(replies=[messages.GENERIC_APOLOGY], action="error")

    async def _process(self, inbound: InboundMessage, text: str) -> TurnResult:
        session = self.sessions.load(inbound.sender_id)

        if session.has_seen(inbound.message_id):
            logger.info(f"[MSG] Duplicate {inbound.message_id} from {inbound.sender_id}, ignored")
            return TurnResult(duplicate=True, stage=session.stage)

        if not text:
            return TurnResult(stage=session.stage)

        customer = self.repository.find_or_create_customer(inbound.sender_id, inbound.sender_name)

        if self.negotiation.expire(session):
            logger.info(f"[NEGOTIATION] Expired for {inbound.sender_id} before turn")

        outcome = self.negotiation.handle_reply(session, customer, text)
        if outcome is None:
            result = await self._classify(session, customer, text)
            action = action_from_result(result)
            outcome = self._dispatch(action, session, customer, text)

        session.last_intent = outcome.action
        session.remember(inbound.message_id)
        session.add_turn(
            Turn(user_message=text, reply="\n\n".join(outcome.replies), action=outcome.action),
            self.history_limit,
        )
        try:
            self.sessions.save(session)
        except Exception as e:
            if outcome.order_id is None:
                raise
            # The order is already persisted; a redelivery is answered from it
            logger.error(f"[MSG] Order {outcome.order_id} placed but session save failed for {inbound.sender_id}: {e}")

        try:
            self.repository.record_interaction(customer.customer_id, outcome.action, text)
        except StoreError as e:
            logger.warning(f"[MSG] Could not record interaction for {customer.customer_id}: {e}")

        return TurnResult(
            replies=outcome.replies,
            action=outcome.action,
            stage=session.stage,
            order_id=outcome.order_id,
        )

    async def _classify(self, session: Session, customer: CustomerProfile, text: str) -> OracleResult:
        request = OracleRequest(
            message=text,
            customer=customer,
            candidate_products=self.repository.list_catalog(self.catalog_limit),
            open_orders=self.repository.open_orders(customer.customer_id, limit=5),
            history=session.recent_turns(3),
        )
        loop = asyncio.get_running_loop()
        try:
            # Blocking HTTP call; keep the loop free for other customers
            return await loop.run_in_executor(None, self.oracle.classify, request)
        except Exception as e:
            logger.error(f"[ORACLE] Executor failure: {e}")
            return escalation_result()

    def _dispatch(self, action: Action, session: Session, customer: CustomerProfile, text: str) -> Outcome:
        if isinstance(action, Browse):
            return self._browse(action)
        if isinstance(action, PlaceOrder):
            return self.negotiation.start(session, customer, action.target_product, action.quantity, text)
        if isinstance(action, Track):
            return self._track(action, customer)
        if isinstance(action, Escalate):
            return self._escalate(action, customer, text)
        if isinstance(action, General):
            return Outcome([action.message], General.tag)
        raise TypeError(f"Unhandled action variant: {type(action).__name__}")

    def _browse(self, action: Browse) -> Outcome:
        replies = [action.message] if action.message else []
        products = self.repository.find_products(list(action.suggested_products))[:5]
        replies.extend(messages.product_card(p) for p in products)
        if not replies:
            replies.append(messages.catalog_overview(self.repository.list_catalog(self.catalog_limit)))
        if products:
            try:
                self.repository.increment_views([p.product_id for p in products])
            except StoreError as e:
                logger.warning(f"[BROWSE] View counter not updated: {e}")
        return Outcome(replies, Browse.tag)

    def _track(self, action: Track, customer: CustomerProfile) -> Outcome:
        orders = self.repository.recent_orders(customer.customer_id, limit=3)
        replies = [action.message] if action.message else []
        if orders:
            replies.extend(messages.order_status(order) for order in orders)
        else:
            replies.append(messages.no_orders())
        return Outcome(replies, Track.tag)

    def _escalate(self, action: Escalate, customer: CustomerProfile, text: str) -> Outcome:
        logger.info(f"[ESCALATE] {customer.customer_id} handed to support")
        if self.operator_id:
            self.dispatcher.enqueue(self.operator_id, messages.operator_escalation(customer, text), kind="escalation")
        return Outcome([messages.escalation(action.message)], Escalate.tag)
