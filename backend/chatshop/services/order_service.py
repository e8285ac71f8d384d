"""
Order commit: turns a confirmed negotiation into exactly one persisted order.

Steps:
    1. Re-validate stock (fresh read)
    2. Allocate order id
    3. Persist order (pending)
    4. Conditional stock decrement
       (2-4 share one DB transaction, all-or-nothing)
    5. Customer aggregate (address, history, totals, loyalty, VIP tier)
    6. Clear the negotiation from the session
    7. Enqueue customer confirmation + operator alert

Failures in 5-7 are logged and never undo the order.
"""
import logging
from typing import Optional

from chatshop.core.audit import AuditLog
from chatshop.core.exceptions import StoreError
from chatshop.db.repository import StoreRepository
from chatshop.schemas.conversation import NegotiationStage, Session, utcnow
from chatshop.schemas.order import OrderDraft, OrderSummary
from chatshop.schemas.records import CustomerProfile, OrderRecord
from chatshop.services import messages
from chatshop.services.inventory_service import check_availability
from chatshop.services.notifications import NotificationDispatcher
from chatshop.services.pricing import calculate_pricing, line_item

logger = logging.getLogger(__name__)


class OrderCommitService:
    def __init__(
        self,
        repository: StoreRepository,
        dispatcher: NotificationDispatcher,
        operator_id: Optional[str] = None,
    ):
        self.repository = repository
        self.dispatcher = dispatcher
        self.operator_id = operator_id

    def build_draft(self, session: Session, customer: CustomerProfile) -> OrderDraft:
        """Recompute every amount from the snapshot; nothing is trusted from the dialogue."""
        negotiation = session.negotiation
        item = line_item(negotiation.product, negotiation.quantity)
        pricing = calculate_pricing(item.unit_price, item.quantity, negotiation.address.region)
        return OrderDraft(
            customer_id=customer.customer_id,
            customer_name=customer.name,
            items=[item],
            pricing=pricing,
            address=negotiation.address,
            payment_method=negotiation.payment_method,
            negotiation_id=negotiation.negotiation_id,
        )

    def committed_order(self, session: Session) -> Optional[OrderRecord]:
        """The order already placed for the session's negotiation, if any."""
        negotiation = session.negotiation
        if negotiation is None:
            return None
        return self.repository.find_order_by_negotiation(negotiation.negotiation_id)

    def commit(self, session: Session, customer: CustomerProfile) -> OrderRecord:
        """
        Commit the session's negotiation. Committing the same negotiation
        twice returns the first order and writes nothing.

        Raises:
            InsufficientStockError: stock changed since confirmation (nothing written)
            RepositoryError: transaction rolled back (nothing written)
            ValueError: negotiation not ready to commit
        """
        negotiation = session.negotiation
        if (
            negotiation is None
            or negotiation.stage != NegotiationStage.AWAITING_CONFIRMATION
            or negotiation.address is None
            or negotiation.payment_method is None
        ):
            raise ValueError("No negotiation awaiting confirmation")

        existing = self.committed_order(session)
        if existing is not None:
            logger.info(f"[COMMIT] {existing.order_id} already placed for this negotiation, not committing again")
            session.negotiation = None
            return existing

        product_id = negotiation.product.product_id
        quantity = negotiation.quantity

        check_availability(self.repository, product_id, quantity)
        draft = self.build_draft(session, customer)

        with self.repository.transaction() as tx:
            order_id = tx.next_order_id()
            order = tx.create_order(order_id, draft)
            remaining = tx.decrement_stock(product_id, quantity)
            tx.record_sale(product_id, quantity, draft.items[0].subtotal)

        logger.info(f"[COMMIT] {order.order_id} for {customer.customer_id}: {quantity} x {product_id}, total {order.total}")
        AuditLog.log_order_created(order.order_id, customer.customer_id, order.total, order.payment_method)
        AuditLog.log_stock_change(product_id, -quantity, remaining, f"order {order.order_id}")

        negotiation.stage = NegotiationStage.COMMITTED
        self._update_customer(customer, draft, order)
        session.negotiation = None
        self._notify(order)
        return order

    def _update_customer(self, customer: CustomerProfile, draft: OrderDraft, order: OrderRecord) -> None:
        try:
            self.repository.add_address(customer.customer_id, draft.address)
            self.repository.append_customer_order(
                customer.customer_id,
                OrderSummary(order_id=order.order_id, total=order.total, date=order.created_at or utcnow()),
            )
        except StoreError as e:
            logger.error(f"[COMMIT] Order {order.order_id} saved but customer update failed: {e}")
            AuditLog.log_negotiation("commit_followup_failed", customer.customer_id, details=str(e))

    def _notify(self, order: OrderRecord) -> None:
        try:
            self.dispatcher.enqueue(order.customer_id, messages.order_confirmation(order), kind="order_confirmation")
            if self.operator_id:
                self.dispatcher.enqueue(self.operator_id, messages.operator_new_order(order), kind="operator_alert")
        except Exception as e:
            logger.error(f"[COMMIT] Could not queue notifications for {order.order_id}: {e}")

