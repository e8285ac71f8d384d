"""
Order negotiation state machine.

    NONE -> COLLECTING_ADDRESS -> AWAITING_CONFIRMATION -> COMMITTED
                 |                        |
                 +------> CANCELLED <-----+

NONE goes straight to AWAITING_CONFIRMATION when the customer already has a
usable address on file. Any open negotiation returns to NONE after the
inactivity timeout (see NegotiationSweeper).

Slot replies (address, confirm, cancel) are recognised here without the
oracle. A confirmation must be explicit: a confirm word, or a bare option or
method. Questions ("Do you accept bank transfer?") are never confirmations.
handle_reply() returns None for anything else so the orchestrator can
classify it normally.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from chatshop.core.audit import AuditLog
from chatshop.core.exceptions import (
    InsufficientStockError,
    ProductNotFoundError,
    RepositoryError,
)
from chatshop.db.repository import StoreRepository
from chatshop.schemas.conversation import Negotiation, NegotiationStage, Session
from chatshop.schemas.order import Address, PaymentMethod
from chatshop.schemas.records import CustomerProfile, OrderRecord
from chatshop.services import messages
from chatshop.services.address import parse_address
from chatshop.services.inventory_service import check_availability, resolve_product
from chatshop.services.order_service import OrderCommitService
from chatshop.services.pricing import calculate_pricing

logger = logging.getLogger(__name__)

CANCEL_PATTERN = re.compile(r"\b(cancel|abort|never\s*mind|forget\s+it)\b", re.IGNORECASE)
CONFIRM_PATTERN = re.compile(r"\b(confirm|confirmed|yes|yeah|yep|ok|okay|proceed|go\s+ahead|place\s+(it|the\s+order))\b", re.IGNORECASE)
COD_PATTERN = re.compile(r"\b(cod|cash|pay\s+on\s+delivery|on\s+delivery)\b", re.IGNORECASE)
TRANSFER_PATTERN = re.compile(r"\b(transfer|bank|paystack|card|pay\s+now|prepaid)\b", re.IGNORECASE)
OPTION_PATTERN = re.compile(r"^\s*([12])\s*$")
# A reply that is nothing but a method, e.g. "cod" or "bank transfer."
BARE_METHOD_PATTERN = re.compile(
    r"^\s*(cod|cash|cash\s+on\s+delivery|pay\s+on\s+delivery|transfer|bank\s+transfer|bank|card|paystack)\s*[.!]*\s*$",
    re.IGNORECASE,
)
QUESTION_PATTERN = re.compile(
    r"\?\s*$|^\s*(do|does|can|could|what|which|how|is|are|will|would|should)\b",
    re.IGNORECASE,
)


@dataclass
class Outcome:
    """Result of one handled turn step."""
    replies: List[str]
    action: str
    order_id: Optional[str] = None


def detect_payment_method(text: str) -> Optional[PaymentMethod]:
    """The single method named in the reply. None when none, or both, are named."""
    option = OPTION_PATTERN.match(text)
    if option:
        return PaymentMethod.COD if option.group(1) == "1" else PaymentMethod.TRANSFER
    transfer = TRANSFER_PATTERN.search(text)
    cod = COD_PATTERN.search(text)
    if transfer and cod:
        return None
    if transfer:
        return PaymentMethod.TRANSFER
    if cod:
        return PaymentMethod.COD
    return None


def is_affirmative(text: str) -> bool:
    """Explicit go-ahead: a confirm word, or a bare option or method. Never a question."""
    if QUESTION_PATTERN.search(text):
        return False
    return bool(CONFIRM_PATTERN.search(text) or OPTION_PATTERN.match(text) or BARE_METHOD_PATTERN.match(text))


def address_on_file(customer: CustomerProfile) -> Optional[Address]:
    stored = customer.default_address()
    if not stored or not stored.get("street") or not stored.get("region"):
        return None
    return Address(
        street=stored["street"],
        city=stored.get("city") or stored["region"],
        region=stored["region"],
        landmark=stored.get("landmark"),
    )


class NegotiationMachine:
    def __init__(self, repository: StoreRepository, commit_service: OrderCommitService, timeout_seconds: int = 1800):
        self.repository = repository
        self.commit_service = commit_service
        self.timeout_seconds = timeout_seconds

    # ---- NONE -> COLLECTING_ADDRESS | AWAITING_CONFIRMATION ----

    def start(
        self,
        session: Session,
        customer: CustomerProfile,
        target: Optional[str],
        quantity: Optional[int],
        message: Optional[str] = None,
    ) -> Outcome:
        if session.negotiation is not None:
            # One negotiation at a time: finish or cancel the current one first
            logger.info(f"[NEGOTIATION] {customer.customer_id} asked for a new order while one is pending")
            return Outcome([messages.pending_negotiation(session.negotiation.product)], "order")

        product = resolve_product(self.repository, target, message)
        if product is None or product.status in ("inactive", "discontinued"):
            return Outcome([messages.product_not_found(target)], "order")

        quantity = quantity or 1
        if product.stock <= 0 or product.status == "out-of-stock":
            return Outcome([messages.out_of_stock(product)], "order")
        if product.stock < quantity:
            logger.info(f"[NEGOTIATION] {product.product_id}: asked {quantity}, only {product.stock}")
            return Outcome(
                [
                    messages.insufficient_stock(product, quantity, product.stock)
                    + f"\nReply \"I want {product.stock} {product.name}\" if that works for you."
                ],
                "order",
            )

        negotiation = Negotiation(product=product, quantity=quantity)
        address = address_on_file(customer)
        session.negotiation = negotiation
        AuditLog.log_negotiation("started", customer.customer_id, product.product_id)

        if address is None:
            negotiation.stage = NegotiationStage.COLLECTING_ADDRESS
            logger.info(f"[NEGOTIATION] {customer.customer_id}: {quantity} x {product.product_id}, collecting address")
            return Outcome([messages.address_request(product, quantity)], "order")

        self._price(negotiation, address)
        logger.info(f"[NEGOTIATION] {customer.customer_id}: {quantity} x {product.product_id}, awaiting confirmation")
        return Outcome([self._summary(negotiation)], "order")

    # ---- slot replies ----

    def handle_reply(self, session: Session, customer: CustomerProfile, text: str) -> Optional[Outcome]:
        negotiation = session.negotiation
        if negotiation is None:
            return None

        if CANCEL_PATTERN.search(text):
            return self.cancel(session, customer)

        if negotiation.stage == NegotiationStage.COLLECTING_ADDRESS:
            return self._receive_address(session, text)

        if negotiation.stage == NegotiationStage.AWAITING_CONFIRMATION:
            if is_affirmative(text):
                return self.confirm(session, customer, detect_payment_method(text))

        return None

    def _receive_address(self, session: Session, text: str) -> Outcome:
        negotiation = session.negotiation
        address = parse_address(text)
        negotiation.touch()
        if address is None:
            return Outcome([messages.invalid_address(negotiation.product)], "order")
        self._price(negotiation, address)
        logger.info(f"[NEGOTIATION] {session.customer_id}: address in {address.region}, awaiting confirmation")
        return Outcome([self._summary(negotiation)], "order")

    # ---- AWAITING_CONFIRMATION -> COMMITTED ----

    def confirm(self, session: Session, customer: CustomerProfile, method: Optional[PaymentMethod]) -> Outcome:
        negotiation = session.negotiation
        if negotiation is None or negotiation.stage != NegotiationStage.AWAITING_CONFIRMATION:
            return Outcome([messages.NO_PENDING_ORDER], "order")

        placed = self.commit_service.committed_order(session)
        if placed is not None:
            # Redelivered confirmation whose first turn was not saved
            session.negotiation = None
            return self._placed(placed)

        negotiation.touch()
        if method is None:
            return Outcome([messages.payment_method_prompt()], "order")

        try:
            check_availability(self.repository, negotiation.product.product_id, negotiation.quantity)
        except InsufficientStockError as e:
            return self._stock_changed(session, customer, e.available)
        except ProductNotFoundError:
            return self._discard(session, customer, messages.product_not_found(negotiation.product.name), "product_gone")

        negotiation.payment_method = method
        try:
            order = self.commit_service.commit(session, customer)
        except InsufficientStockError as e:
            negotiation.payment_method = None
            return self._stock_changed(session, customer, e.available)
        except ProductNotFoundError:
            return self._discard(session, customer, messages.product_not_found(negotiation.product.name), "product_gone")
        except RepositoryError as e:
            negotiation.payment_method = None
            logger.error(f"[COMMIT] Rolled back for {customer.customer_id}: {e}")
            AuditLog.log_negotiation("commit_failed", customer.customer_id, negotiation.product.product_id, str(e))
            return Outcome([messages.RETRY_LATER], "order")

        return self._placed(order)

    def _placed(self, order: OrderRecord) -> Outcome:
        reply = (
            f"🎉 Order {order.order_id} placed! Total: {messages.money(order.total)}.\n"
            "Your confirmation details are on the way."
        )
        return Outcome([reply], "order", order_id=order.order_id)

    def _stock_changed(self, session: Session, customer: CustomerProfile, available: int) -> Outcome:
        """Revise the quantity down to what is left, or drop the negotiation if nothing is."""
        negotiation = session.negotiation
        product = negotiation.product
        if available <= 0:
            return self._discard(session, customer, messages.out_of_stock(product), "out_of_stock")

        requested = negotiation.quantity
        refreshed = self.repository.find_product(product.product_id) or product
        negotiation.product = refreshed.model_copy(update={"stock": available})
        negotiation.quantity = available
        self._price(negotiation, negotiation.address)
        logger.info(f"[NEGOTIATION] {customer.customer_id}: quantity revised {requested} -> {available}")
        return Outcome(
            [
                messages.insufficient_stock(product, requested, available)
                + " I've updated your order to that quantity.",
                self._summary(negotiation),
            ],
            "order",
        )

    # ---- -> CANCELLED / NONE ----

    def cancel(self, session: Session, customer: CustomerProfile) -> Outcome:
        negotiation = session.negotiation
        if negotiation is None:
            return Outcome([messages.NO_PENDING_ORDER], "order")
        negotiation.stage = NegotiationStage.CANCELLED
        AuditLog.log_negotiation("cancelled", customer.customer_id, negotiation.product.product_id)
        session.negotiation = None
        return Outcome([messages.ORDER_CANCELLED], "order")

    def expire(self, session: Session, now: Optional[datetime] = None) -> bool:
        """Drop the negotiation if it has been idle past the timeout. Silent."""
        negotiation = session.negotiation
        if negotiation is None or not negotiation.is_expired(self.timeout_seconds, now):
            return False
        AuditLog.log_negotiation("expired", session.customer_id, negotiation.product.product_id)
        session.negotiation = None
        return True

    # ---- helpers ----

    def _discard(self, session: Session, customer: CustomerProfile, reply: str, reason: str) -> Outcome:
        negotiation = session.negotiation
        AuditLog.log_negotiation("discarded", customer.customer_id, negotiation.product.product_id, reason)
        session.negotiation = None
        return Outcome([reply], "order")

    @staticmethod
    def _price(negotiation: Negotiation, address: Address) -> None:
        negotiation.address = address
        negotiation.pricing = calculate_pricing(negotiation.product.price, negotiation.quantity, address.region)
        negotiation.stage = NegotiationStage.AWAITING_CONFIRMATION
        negotiation.touch()

    @staticmethod
    def _summary(negotiation: Negotiation) -> str:
        return messages.order_summary(negotiation.product, negotiation.quantity, negotiation.address, negotiation.pricing)
