"""
Operator side-channel.

Messages from the configured admin id that start with the command prefix
are handled here and never reach the oracle or any customer session.
"""
import logging
from typing import Optional

from chatshop.core.exceptions import InvalidStatusTransition, OrderNotFoundError, ProductNotFoundError, StoreError
from chatshop.db.repository import StoreRepository
from chatshop.schemas.conversation import InboundMessage
from chatshop.schemas.order import OrderStatus

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "🔧 Admin commands\n\n"
    "{p}help - this list\n"
    "{p}updatestock <productId> <qty> - set stock, e.g. {p}updatestock PRD-001 20\n"
    "{p}updateorder <orderId> <status> - e.g. {p}updateorder ORD-2410-0001 shipped\n\n"
    "Statuses: " + ", ".join(s.value for s in OrderStatus)
)


class AdminCommandHandler:
    def __init__(self, repository: StoreRepository, admin_id: Optional[str], prefix: str = "!"):
        self.repository = repository
        self.admin_id = admin_id
        self.prefix = prefix

    def matches(self, inbound: InboundMessage) -> bool:
        return bool(self.admin_id) and inbound.sender_id == self.admin_id and inbound.text.strip().startswith(self.prefix)

    def handle(self, text: str) -> str:
        parts = text.strip()[len(self.prefix):].split()
        command = parts[0].lower() if parts else ""
        args = parts[1:]
        logger.info(f"[ADMIN] {command} {' '.join(args)}")

        if command == "help":
            return HELP_TEXT.format(p=self.prefix)
        if command == "updatestock":
            return self._update_stock(args)
        if command == "updateorder":
            return self._update_order(args)
        return f"❓ Unknown command. Send {self.prefix}help for the list."

    def _update_stock(self, args) -> str:
        if len(args) != 2 or not args[1].isdigit():
            return f"Usage: {self.prefix}updatestock <productId> <qty>"
        product_id, quantity = args[0].upper(), int(args[1])
        try:
            product = self.repository.set_stock(product_id, quantity)
        except ProductNotFoundError:
            return f"❌ Product {product_id} not found."
        except StoreError as e:
            logger.error(f"[ADMIN] updatestock failed: {e}")
            return "❌ Could not update stock right now."
        return f"✅ {product.name} ({product.product_id}) stock set to {product.stock} [{product.status}]"

    def _update_order(self, args) -> str:
        if len(args) != 2:
            return f"Usage: {self.prefix}updateorder <orderId> <status>"
        order_id = args[0].upper()
        try:
            status = OrderStatus(args[1].lower())
        except ValueError:
            return f"❌ Unknown status '{args[1]}'."
        try:
            order = self.repository.update_order_status(order_id, status, updated_by="admin")
        except OrderNotFoundError:
            return f"❌ Order {order_id} not found."
        except InvalidStatusTransition as e:
            return f"❌ {e}."
        except StoreError as e:
            logger.error(f"[ADMIN] updateorder failed: {e}")
            return "❌ Could not update the order right now."
        return f"✅ {order.order_id} is now {order.status} (payment {order.payment_status})"
