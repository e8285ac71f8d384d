from chatshop.models.customer import Customer
from chatshop.models.product import Product
from chatshop.models.order import Order, OrderSequence
from chatshop.models.conversation_state import ConversationState

__all__ = ["Customer", "Product", "Order", "OrderSequence", "ConversationState"]
