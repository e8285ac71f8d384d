"""Customer- and operator-facing message text. Pure formatting, no I/O."""
from decimal import Decimal
from typing import Iterable

from chatshop.core.business import (
    BANK_DETAILS,
    BUSINESS_HOURS,
    CURRENCY,
    ESCALATION_RESPONSE_TIME,
    FREE_DELIVERY_MINIMUM,
    PAYMENT_LINK_BASE,
    PAYMENT_METHODS,
    STORE_NAME,
    SUPPORT_EMAIL,
    SUPPORT_PHONE,
)
from chatshop.schemas.order import Address, PaymentMethod, PricingBreakdown
from chatshop.schemas.records import CustomerProfile, OrderRecord, ProductSnapshot

GENERIC_APOLOGY = (
    "I apologize, but I'm having trouble processing your request right now. "
    "Please try again in a moment, or contact our support team. 🙏"
)
RETRY_LATER = (
    "There was an error processing your order. Nothing has been charged. "
    "Please reply CONFIRM again in a moment, or contact support. 🙏"
)
ESCALATION_FALLBACK = (
    "I'm here to help! Let me connect you with our support team for better assistance."
)
NO_PENDING_ORDER = "I don't have a pending order for you. Would you like to start a new order? 🛒"
ORDER_CANCELLED = "Your order has been cancelled. No worries, just tell me whenever you want something else! 😊"


def money(amount) -> str:
    """₦1,450,000 style; kobo only when present."""
    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return f"{CURRENCY}{amount:,.0f}"
    return f"{CURRENCY}{amount:,.2f}"


def welcome(customer: CustomerProfile) -> str:
    return (
        f"👋 Welcome to {STORE_NAME}, {customer.display_name}!\n\n"
        "You can ask me to:\n"
        "• show products (e.g. \"show me phones\")\n"
        "• place an order (e.g. \"I want AirPods Pro, 2\")\n"
        "• track your orders (\"track my order\")\n\n"
        f"🕘 {BUSINESS_HOURS}"
    )


def product_card(product: ProductSnapshot) -> str:
    stock = f"✅ In Stock ({product.stock})" if product.stock > 0 else "❌ Out of Stock"
    lines = [
        f"{product.name} ({product.product_id})",
        f"💵 Price: {money(product.price)}",
        f"📦 {stock}",
        f"🏷️ Category: {product.category}",
    ]
    if product.description:
        lines.append("")
        lines.append(product.description)
    lines.append("")
    lines.append(f"To order, just say \"I want {product.name}\" 🛒")
    return "\n".join(lines)


def catalog_overview(products: Iterable[ProductSnapshot]) -> str:
    products = list(products)
    if not products:
        return "We're restocking right now. Please check back soon! 📦"
    lines = ["🛍️ Here's what we have:"]
    for product in products:
        lines.append(f"• {product.product_id} {product.name} - {money(product.price)}")
    lines.append("")
    lines.append("Reply with the product name or ID to order.")
    return "\n".join(lines)


def product_not_found(target: str | None) -> str:
    if target:
        return f"Sorry, I couldn't find \"{target}\" in our catalog. Say \"show products\" to see what we have. 🔍"
    return "Which product would you like? Tell me the name or product ID (e.g. PRD-005). 🔍"


def out_of_stock(product: ProductSnapshot) -> str:
    return f"😔 Sorry, {product.name} is currently out of stock. Would you like to see similar items?"


def insufficient_stock(product: ProductSnapshot, requested: int, available: int) -> str:
    unit = "unit" if available == 1 else "units"
    return (
        f"⚠️ Only {available} {unit} of {product.name} available "
        f"(you asked for {requested})."
    )


def address_request(product: ProductSnapshot, quantity: int) -> str:
    return (
        f"Great choice! 🎉 {quantity} x {product.name} ({money(product.price)} each).\n\n"
        "📍 Where should we deliver?\n"
        "Please send: Street, City, State, Landmark (optional)\n\n"
        "Example: 15 Allen Avenue, Ikeja, Lagos, near Computer Village"
    )


def order_summary(product: ProductSnapshot, quantity: int, address: Address, pricing: PricingBreakdown) -> str:
    if pricing.free_delivery:
        delivery = f"{money(0)} 🎁 FREE DELIVERY (orders over {money(FREE_DELIVERY_MINIMUM)})"
    else:
        delivery = money(pricing.delivery_fee)
    lines = [
        "📋 ORDER SUMMARY",
        "",
        f"Product: {product.name}",
        f"Quantity: {quantity}",
        f"Unit Price: {money(product.price)}",
        f"Subtotal: {money(pricing.subtotal)}",
        f"Delivery Fee: {delivery}",
    ]
    if pricing.discount > 0:
        lines.append(f"Bulk Discount: -{money(pricing.discount)}")
    lines += [
        f"TOTAL: {money(pricing.total)}",
        "",
        "📍 Delivery Address:",
        address.one_line(),
    ]
    if address.landmark:
        lines.append(f"Landmark: {address.landmark}")
    lines += [
        "",
        f"⏱️ Estimated Delivery: {pricing.estimated_days}",
        "",
        "💳 Payment Options:",
        "1. Cash on Delivery",
        "2. Bank Transfer",
        "",
        "To confirm, reply with:",
        "✅ \"CONFIRM COD\" for Cash on Delivery",
        "✅ \"CONFIRM TRANSFER\" for Bank Transfer",
        "",
        "Or reply \"CANCEL\" to cancel this order.",
    ]
    return "\n".join(lines)


def payment_method_prompt() -> str:
    return (
        "How would you like to pay? 💳\n"
        "Reply \"CONFIRM COD\" for Cash on Delivery or "
        "\"CONFIRM TRANSFER\" for Bank Transfer."
    )


def pending_negotiation(product: ProductSnapshot) -> str:
    return (
        f"You still have an order for {product.name} in progress. 🛒\n"
        "Please confirm it (\"CONFIRM COD\" / \"CONFIRM TRANSFER\") or reply "
        "\"CANCEL\" before starting a new one."
    )


def invalid_address(product: ProductSnapshot) -> str:
    return (
        "I couldn't read that address. 🤔\n"
        "Please send your delivery address in this format:\n"
        "Street, City, State, Landmark (optional)\n\n"
        "Example: 15 Allen Avenue, Ikeja, Lagos, near Computer Village\n\n"
        f"Your order for {product.name} is still open. Reply \"CANCEL\" to drop it."
    )


def order_confirmation(order: OrderRecord) -> str:
    """Customer confirmation; transfer orders get payment instructions."""
    address = order.delivery.get("address", {})
    header = [
        "✅ Order Confirmed!",
        "",
        f"Order ID: {order.order_id}",
        f"Total: {money(order.total)}",
        "",
    ]
    if order.payment_method == PaymentMethod.TRANSFER.value:
        body = [
            "💳 Payment Instructions:",
            "1. Use the link below to pay securely",
            "2. Complete payment within 24 hours",
            "3. Your order ships immediately after payment",
            "",
            "🔗 Payment Link:",
            f"{PAYMENT_LINK_BASE}/{order.order_id}",
            "",
            "OR Bank Transfer Details:",
            f"Bank: {BANK_DETAILS['bank']}",
            f"Account: {BANK_DETAILS['account']}",
            f"Name: {BANK_DETAILS['name']}",
            "",
            "After payment, send your payment reference.",
            "",
            "Thank you for shopping with us! 🎉",
        ]
    else:
        body = ["📦 Order Details:"]
        body += [
            f"• {item['name']} x{item['quantity']} - {money(item['unit_price'])}"
            for item in order.items
        ]
        body += [
            "",
            "📍 Delivery To:",
            address.get("street", ""),
            f"{address.get('city', '')}, {address.get('region', '')}",
            "",
            f"💳 Payment: {PAYMENT_METHODS['cod']}",
            f"⏱️ Estimated Delivery: {order.delivery.get('estimated_days')}",
            "",
            f"To track your order, reply with \"Track {order.order_id}\"",
            "",
            f"Thank you for shopping with {STORE_NAME}! 🎉",
        ]
    return "\n".join(header + body)


def operator_new_order(order: OrderRecord) -> str:
    address = order.delivery.get("address", {})
    payment = "COD" if order.payment_method == PaymentMethod.COD.value else "Transfer"
    return (
        "🛒 NEW ORDER RECEIVED!\n\n"
        f"Order ID: {order.order_id}\n"
        f"Customer: {order.customer_name or order.customer_id}\n"
        f"Items: {len(order.items)}\n"
        f"Total: {money(order.total)}\n"
        f"Payment: {payment}\n"
        f"Location: {address.get('region', '-')}"
    )


def escalation(message: str | None = None) -> str:
    intro = message or "I understand this requires personal attention. I'm connecting you with our support team right away! 👤"
    return (
        f"{intro}\n\n"
        f"They'll respond within {ESCALATION_RESPONSE_TIME}.\n\n"
        f"Support: {SUPPORT_PHONE}\n"
        f"Email: {SUPPORT_EMAIL}"
    )


def operator_escalation(customer: CustomerProfile, original_message: str) -> str:
    return (
        "🚨 CUSTOMER NEEDS ASSISTANCE\n\n"
        f"From: {customer.display_name}\n"
        f"ID: {customer.customer_id}\n"
        f"VIP: {'Yes' if customer.is_vip else 'No'}\n\n"
        f"Message: \"{original_message}\"\n\n"
        "Please respond ASAP!"
    )


STATUS_EMOJI = {
    "pending": "⏳",
    "confirmed": "✅",
    "processing": "📦",
    "shipped": "🚚",
    "delivered": "🎉",
    "cancelled": "❌",
}


def order_status(order: OrderRecord) -> str:
    emoji = STATUS_EMOJI.get(order.status, "📋")
    placed = order.created_at.strftime("%d %b %Y") if order.created_at else "-"
    return (
        f"{emoji} Order {order.order_id}\n"
        f"Status: {order.status.upper()}\n"
        f"Total: {money(order.total)}\n"
        f"Payment: {order.payment_status}\n"
        f"Placed: {placed}"
    )


def no_orders() -> str:
    return "You don't have any orders yet. Say \"show products\" to start shopping! 🛍️"
