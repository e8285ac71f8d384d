"""
Prompt construction for the intent oracle.

The prompt bundles, in this order: store rules, the customer profile,
up to CATALOG_PROMPT_LIMIT catalog entries, up to 5 open orders, the last
3 turns and the current message. The LLM must answer with one JSON object;
prices and totals in its reply text are never used for billing.
"""

import json

from chatshop.core.business import (
    BUSINESS_HOURS,
    CURRENCY,
    FREE_DELIVERY_MINIMUM,
    STORE_NAME,
)

from .intent_schema import OracleRequest

# ==============================================================================
# SYSTEM PROMPT
# ==============================================================================

SYSTEM_PROMPT = f"""You are the friendly shopping assistant of {STORE_NAME}, a Nigerian electronics store that sells over chat.

Your job:
- Understand what the customer wants and reply briefly and warmly.
- Recommend ONLY products from the catalog you are given. Never invent products or prices.
- Prices are in Naira ({CURRENCY}). Orders over {CURRENCY}{FREE_DELIVERY_MINIMUM:,.0f} get free delivery.
- Business hours: {BUSINESS_HOURS}.
- You do NOT place orders, change stock or compute totals. The store does that.

Choose exactly ONE action:
- browse: customer is looking around, asking about products, prices or availability
- order: customer clearly wants to buy a specific product
- track: customer asks about an existing order
- escalate: complaint, refund, damaged item, or customer asks for a human
- general: greetings, thanks, store questions, anything else

Respond with ONLY this JSON (no markdown, no explanation):
{{
  "message": "your reply to the customer",
  "action": "browse|order|track|escalate|general",
  "requiresHuman": false,
  "targetProduct": "product id when action is order, else null",
  "quantity": 1,
  "suggestedProducts": ["product ids worth showing"]
}}"""


def _catalog_lines(request: OracleRequest) -> str:
    if not request.candidate_products:
        return "(catalog unavailable)"
    return "\n".join(
        f"- {p.product_id} | {p.name} | {CURRENCY}{p.price:,.0f} | stock {p.stock} | {p.category}"
        for p in request.candidate_products
    )


def _order_lines(request: OracleRequest) -> str:
    if not request.open_orders:
        return "(none)"
    return "\n".join(
        f"- {o.order_id} | {o.status} | {CURRENCY}{o.total:,.0f}"
        for o in request.open_orders[:5]
    )


def _history_lines(request: OracleRequest) -> str:
    if not request.history:
        return "(new conversation)"
    lines = []
    for turn in request.history[-3:]:
        lines.append(f"Customer: {turn.user_message}")
        lines.append(f"Assistant: {turn.reply}")
    return "\n".join(lines)


def build_prompt(request: OracleRequest) -> str:
    """Render the user prompt for one classification."""
    customer = request.customer
    profile = {
        "name": customer.name,
        "total_orders": customer.total_orders,
        "vip_tier": customer.vip_tier,
        "has_address": bool(customer.addresses),
    }
    return (
        f"CUSTOMER PROFILE:\n{json.dumps(profile)}\n\n"
        f"CATALOG:\n{_catalog_lines(request)}\n\n"
        f"OPEN ORDERS:\n{_order_lines(request)}\n\n"
        f"RECENT CONVERSATION:\n{_history_lines(request)}\n\n"
        f"CUSTOMER MESSAGE:\n{request.message}\n\n"
        "JSON:"
    )
