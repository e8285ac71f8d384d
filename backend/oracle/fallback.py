import re
import logging
from typing import Optional

from chatshop.core.business import STORE_NAME

from .intent_schema import OracleAction, OracleRequest, OracleResult

logger = logging.getLogger(__name__)

TRACK_KEYWORDS = [
    r'\b(track|tracking)\b',
    r'\bwhere\s+is\s+my\b',
    r'\border\s+status\b',
    r'\bORD-\d{4}-\d{4}\b',
]

ESCALATE_KEYWORDS = [
    r'\b(human|agent|representative|manager)\b',
    r'\b(complain|complaint|refund|damaged|broken|fake|scam)\b',
    r'\bspeak\s+to\b',
]

ORDER_KEYWORDS = [
    r'\b(i\s+want|i\s+need|i\'?ll\s+take|buy|purchase|order)\b',
    r'\b(get\s+me|send\s+me)\b',
]

BROWSE_KEYWORDS = [
    r'\b(show|browse|catalog|catalogue|products?|items?)\b',
    r'\b(price|how\s+much|available|in\s+stock|do\s+you\s+have)\b',
    r'\b(phones?|laptops?|headphones?|accessories|audio|smartphones?|tablets?|watch(es)?)\b',
]

GREETING = re.compile(r'^\s*(hi|hello|hey|good\s+(morning|afternoon|evening)|howdy)\b', re.IGNORECASE)

_PRODUCT_ID = re.compile(r'\bPRD-\d{3,}\b', re.IGNORECASE)
_QUANTITY = [
    re.compile(r'\b(?:qty|quantity|x)\s*[:=]?\s*(\d{1,4})\b', re.IGNORECASE),
    re.compile(r'\b(\d{1,4})\s*(?:units?|pieces?|pcs|of)\b', re.IGNORECASE),
    re.compile(r'\b(\d{1,4})\s*x\b', re.IGNORECASE),
]
_NUMBER_WORDS = {"one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
                 "seven": 7, "eight": 8, "nine": 9, "ten": 10}
_FILLER = re.compile(
    r"\b(i\s+want|i\s+need|i'?ll\s+take|buy|purchase|order|get\s+me|send\s+me|please|the|a|an|some|qty|quantity|units?|pieces?|pcs|of)\b",
    re.IGNORECASE,
)


def classify_fallback(request: OracleRequest) -> OracleResult:
    """Keyword classifier used when no LLM is configured."""
    message = request.message.strip()
    lowered = message.lower()

    logger.debug(f"Fallback classifying: {message[:50]}...")

    action = _detect_action(lowered)
    product = _match_product(message, request) if action in (OracleAction.ORDER, OracleAction.BROWSE) else None

    if action == OracleAction.ORDER:
        target = product.product_id if product else _extract_target(message)
        result = OracleResult(
            message="Let me set that up for you! 🛒",
            action=action,
            target_product=target,
            quantity=_extract_quantity(message),
            source="fallback",
        )
    elif action == OracleAction.BROWSE:
        suggested = [product.product_id] if product else [p.product_id for p in request.candidate_products[:5]]
        result = OracleResult(
            message="Here are some products you might like 👇",
            action=action,
            suggested_products=suggested,
            source="fallback",
        )
    elif action == OracleAction.TRACK:
        result = OracleResult(message="Let me check your orders 📦", action=action, source="fallback")
    elif action == OracleAction.ESCALATE:
        result = OracleResult(
            message="I'm sorry about that. Let me get a member of our team to help you.",
            action=action,
            requires_human=True,
            source="fallback",
        )
    else:
        name = request.customer.name or "there"
        if GREETING.search(message):
            reply = f"Hello {name}! 👋 Welcome to {STORE_NAME}. Say \"show products\" to see what we have."
        else:
            reply = "I can help you browse products, place an order or track an order. What would you like? 😊"
        result = OracleResult(message=reply, action=OracleAction.GENERAL, source="fallback")

    logger.info(f"🔄 Fallback classified: action={result.action.value}")
    return result


def _detect_action(message: str) -> OracleAction:
    """Priority: escalate > track > order > browse > general."""
    for patterns, action in (
        (ESCALATE_KEYWORDS, OracleAction.ESCALATE),
        (TRACK_KEYWORDS, OracleAction.TRACK),
        (ORDER_KEYWORDS, OracleAction.ORDER),
        (BROWSE_KEYWORDS, OracleAction.BROWSE),
    ):
        for pattern in patterns:
            if re.search(pattern, message, re.IGNORECASE):
                return action
    return OracleAction.GENERAL


def _match_product(message: str, request: OracleRequest):
    """Best catalog match by id, then by shared name words."""
    match = _PRODUCT_ID.search(message)
    if match:
        wanted = match.group(0).upper()
        for product in request.candidate_products:
            if product.product_id == wanted:
                return product

    words = set(re.findall(r'[a-z0-9]+', message.lower()))
    best, best_score = None, 0
    for product in request.candidate_products:
        name_words = [w for w in re.findall(r'[a-z0-9]+', product.name.lower()) if len(w) > 2]
        score = sum(1 for w in name_words if w in words)
        if score > best_score:
            best, best_score = product, score
    return best


def _extract_target(message: str) -> Optional[str]:
    """Product id, or the words left after removing order phrasing and numbers."""
    match = _PRODUCT_ID.search(message)
    if match:
        return match.group(0).upper()
    text = _FILLER.sub(" ", message)
    text = re.sub(r'\d+', ' ', text)
    text = re.sub(r'[^\w\s-]', ' ', text)
    text = re.sub(r'\s+', ' ', text).strip()
    return text or None


def _extract_quantity(message: str) -> Optional[int]:
    stripped = _PRODUCT_ID.sub(" ", message)
    for pattern in _QUANTITY:
        match = pattern.search(stripped)
        if match:
            return int(match.group(1))
    for word, value in _NUMBER_WORDS.items():
        if re.search(rf'\b{word}\b', stripped, re.IGNORECASE):
            return value
    # A lone number is most likely a quantity
    numbers = re.findall(r'\b(\d{1,3})\b', stripped)
    if len(numbers) == 1:
        return int(numbers[0])
    return None
