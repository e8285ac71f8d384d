"""Intent oracle (Groq LLM) for the chat storefront.

The oracle only classifies a message and drafts reply text. Prices, stock
and orders are always decided by chatshop services.

If no API key is configured the keyword classifier is used instead.
"""

from .intent_parser import IntentOracle, parse_oracle_output
from .intent_schema import OracleAction, OracleRequest, OracleResult
from .fallback import classify_fallback

__all__ = [
    "IntentOracle",
    "parse_oracle_output",
    "OracleAction",
    "OracleRequest",
    "OracleResult",
    "classify_fallback",
]
