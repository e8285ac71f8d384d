"""
Intent oracle adapter: OracleRequest in, OracleResult out, never raises.

Outcomes:
- Valid JSON matching OracleResult        -> that result (source="llm")
- Text that is not JSON / fails the schema -> action general, raw text
                                             relayed verbatim (source="raw")
- Invocation failure of any kind          -> action escalate with a fixed
                                             message, requires_human=True
- No API key configured                   -> keyword classifier
"""

import json
import logging
from typing import Optional

from pydantic import ValidationError

from chatshop.core.exceptions import OracleError
from chatshop.services.messages import ESCALATION_FALLBACK

from .fallback import classify_fallback
from .groq_client import GroqClient, get_groq_client
from .intent_schema import OracleAction, OracleRequest, OracleResult
from .prompts import SYSTEM_PROMPT, build_prompt

logger = logging.getLogger(__name__)


def strip_code_fences(text: str) -> str:
    """Remove a ```json ... ``` wrapper if the model added one."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        if lines[0].strip().startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines).strip()
    return cleaned


def parse_oracle_output(raw: str) -> OracleResult:
    """Validate raw oracle text; non-conforming text is relayed as-is."""
    try:
        data = json.loads(strip_code_fences(raw))
        if not isinstance(data, dict):
            raise ValueError("top-level JSON is not an object")
        return OracleResult.model_validate(data)
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning(f"Oracle output not usable ({type(e).__name__}), relaying raw text")
        return OracleResult(message=raw, action=OracleAction.GENERAL, requires_human=False, source="raw")


def escalation_result() -> OracleResult:
    return OracleResult(
        message=ESCALATION_FALLBACK,
        action=OracleAction.ESCALATE,
        requires_human=True,
        source="error",
    )


class IntentOracle:
    """Synchronous; the orchestrator runs classify() in an executor."""

    def __init__(self, client: Optional[GroqClient] = None):
        self.client = client if client is not None else get_groq_client()

    def classify(self, request: OracleRequest) -> OracleResult:
        if not self.client.is_available():
            logger.debug("LLM not available - using keyword classifier")
            return classify_fallback(request)

        prompt = build_prompt(request)
        logger.debug(f"Calling LLM for message: {request.message[:50]}...")
        try:
            raw = self.client.complete(prompt, system=SYSTEM_PROMPT)
        except OracleError as e:
            logger.error(f"❌ Oracle invocation failed: {e}")
            return escalation_result()
        except Exception as e:
            logger.error(f"❌ Unexpected oracle error: {type(e).__name__}: {e}")
            return escalation_result()

        result = parse_oracle_output(raw)
        logger.info(f"✅ Oracle classified: action={result.action.value}, source={result.source}")
        return result
