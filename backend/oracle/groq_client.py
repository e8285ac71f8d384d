"""
Groq API client - the only place the intent oracle talks to the network.

The client makes exactly one attempt per call. Timeouts, rate limits and
API errors are raised as OracleError; deciding what the customer sees is
the parser's job, and retrying is nobody's (the customer can just resend).
"""

import logging
from typing import Optional

from groq import Groq, APIError, APITimeoutError, RateLimitError

from chatshop.core.config import settings
from chatshop.core.exceptions import OracleError

# NEVER log API keys
logger = logging.getLogger(__name__)


class GroqClient:
    """
    Thin wrapper around groq.Groq chat completions.

    - Model: settings.GROQ_MODEL (llama-3.3-70b-versatile by default)
    - Temperature: low, replies should be consistent
    - Timeout: settings.ORACLE_TIMEOUT_SECONDS
    - Retries: none
    """

    TEMPERATURE = 0.2
    MAX_TOKENS = 700

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, timeout: Optional[float] = None):
        api_key = settings.GROQ_API_KEY if api_key is None else api_key
        self.model = model or settings.GROQ_MODEL
        self.timeout = timeout or settings.ORACLE_TIMEOUT_SECONDS

        if not api_key:
            logger.warning(
                "⚠️ GROQ_API_KEY not set. Intent oracle DISABLED, "
                "keyword classifier will be used. Add your key to backend/.env."
            )
            self.client = None
        else:
            self.client = Groq(api_key=api_key, timeout=self.timeout, max_retries=0)
            logger.info(f"✅ Groq client initialized (model={self.model})")

    def is_available(self) -> bool:
        return self.client is not None

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        """
        One chat completion. Returns the raw text.

        Raises:
            OracleError: not configured, timed out, rate limited, API error
                or empty response
        """
        if not self.is_available():
            raise OracleError("Groq client not configured")

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
                stream=False,
            )
        except APITimeoutError as e:
            logger.warning(f"⏱️ Groq timeout after {self.timeout}s")
            raise OracleError("Oracle timed out") from e
        except RateLimitError as e:
            logger.warning("⚠️ Groq rate limit exceeded")
            raise OracleError("Oracle rate limited") from e
        except APIError as e:
            logger.error(f"❌ Groq API error: {e}")
            raise OracleError("Oracle API error") from e

        if not response.choices or not response.choices[0].message.content:
            logger.warning("LLM returned empty response")
            raise OracleError("Oracle returned no content")

        content = response.choices[0].message.content
        logger.debug(f"LLM response received: {len(content)} chars")
        return content


# Singleton instance
_groq_client: Optional[GroqClient] = None


def get_groq_client() -> GroqClient:
    """Get or create the shared GroqClient."""
    global _groq_client
    if _groq_client is None:
        _groq_client = GroqClient()
    return _groq_client
