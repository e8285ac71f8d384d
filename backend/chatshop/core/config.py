"""Application configuration.

Environment variables override all defaults. Business rules (delivery zones,
discounts, VIP tiers) live in chatshop.core.business, not here.
"""

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load .env for local development (missing file is a no-op)
_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./chatshop.db")
    SEED_SAMPLE_PRODUCTS: bool = os.getenv("SEED_SAMPLE_PRODUCTS", "true").lower() == "true"

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # HTTP server (run_server.py)
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Telegram Bot (Must be set via .env, never in code)
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

    # Groq API Key (Must be set via .env, never in code)
    GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")
    GROQ_MODEL: str = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
    ORACLE_TIMEOUT_SECONDS: float = float(os.getenv("ORACLE_TIMEOUT_SECONDS", "10"))

    # Operator side-channel: messages from this sender starting with the
    # prefix never reach the intent oracle.
    ADMIN_ID: str = os.getenv("ADMIN_ID", "")
    ADMIN_COMMAND_PREFIX: str = os.getenv("ADMIN_COMMAND_PREFIX", "!")

    # Conversation
    HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "10"))
    CATALOG_PROMPT_LIMIT: int = int(os.getenv("CATALOG_PROMPT_LIMIT", "10"))
    NEGOTIATION_TIMEOUT_SECONDS: int = int(os.getenv("NEGOTIATION_TIMEOUT_SECONDS", "1800"))
    SWEEP_INTERVAL_SECONDS: int = int(os.getenv("SWEEP_INTERVAL_SECONDS", "60"))
    # "database" (survives restarts) or "memory"
    SESSION_BACKEND: str = os.getenv("SESSION_BACKEND", "database")

    # CORS (specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
        ).split(",")
        if origin.strip()
    ]


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Set up root logging once at process start."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
