"""
ChatShop backend: conversational storefront over Telegram and HTTP.

ARCHITECTURE:
- Telegram bot / POST /messages: inbound customer messages
- Orchestrator: per-customer sessions, intent oracle, order negotiation
- SQLite/PostgreSQL via SQLAlchemy: catalog, customers, orders, sessions
- Background tasks: notification dispatcher, negotiation timeout sweeper

The LLM only classifies messages. Prices, stock and orders are decided by
the services, and stock is decremented atomically at commit.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatshop.agent.runtime import get_runtime
from chatshop.api.routes import messages
from chatshop.core.config import configure_logging, settings
from chatshop.db.init_db import init_db
from chatshop.telegram.bot import start_bot, stop_bot

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    1. Initialize database tables (and sample catalog if enabled)
    2. Build runtime, start dispatcher + sweeper
    3. Start Telegram polling (if token provided)

    Shutdown: reverse order.
    """
    configure_logging()
    logger.info("[*] Initializing database...")
    init_db()
    runtime = get_runtime()
    app.state.runtime = runtime
    await runtime.start()
    try:
        await start_bot(runtime)
    except Exception as e:
        # HTTP channel stays up without Telegram
        logger.error(f"[ERROR] Telegram startup failed: {e}")
    logger.info("[OK] ChatShop started")

    yield

    try:
        await stop_bot()
    except Exception as e:
        logger.error(f"[ERROR] Telegram shutdown error: {e}")
    await runtime.stop()


app = FastAPI(
    title="ChatShop API",
    description="Conversational storefront: chat in, orders out.",
    version="0.1.0",
    lifespan=lifespan,
)

# Restrict CORS to configured origins, explicit methods and headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin"],
    max_age=600,
)

app.include_router(messages.router, prefix="/messages", tags=["messages"])


@app.get("/health")
def health():
    return {"status": "ok", "oracle": "groq" if settings.GROQ_API_KEY else "keywords"}
