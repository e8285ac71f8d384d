"""
Telegram transport. Runs inside the FastAPI event loop so customer locks
and the notification queue are shared with the HTTP channel.
"""
import asyncio
import logging
from typing import Optional

from telegram import Update, error
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters

from chatshop.agent.runtime import Runtime
from chatshop.core.config import settings
from chatshop.schemas.conversation import InboundMessage
from chatshop.services import messages
from chatshop.services.notifications import TelegramNotificationSink

logger = logging.getLogger(__name__)

_bot_app: Optional[Application] = None


def inbound_from_update(update: Update) -> InboundMessage:
    message = update.effective_message
    user = update.effective_user
    return InboundMessage(
        sender_id=str(update.effective_chat.id),
        text=message.text or "",
        timestamp=message.date,
        message_id=f"tg-{update.effective_chat.id}-{message.message_id}",
        sender_name=user.full_name if user else None,
    )


def build_handlers(runtime: Runtime):
    async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        customer = runtime.repository.find_or_create_customer(
            str(update.effective_chat.id),
            update.effective_user.full_name if update.effective_user else None,
        )
        await update.effective_message.reply_text(messages.welcome(customer))

    async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.effective_message is None or not update.effective_message.text:
            return
        result = await runtime.orchestrator.handle(inbound_from_update(update))
        for reply in result.replies:
            await update.effective_message.reply_text(reply)

    return handle_start, handle_text


async def _start_polling_with_retry(app: Application, max_retries: int = 3, initial_backoff: int = 2) -> bool:
    for attempt in range(max_retries):
        try:
            logger.info(f"[Telegram] Starting polling (attempt {attempt + 1}/{max_retries})...")
            await app.updater.start_polling(drop_pending_updates=True)
            logger.info("[Telegram] ✓ Polling started")
            return True
        except error.Conflict as e:
            if attempt < max_retries - 1:
                backoff = initial_backoff * (2 ** attempt)
                logger.warning(f"[Telegram] ⚠ Conflict: {e}. Retrying in {backoff}s")
                await asyncio.sleep(backoff)
            else:
                logger.error(f"[Telegram] ✗ Failed after {max_retries} attempts. Bot disabled. {e}")
    return False


async def start_bot(runtime: Runtime) -> Optional[Application]:
    """Start polling and route notifications through the bot. No-op without a token."""
    global _bot_app
    if not settings.TELEGRAM_BOT_TOKEN:
        logger.warning("[Telegram] Disabled (no TELEGRAM_BOT_TOKEN)")
        return None

    app = Application.builder().token(settings.TELEGRAM_BOT_TOKEN).build()
    handle_start, handle_text = build_handlers(runtime)
    app.add_handler(CommandHandler("start", handle_start))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    await app.initialize()
    await app.start()
    if not await _start_polling_with_retry(app):
        await app.stop()
        await app.shutdown()
        return None

    runtime.dispatcher.sink = TelegramNotificationSink(app.bot)
    _bot_app = app
    return app


async def stop_bot() -> None:
    global _bot_app
    if _bot_app is None:
        return
    try:
        if _bot_app.updater and _bot_app.updater.running:
            await _bot_app.updater.stop()
        await _bot_app.stop()
        await _bot_app.shutdown()
        logger.info("[Telegram] Stopped")
    finally:
        _bot_app = None
