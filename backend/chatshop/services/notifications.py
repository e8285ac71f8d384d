"""
Best-effort outbound notifications (order confirmations, operator alerts).

Commit code only enqueues; a single worker task drains the queue and calls
the sink. A failing sink is logged and the message dropped, it never reaches
back into the order that triggered it.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    recipient_id: str
    content: str
    kind: str = "message"


class NotificationSink(ABC):
    @abstractmethod
    async def notify(self, recipient_id: str, content: str) -> None:
        ...


class LoggingNotificationSink(NotificationSink):
    """Used when no messaging transport is configured."""

    async def notify(self, recipient_id: str, content: str) -> None:
        logger.info(f"[NOTIFY] -> {recipient_id}: {content[:120]}")


class TelegramNotificationSink(NotificationSink):
    def __init__(self, bot):
        self.bot = bot

    async def notify(self, recipient_id: str, content: str) -> None:
        await self.bot.send_message(chat_id=int(recipient_id), text=content)


class NotificationDispatcher:
    """asyncio.Queue + one worker task. start() inside the running loop."""

    def __init__(self, sink: NotificationSink, max_pending: int = 1000):
        self.sink = sink
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._worker: Optional[asyncio.Task] = None

    def enqueue(self, recipient_id: str, content: str, kind: str = "message") -> bool:
        if not recipient_id:
            logger.warning(f"[NOTIFY] Dropping {kind}: no recipient")
            return False
        try:
            self._queue.put_nowait(Notification(recipient_id, content, kind))
            return True
        except asyncio.QueueFull:
            logger.error(f"[NOTIFY] Queue full, dropping {kind} for {recipient_id}")
            return False

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
            logger.info("[NOTIFY] Dispatcher started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("[NOTIFY] Dispatcher stopped")

    async def join(self) -> None:
        """Wait until everything queued so far has been attempted."""
        await self._queue.join()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                await self.sink.notify(item.recipient_id, item.content)
                logger.debug(f"[NOTIFY] Sent {item.kind} to {item.recipient_id}")
            except Exception as e:
                logger.error(f"[NOTIFY] Failed to send {item.kind} to {item.recipient_id}: {e}")
            finally:
                self._queue.task_done()
