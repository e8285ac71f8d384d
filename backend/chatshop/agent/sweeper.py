"""
Negotiation timeout sweeper - background expiry of idle negotiations.

Runs on its own schedule, independent of message handling:
1. List customers with an open negotiation
2. Skip anyone whose turn is in flight (lock held)
3. Re-check expiry under the customer's lock and clear it if still stale

Expiry is silent; the customer simply starts over next time.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from chatshop.agent.locks import CustomerLocks
from chatshop.agent.negotiation import NegotiationMachine
from chatshop.agent.session_store import SessionStore
from chatshop.core.exceptions import StoreError

logger = logging.getLogger(__name__)


class NegotiationSweeper:
    def __init__(
        self,
        sessions: SessionStore,
        locks: CustomerLocks,
        negotiation: NegotiationMachine,
        interval_seconds: int = 60,
    ):
        self.sessions = sessions
        self.locks = locks
        self.negotiation = negotiation
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    async def sweep_once(self, now: Optional[datetime] = None) -> int:
        """One pass. Returns the number of negotiations expired."""
        expired = 0
        for customer_id in self.sessions.pending_customer_ids():
            if self.locks.is_locked(customer_id):
                continue
            async with self.locks.hold(customer_id):
                session = self.sessions.load(customer_id)
                if self.negotiation.expire(session, now):
                    self.sessions.save(session)
                    expired += 1
                    logger.info(f"[SWEEP] Negotiation expired for {customer_id}")
        self.locks.prune()
        return expired

    async def _run(self) -> None:
        logger.info(f"[SWEEP] Started (every {self.interval_seconds}s, timeout {self.negotiation.timeout_seconds}s)")
        while True:
            try:
                count = await self.sweep_once()
                if count:
                    logger.info(f"[SWEEP] Expired {count} negotiation(s)")
            except StoreError as e:
                logger.error(f"[SWEEP] Pass failed: {e}")
            await asyncio.sleep(self.interval_seconds)

    async def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("[SWEEP] Stopped")
