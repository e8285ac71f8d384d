"""Per-customer locks. Different customers never wait on each other."""
import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Dict


class CustomerLocks:
    """
    Registry of asyncio.Lock keyed by customer id. Single event loop only.

    Tracks holders and waiters so prune() only ever drops locks nobody is
    using or queued on.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = defaultdict(int)

    def get(self, customer_id: str) -> asyncio.Lock:
        lock = self._locks.get(customer_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[customer_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, customer_id: str):
        lock = self.get(customer_id)
        self._users[customer_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[customer_id] -= 1
            if self._users[customer_id] <= 0:
                del self._users[customer_id]

    def is_locked(self, customer_id: str) -> bool:
        """True while a turn holds, or waits for, this customer's lock."""
        return self._users.get(customer_id, 0) > 0

    def prune(self) -> int:
        """Forget locks nobody holds or waits on. Returns how many were dropped."""
        idle = [cid for cid in self._locks if self._users.get(cid, 0) == 0]
        for cid in idle:
            del self._locks[cid]
        return len(idle)

    def __len__(self) -> int:
        return len(self._locks)
