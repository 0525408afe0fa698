"""Per-entity async locks.

Lock names are plain strings (``item:<plant>/<sloc>/<material>``,
``transfer:<id>``, ``order:<id>``). Multi-entity operations take every lock
they need in one ``hold()`` call; names are acquired in sorted order so two
operations touching the same set can never deadlock.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List

from core.errors import Busy

logger = logging.getLogger(__name__)


def item_lock(key) -> str:
    return f"item:{key}"


def transfer_lock(transfer_id) -> str:
    return f"transfer:{transfer_id}"


def order_lock(order_id) -> str:
    return f"order:{order_id}"


class KeyedLocks:
    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._waiters: Dict[str, int] = defaultdict(int)

    def locked(self, name: str) -> bool:
        lock = self._locks.get(name)
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, *names: str) -> AsyncIterator[List[str]]:
        ordered = sorted(set(names))
        acquired: List[str] = []
        try:
            for name in ordered:
                await self._acquire(name)
                acquired.append(name)
            yield ordered
        finally:
            for name in reversed(acquired):
                self._release(name)

    async def _acquire(self, name: str) -> None:
        lock = self._locks[name]
        self._waiters[name] += 1
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out after %.2fs waiting for lock %s", self.timeout, name)
            raise Busy(f"{name} is busy, retry later", lock=name)
        finally:
            self._waiters[name] -= 1

    def _release(self, name: str) -> None:
        self._locks[name].release()
        # drop idle locks so the table does not grow with every id ever seen
        if self._waiters[name] == 0 and not self._locks[name].locked():
            del self._locks[name]
            del self._waiters[name]
