"""Per-transfer mutual exclusion"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class TransferLocks:
    """
    One asyncio.Lock per transfer id, created on demand and dropped when the
    last holder or waiter leaves. Operations on different ids never contend.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, transfer_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(transfer_id, asyncio.Lock())
        self._holders[transfer_id] = self._holders.get(transfer_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[transfer_id] -= 1
            if self._holders[transfer_id] == 0:
                del self._holders[transfer_id]
                del self._locks[transfer_id]

    def __len__(self) -> int:
        return len(self._locks)
