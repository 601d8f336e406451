"""Per-sender locks — serialize all state changes for one sender."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class SenderLocks:
    """Hands out one asyncio.Lock per sender id.

    Locks are reference-counted and dropped once nobody holds or waits
    on them, so the table only grows with concurrently active senders.
    Process-local: one worker must own a given sender.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, sender_id: str) -> AsyncIterator[None]:
        """Context manager for the sender's exclusive section."""
        lock = self._locks.get(sender_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[sender_id] = lock
        self._users[sender_id] = self._users.get(sender_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[sender_id] -= 1
            if self._users[sender_id] == 0:
                del self._users[sender_id]
                del self._locks[sender_id]

    def is_locked(self, sender_id: str) -> bool:
        lock = self._locks.get(sender_id)
        return bool(lock and lock.locked())

    def __len__(self) -> int:
        return len(self._locks)
