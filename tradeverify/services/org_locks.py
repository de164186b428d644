"""
Per-organization serialization.

Step writes, submissions and review actions on one organization must not
interleave. Each mutating operation holds the organization's lock for its
whole read-modify-write sequence, including the commit; the database row
lock (SELECT ... FOR UPDATE) covers multi-process deployments on PostgreSQL.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional


class OrganizationLockRegistry:
    """asyncio.Lock per key, created on first use and dropped when idle."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        # Holders plus waiters per key
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: Optional[uuid.UUID | str]) -> AsyncIterator[None]:
        """Hold the lock for ``key``. ``None`` (not created yet) is not locked."""
        if key is None:
            yield
            return

        key = str(key)
        # No await between lookup and registration, so this is race-free on one loop
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


org_locks = OrganizationLockRegistry()
