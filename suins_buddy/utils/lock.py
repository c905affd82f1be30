import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class KeyedLock:
    """
    In-process mutual exclusion per key (tracked name, subscriber id).
    Locks are created on demand and dropped once nobody holds or waits on them,
    so the table only ever contains keys that are currently contended.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] <= 0:
                del self._users[key]
                del self._locks[key]

    def held_keys(self) -> int:
        return len(self._locks)


# Serializes track/untrack/erase for one name (global-set cleanup).
name_locks = KeyedLock()

# Serializes one subscriber's interactions (session read-modify-write).
subscriber_locks = KeyedLock()
