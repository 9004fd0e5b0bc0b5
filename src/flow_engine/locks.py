import asyncio
from typing import Optional


class UserLock:
    """
    Per-user mutual exclusion that the owning task may re-enter.

    The Dispatcher holds a user's lock for the whole of an event; hooks running
    inside that event call back into the SessionStore, which takes the same
    lock again without deadlocking.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task] = None
        self._depth = 0

    async def acquire(self) -> bool:
        task = asyncio.current_task()
        if task is not None and self._owner is task:
            self._depth += 1
            return True
        await self._lock.acquire()
        self._owner = task
        self._depth = 1
        return True

    def release(self) -> None:
        if self._depth == 0 or self._owner is not asyncio.current_task():
            raise RuntimeError("UserLock released by a task that does not hold it")
        self._depth -= 1
        if self._depth == 0:
            self._owner = None
            self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()

    async def __aenter__(self) -> "UserLock":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
