import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict
from uuid import UUID

logger = logging.getLogger(__name__)


class WorkerSlotGuard:
    """Per-worker ``asyncio.Lock`` registry for the final assignment write.

    Holding the lock for a worker serialises "re-check WIP, write, commit"
    for that worker inside this process.  The database row lock taken by
    the same commit path covers other processes.

    A worker's lock lives only while some caller holds or awaits it, so the
    registry stays bounded by the number of in-flight assignments.  Locks
    are used from the single event loop serving the application.
    """

    def __init__(self) -> None:
        self._locks: Dict[UUID, asyncio.Lock] = {}
        self._users: Dict[UUID, int] = {}

    @property
    def tracked_workers(self) -> int:
        """Number of workers whose lock is currently held or awaited."""
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, worker_id: UUID) -> AsyncIterator[None]:
        lock = self._locks.get(worker_id)
        if lock is None:
            lock = self._locks[worker_id] = asyncio.Lock()
        elif lock.locked():
            logger.debug("Waiting for assignment slot lock of worker %s", worker_id)
        self._users[worker_id] = self._users.get(worker_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[worker_id] -= 1
            if not self._users[worker_id]:
                del self._users[worker_id]
                del self._locks[worker_id]


# Shared by every request handled in this process
worker_slot_guard = WorkerSlotGuard()
