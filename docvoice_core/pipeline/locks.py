"""Per-submission serialization of voice state transitions."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class SubmissionLocks:
    """
    One asyncio.Lock per submission id.

    Clone, generate and delete for the same submission run one at a time;
    different submissions proceed concurrently.
    """

    def __init__(self) -> None:
        self._locks: Dict[int, asyncio.Lock] = {}
        self._waiters: Dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, submission_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(submission_id, asyncio.Lock())
        self._waiters[submission_id] = self._waiters.get(submission_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[submission_id] -= 1
            if self._waiters[submission_id] == 0:
                del self._waiters[submission_id]
                del self._locks[submission_id]

    def is_locked(self, submission_id: int) -> bool:
        lock = self._locks.get(submission_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
