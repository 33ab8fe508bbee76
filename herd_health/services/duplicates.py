"""
Duplicate vaccination detection.

The check and the insert that follows it must behave as one step, so the
detector also hands out a lock per (bovine, vaccine) pair. Callers hold it
across check-then-persist; a second concurrent caller sees the first record.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from herd_health.domain.models import Vaccination
from herd_health.services.ports import DateRange, RecordQuery, Repository


class DuplicateDetector:
    def __init__(self, vaccinations: Repository[Vaccination], window_days: int = 30) -> None:
        self.vaccinations = vaccinations
        self.window = timedelta(days=window_days)
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._users: dict[tuple[str, str], int] = {}

    def lookback(self, administration_date: datetime) -> DateRange:
        """Closed window [date - window, date]."""
        return DateRange(start=administration_date - self.window, end=administration_date)

    async def is_duplicate(
        self, bovine_id: str, vaccine_id: str, administration_date: datetime
    ) -> bool:
        query = RecordQuery.where(
            bovine_id=bovine_id,
            vaccine_id=vaccine_id,
            ranges={"administration_date": self.lookback(administration_date)},
        )
        return await self.vaccinations.count(query) > 0

    @asynccontextmanager
    async def guard(self, bovine_id: str, vaccine_id: str) -> AsyncIterator[None]:
        """Serialize check-then-persist for one animal and vaccine."""
        key = (bovine_id, vaccine_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # Last holder or waiter out drops the lock
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]
