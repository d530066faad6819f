# orderwatch/services/cleanup_service.py
import asyncio
from typing import Callable, Iterable, List, Optional

from orderwatch.enums import OrderStatus
from orderwatch.loops import run_every
from orderwatch.stores.order_store import OrderStore
from utils.logger import logger


class CleanupService:
    def __init__(self, order_store: OrderStore, evict_statuses: Iterable[OrderStatus],
                 interval_s: float, stats: Optional[Callable] = None) -> None:
        self._orders = order_store
        self._evict = frozenset(evict_statuses)
        self._interval_s = interval_s
        self._stats = stats

    async def clean_once(self) -> List[str]:
        """Evict every order whose status is in the eviction set."""
        removed = await self._orders.evict(self._evict)
        if removed:
            logger.info(f"Cleanup: evicted {len(removed)} order(s)")
        if self._stats is not None:
            logger.info(f"WatchDog stats: {await self._stats()}")
        return removed

    async def run(self, done: asyncio.Event) -> None:
        await run_every(self._interval_s, done, self.clean_once)
