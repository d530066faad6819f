# orderwatch/services/cancel_service.py
import asyncio
from typing import List, Optional, Set

from orderwatch.enums import CANCELABLE_STATUSES
from orderwatch.loops import get_or_done, run_every
from orderwatch.models import OrderResult
from orderwatch.stores.order_store import OrderStore
from utils.logger import logger


class CancelService:
    """
    Scanner + single worker.
    The scanner copies cancelable ids out of the order book and queues them;
    the worker pops ids one at a time and calls the venue.
    No lock is held while queueing or while a cancel request is in flight.
    """

    def __init__(self, directory, order_store: OrderStore, market_id: str,
                 queue_size: int = 10000, scan_interval_s: float = 5.0) -> None:
        self._dir = directory
        self._orders = order_store
        self._market_id = market_id
        self._scan_interval_s = scan_interval_s
        self.queue: "asyncio.Queue[str]" = asyncio.Queue(maxsize=queue_size)
        self._pending: Set[str] = set()
        self.canceled = 0
        self.failed = 0
        self.overflowed = 0

    @property
    def depth(self) -> int:
        return self.queue.qsize()

    async def scan_once(self) -> List[str]:
        """Queue every open/canceling order not already waiting; returns the candidates found."""
        candidates = await self._orders.select(CANCELABLE_STATUSES)

        queued = 0
        for i, oid in enumerate(candidates):
            if oid in self._pending:
                continue
            try:
                self.queue.put_nowait(oid)
            except asyncio.QueueFull:
                skipped = sum(1 for rest in candidates[i:] if rest not in self._pending)
                self.overflowed += skipped
                logger.warning(f"Cancel queue full ({self.queue.maxsize}), "
                               f"{skipped} candidate(s) left for the next scan")
                break
            self._pending.add(oid)
            queued += 1

        if queued:
            logger.debug(f"Cancel scan: candidates={len(candidates)} queued={queued} depth={self.depth}")
        return candidates

    async def cancel_once(self, order_id: str) -> Optional[OrderResult]:
        try:
            res = await self._dir.cancel_order(order_id, self._market_id)
        except Exception as e:
            self.failed += 1
            logger.error(f"Cancel order_id={order_id} failed: {e}")
            return None

        await self._orders.upsert(res.id, res.status)
        self.canceled += 1
        logger.info(f"Cancel order_id={res.id} -> {res.status}")
        return res

    async def run_scanner(self, done: asyncio.Event) -> None:
        await run_every(self._scan_interval_s, done, self.scan_once)

    async def run_worker(self, done: asyncio.Event) -> None:
        while not done.is_set():
            oid = await get_or_done(self.queue, done)
            if oid is None:
                break
            self._pending.discard(oid)
            await self.cancel_once(oid)
