# orderwatch/services/quoting_service.py
import asyncio
from typing import Optional

from orderwatch.config import WatchDogSettings
from orderwatch.enums import OrdType, Side
from orderwatch.loops import run_every
from orderwatch.models import OrderResult
from orderwatch.stores.market_store import MarketStore
from orderwatch.stores.order_store import OrderStore
from orderwatch.ticks import round_to_tick
from utils.logger import logger


class QuotingService:
    """Places one discounted long limit order per tick, below the current best bid."""

    def __init__(self, directory, order_store: OrderStore, market_store: MarketStore,
                 settings: WatchDogSettings) -> None:
        self._dir = directory
        self._orders = order_store
        self._market = market_store
        self._s = settings
        self.placed = 0
        self.failed = 0

    async def place_once(self) -> Optional[OrderResult]:
        snap = await self._market.snapshot()
        target = snap.best_bid * self._s.bid_discount
        if target <= 0:
            return None

        price = round_to_tick(target, self._s.price_tick)
        size = round_to_tick(self._s.default_size, self._s.size_tick)
        try:
            res = await self._dir.create_order(self._s.market_id, Side.LONG, OrdType.LIMIT, price, size)
        except Exception as e:
            self.failed += 1
            logger.error(f"Quote {self._s.market_id} px={price} sz={size} failed: {e}")
            return None

        await self._orders.upsert(res.id, res.status)
        self.placed += 1
        logger.info(f"Quote placed id={res.id} status={res.status} px={price} sz={size}")
        return res

    async def run(self, done: asyncio.Event) -> None:
        await run_every(self._s.quote_interval_s, done, self.place_once)
