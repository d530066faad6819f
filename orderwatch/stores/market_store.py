# orderwatch/stores/market_store.py
from decimal import Decimal
from typing import Optional

from orderwatch.models import MarketSnapshot
from orderwatch.stores.rwlock import RWLock


def _usable(x: Optional[Decimal]) -> bool:
    return x is not None and x.is_finite() and x > 0


class MarketStore:
    """
    Best bid/ask of the watched market.
    Zero, negative or missing values are "no data" and never overwrite a field.
    """

    def __init__(self) -> None:
        self._best_bid = Decimal(0)
        self._best_ask = Decimal(0)
        self._lock = RWLock()

    async def update(self, best_bid: Optional[Decimal] = None, best_ask: Optional[Decimal] = None) -> bool:
        """Apply whichever sides carry a usable value; True if anything changed."""
        changed = False
        async with self._lock.write():
            if _usable(best_bid):
                changed = changed or best_bid != self._best_bid
                self._best_bid = best_bid
            if _usable(best_ask):
                changed = changed or best_ask != self._best_ask
                self._best_ask = best_ask
        return changed

    async def snapshot(self) -> MarketSnapshot:
        async with self._lock.read():
            return MarketSnapshot(best_bid=self._best_bid, best_ask=self._best_ask)
