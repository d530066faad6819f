# orderwatch/stores/order_store.py
from typing import Dict, Iterable, List, Optional, Tuple

from orderwatch.enums import OrderStatus
from orderwatch.stores.rwlock import RWLock


class OrderStore:
    """
    In-memory order book keyed by order id -> last known status.
    The map never leaves the store; readers get copies.
    """

    def __init__(self) -> None:
        self._by_id: Dict[str, OrderStatus] = {}
        self._lock = RWLock()

    async def upsert(self, order_id: str, status: OrderStatus) -> None:
        """Insert or overwrite one order status."""
        async with self._lock.write():
            self._by_id[order_id] = OrderStatus(status)

    async def upsert_many(self, items: Iterable[Tuple[str, OrderStatus]]) -> int:
        """Apply a batch of (id, status) under a single write lock."""
        items = [(oid, OrderStatus(st)) for oid, st in items]
        async with self._lock.write():
            for oid, st in items:
                self._by_id[oid] = st
        return len(items)

    async def get(self, order_id: str) -> Optional[OrderStatus]:
        async with self._lock.read():
            return self._by_id.get(order_id)

    async def select(self, statuses: Iterable[OrderStatus]) -> List[str]:
        """Ids whose status is in statuses."""
        wanted = frozenset(statuses)
        async with self._lock.read():
            return [oid for oid, st in self._by_id.items() if st in wanted]

    async def evict(self, statuses: Iterable[OrderStatus]) -> List[str]:
        """Delete every entry whose status is in statuses; return the removed ids."""
        doomed = frozenset(statuses)
        async with self._lock.write():
            removed = [oid for oid, st in self._by_id.items() if st in doomed]
            for oid in removed:
                del self._by_id[oid]
        return removed

    async def snapshot(self) -> Dict[str, OrderStatus]:
        async with self._lock.read():
            return dict(self._by_id)

    async def count_by_status(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        async with self._lock.read():
            for st in self._by_id.values():
                counts[st.value] = counts.get(st.value, 0) + 1
        return counts
