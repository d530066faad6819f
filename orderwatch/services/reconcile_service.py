# orderwatch/services/reconcile_service.py
from orderwatch.enums import OrderStatus
from orderwatch.errors import BootstrapError
from orderwatch.stores.order_store import OrderStore
from utils.logger import logger


class ReconcileService:
    """
    Seeds the local order book from the venue's REST snapshot at startup.
    Only OPEN orders are seeded; everything else is learned from the account stream.
    """

    def __init__(self, directory, order_store: OrderStore, market_id: str) -> None:
        self._dir = directory
        self._orders = order_store
        self._market_id = market_id

    async def bootstrap(self) -> int:
        """List orders for the market and insert the open ones; returns the seeded count."""
        try:
            listed = await self._dir.list_orders(self._market_id)
        except Exception as e:
            raise BootstrapError(f"order snapshot for {self._market_id} failed: {e}") from e

        seeded = await self._orders.upsert_many(
            (o.id, OrderStatus.OPEN) for o in listed if o.status is OrderStatus.OPEN
        )
        logger.info(f"Bootstrap {self._market_id}: listed={len(listed)} seeded_open={seeded}")
        return seeded
