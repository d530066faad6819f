# orderwatch/watchdog.py
import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from orderwatch.config import WatchDogSettings
from orderwatch.enums import WatchDogState
from orderwatch.errors import WatchDogStateError
from orderwatch.loops import wait_done
from orderwatch.models import EventEnvelope
from orderwatch.services.cancel_service import CancelService
from orderwatch.services.cleanup_service import CleanupService
from orderwatch.services.dispatcher import Dispatcher
from orderwatch.services.quoting_service import QuotingService
from orderwatch.services.reconcile_service import ReconcileService
from orderwatch.stores.market_store import MarketStore
from orderwatch.stores.order_store import OrderStore
from utils.logger import logger


class WatchDog:
    """
    Event-driven reconciler for one market.

    Lifecycle: CREATED -> BOOTSTRAPPED -> RUNNING -> STOPPED.
    start() seeds the order book from REST, then runs five supervised loops
    (listener, quoting, cancel scanner, cancel worker, cleanup) that share one
    shutdown event. stop() sets it and waits for every loop to return.
    """

    def __init__(self, directory, settings: WatchDogSettings,
                 events: "asyncio.Queue[EventEnvelope]",
                 order_store: Optional[OrderStore] = None,
                 market_store: Optional[MarketStore] = None) -> None:
        self._s = settings
        self._events = events
        self.orders = order_store or OrderStore()
        self.market = market_store or MarketStore()

        self.done = asyncio.Event()
        self._stopped = asyncio.Event()
        self.state = WatchDogState.CREATED

        self.reconcile = ReconcileService(directory, self.orders, settings.market_id)
        self.dispatcher = Dispatcher(self.orders, self.market, settings.display_channels)
        self.quoting = QuotingService(directory, self.orders, self.market, settings)
        self.cancel = CancelService(directory, self.orders, settings.market_id,
                                    queue_size=settings.cancel_queue_size,
                                    scan_interval_s=settings.cancel_scan_interval_s)
        self.cleanup = CleanupService(self.orders, settings.evict_statuses,
                                      settings.cleanup_interval_s, stats=self.stats)

        self._tasks: Dict[str, asyncio.Task] = {}
        self.restarts: Dict[str, int] = {}

    def loops(self) -> Dict[str, Callable[[], Awaitable[None]]]:
        return {
            "listener": lambda: self.dispatcher.run(self._events, self.done),
            "quoting": lambda: self.quoting.run(self.done),
            "cancel_scanner": lambda: self.cancel.run_scanner(self.done),
            "cancel_worker": lambda: self.cancel.run_worker(self.done),
            "cleanup": lambda: self.cleanup.run(self.done),
        }

    async def start(self) -> None:
        if self.state is not WatchDogState.CREATED:
            raise WatchDogStateError(f"start() not allowed in state {self.state}")

        try:
            await self.reconcile.bootstrap()
        except BaseException:
            self._mark_stopped()
            raise
        self.state = WatchDogState.BOOTSTRAPPED

        for name, factory in self.loops().items():
            self.restarts[name] = 0
            self._tasks[name] = asyncio.create_task(self._supervise(name, factory), name=f"watchdog-{name}")
        self.state = WatchDogState.RUNNING
        logger.info(f"WatchDog {self._s.market_id} running loops={list(self._tasks)}")

    async def _supervise(self, name: str, factory: Callable[[], Awaitable[None]]) -> None:
        """Run one loop until shutdown; restart it with capped exponential backoff if it dies."""
        failures = 0
        while not self.done.is_set():
            try:
                await factory()
                if self.done.is_set():
                    return
                logger.warning(f"WatchDog loop {name} exited before shutdown")
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"WatchDog loop {name} crashed")

            failures += 1
            self.restarts[name] = self.restarts.get(name, 0) + 1
            delay = min(self._s.restart_backoff_cap_s, 2 ** min(failures - 1, 10))
            logger.info(f"WatchDog loop {name} restart #{failures} in {delay:.2f}s")
            if await wait_done(self.done, delay):
                return

    async def stop(self) -> None:
        if self.state is WatchDogState.STOPPED:
            return
        self.done.set()

        tasks = list(self._tasks.values())
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self._s.stop_timeout_s)
            if pending:
                logger.warning(f"WatchDog stop: cancelling {len(pending)} loop(s) after {self._s.stop_timeout_s}s")
                for t in pending:
                    t.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        self._mark_stopped()
        logger.info(f"WatchDog {self._s.market_id} stopped")

    def _mark_stopped(self) -> None:
        self.done.set()
        self.state = WatchDogState.STOPPED
        self._stopped.set()

    async def wait(self) -> None:
        await self._stopped.wait()

    async def stats(self) -> Dict[str, Any]:
        snap = await self.market.snapshot()
        return {
            "state": str(self.state),
            "orders": await self.orders.count_by_status(),
            "best_bid": str(snap.best_bid),
            "best_ask": str(snap.best_ask),
            "cancel_queue": self.cancel.depth,
            "event_queue": self._events.qsize(),
            "restarts": dict(self.restarts),
        }
