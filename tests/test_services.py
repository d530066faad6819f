# tests/test_services.py
import asyncio
from decimal import Decimal

import pytest

from conftest import FakeDirectory
from infra.http_client import HttpError
from orderwatch.enums import OrderStatus, OrdType, Side
from orderwatch.errors import BootstrapError, VenueApiError
from orderwatch.models import OrderData
from orderwatch.services.cancel_service import CancelService
from orderwatch.services.cleanup_service import CleanupService
from orderwatch.services.quoting_service import QuotingService
from orderwatch.services.reconcile_service import ReconcileService
from orderwatch.stores.market_store import MarketStore
from orderwatch.stores.order_store import OrderStore


# ---- bootstrap -------------------------------------------------------------

@pytest.mark.asyncio
async def test_bootstrap_seeds_only_open_orders():
    listed = [OrderData(id=str(i), status=st) for i, st in enumerate(OrderStatus)]
    store = OrderStore()
    svc = ReconcileService(FakeDirectory(listed=listed), store, "ETH-USD")

    seeded = await svc.bootstrap()

    assert seeded == 1
    snap = await store.snapshot()
    assert list(snap.values()) == [OrderStatus.OPEN]
    assert [o.id for o in listed if o.status is OrderStatus.OPEN] == list(snap)


@pytest.mark.asyncio
async def test_bootstrap_failure_is_wrapped_and_raised():
    d = FakeDirectory()
    d.fail_list = HttpError(503, "down")
    store = OrderStore()
    with pytest.raises(BootstrapError) as ei:
        await ReconcileService(d, store, "ETH-USD").bootstrap()
    assert isinstance(ei.value.__cause__, HttpError)
    assert await store.snapshot() == {}


# ---- quoting ---------------------------------------------------------------

@pytest.mark.asyncio
async def test_no_quote_without_market_data(settings):
    d = FakeDirectory()
    svc = QuotingService(d, OrderStore(), MarketStore(), settings)
    assert await svc.place_once() is None
    assert d.created == []


@pytest.mark.asyncio
async def test_quote_discounts_best_bid_and_rounds(settings):
    d = FakeDirectory()
    orders, market = OrderStore(), MarketStore()
    await market.update(best_bid=Decimal("1880"), best_ask=Decimal("1881"))
    svc = QuotingService(d, orders, market, settings)

    res = await svc.place_once()

    assert res is not None
    call = d.created[0]
    assert call["price"] == Decimal("1767.2")     # 1880 * 0.94 on a 0.1 tick
    assert call["size"] == Decimal("0.001")
    assert call["side"] is Side.LONG
    assert call["type"] is OrdType.LIMIT
    assert call["market_id"] == "ETH-USD"
    assert await orders.get(res.id) is OrderStatus.PROCESSING


@pytest.mark.asyncio
async def test_quote_failure_is_logged_not_raised(settings):
    d = FakeDirectory()
    d.fail_create = VenueApiError("insufficient margin")
    orders, market = OrderStore(), MarketStore()
    await market.update(best_bid=Decimal("100"))
    svc = QuotingService(d, orders, market, settings)

    assert await svc.place_once() is None
    assert svc.failed == 1
    assert await orders.snapshot() == {}


# ---- cancel ----------------------------------------------------------------

@pytest.mark.asyncio
async def test_scan_queues_open_and_canceling():
    orders = OrderStore()
    await orders.upsert_many([(str(i), st) for i, st in enumerate(OrderStatus)])
    svc = CancelService(FakeDirectory(), orders, "ETH-USD")

    found = await svc.scan_once()

    snap = await orders.snapshot()
    assert sorted(snap[oid].value for oid in found) == ["canceling", "open"]
    assert svc.depth == 2


@pytest.mark.asyncio
async def test_scan_does_not_queue_an_id_twice():
    orders = OrderStore()
    await orders.upsert("1", OrderStatus.OPEN)
    svc = CancelService(FakeDirectory(), orders, "ETH-USD")
    await svc.scan_once()
    await svc.scan_once()
    assert svc.depth == 1


@pytest.mark.asyncio
async def test_scan_overflow_drops_the_rest():
    orders = OrderStore()
    await orders.upsert_many([(str(i), OrderStatus.OPEN) for i in range(5)])
    svc = CancelService(FakeDirectory(), orders, "ETH-USD", queue_size=2)

    found = await svc.scan_once()

    assert len(found) == 5
    assert svc.depth == 2
    assert svc.overflowed == 3


@pytest.mark.asyncio
async def test_cancel_once_writes_back_returned_status():
    d = FakeDirectory(cancel_status=OrderStatus.CANCELED)
    orders = OrderStore()
    await orders.upsert("1", OrderStatus.OPEN)
    svc = CancelService(d, orders, "ETH-USD")

    res = await svc.cancel_once("1")

    assert res.status is OrderStatus.CANCELED
    assert d.canceled == ["1"]
    assert await orders.get("1") is OrderStatus.CANCELED


@pytest.mark.asyncio
async def test_cancel_failure_leaves_order_for_next_scan():
    d = FakeDirectory()
    d.fail_cancel["1"] = HttpError(500, "boom")
    orders = OrderStore()
    await orders.upsert("1", OrderStatus.OPEN)
    svc = CancelService(d, orders, "ETH-USD")

    assert await svc.cancel_once("1") is None
    assert svc.failed == 1
    assert await orders.get("1") is OrderStatus.OPEN


@pytest.mark.asyncio
async def test_worker_drains_queue_and_stops_on_done():
    d = FakeDirectory()
    orders = OrderStore()
    await orders.upsert_many([("1", OrderStatus.OPEN), ("2", OrderStatus.CANCELING)])
    svc = CancelService(d, orders, "ETH-USD")
    await svc.scan_once()

    done = asyncio.Event()
    worker = asyncio.create_task(svc.run_worker(done))
    for _ in range(200):
        if len(d.canceled) == 2:
            break
        await asyncio.sleep(0.005)
    done.set()
    await asyncio.wait_for(worker, 1)

    assert sorted(d.canceled) == ["1", "2"]
    # ids leave the pending set once popped, so the next scan can queue them again
    await svc.scan_once()
    assert svc.depth == 2


# ---- cleanup ---------------------------------------------------------------

@pytest.mark.asyncio
async def test_cleanup_evicts_only_canceled_by_default(settings):
    orders = OrderStore()
    await orders.upsert_many([(str(i), st) for i, st in enumerate(OrderStatus)])
    svc = CleanupService(orders, settings.evict_statuses, settings.cleanup_interval_s)

    removed = await svc.clean_once()

    assert len(removed) == 1
    snap = await orders.snapshot()
    assert OrderStatus.CANCELED not in snap.values()
    assert len(snap) == len(OrderStatus) - 1


@pytest.mark.asyncio
async def test_cleanup_with_extra_terminal_statuses():
    orders = OrderStore()
    await orders.upsert_many([("a", OrderStatus.CLOSED), ("b", OrderStatus.REJECTED), ("c", OrderStatus.OPEN)])
    svc = CleanupService(orders, [OrderStatus.CANCELED, OrderStatus.CLOSED, OrderStatus.REJECTED], 1.0)
    assert sorted(await svc.clean_once()) == ["a", "b"]
    assert await orders.snapshot() == {"c": OrderStatus.OPEN}


@pytest.mark.asyncio
async def test_quote_with_huge_best_bid_does_not_raise(settings):
    d = FakeDirectory()
    market = MarketStore()
    await market.update(best_bid=Decimal("1e30"))
    svc = QuotingService(d, OrderStore(), market, settings)

    res = await svc.place_once()

    assert res is not None
    assert d.created[0]["price"] == Decimal("9.4E+29")


@pytest.mark.asyncio
async def test_bootstrap_mixed_listing_seeds_two_open_entries():
    listed = [
        OrderData(id="a", status=OrderStatus.OPEN),
        OrderData(id="b", status=OrderStatus.CLOSED),
        OrderData(id="c", status=OrderStatus.CANCELED),
        OrderData(id="d", status=OrderStatus.OPEN),
    ]
    store = OrderStore()
    assert await ReconcileService(FakeDirectory(listed=listed), store, "ETH-USD").bootstrap() == 2
    assert await store.snapshot() == {"a": OrderStatus.OPEN, "d": OrderStatus.OPEN}


@pytest.mark.asyncio
async def test_scan_overflow_counts_only_ids_not_already_pending():
    orders = OrderStore()
    await orders.upsert_many([("a", OrderStatus.CLOSED), ("b", OrderStatus.OPEN)])
    svc = CancelService(FakeDirectory(), orders, "ETH-USD", queue_size=1)
    await svc.scan_once()                         # "b" queued and pending
    assert svc.overflowed == 0

    await orders.upsert_many([("a", OrderStatus.OPEN), ("c", OrderStatus.OPEN)])
    found = await svc.scan_once()                 # full at "a"; "b" is already waiting

    assert found == ["a", "b", "c"]
    assert svc.depth == 1
    assert svc.overflowed == 2
