# tests/conftest.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from infra.http_client import HttpClient
from orderwatch.config import WatchDogSettings
from orderwatch.enums import OrderStatus
from orderwatch.models import OrderData, OrderResult, ProfileData

BASE = "https://api.test.rabbitx.io"

# 32-byte hex secret, the form the venue hands out
TEST_SECRET = "0x" + "11" * 32


@pytest.fixture
def test_cfg():
    return {
        "venue": {
            "api_url": BASE,
            "ws_url": "wss://api.test.rabbitx.io/ws",
            "api_key": "test_api_key",
            "api_secret": TEST_SECRET,
            "jwt_private": "test.jwt.token",
        },
        "watchdog": {"market_id": "ETH-USD"},
        "timeouts": {"rest_ms": 2000},
        "retries": {"rest_max_attempts": 3, "backoff_ms": 1},
    }


@pytest_asyncio.fixture
async def http_client(test_cfg):
    logger = logging.getLogger("HttpClientTest")
    async with HttpClient(test_cfg, logger=logger) as client:
        yield client


@pytest.fixture
def settings():
    """Fast intervals so loop tests finish in well under a second."""
    return WatchDogSettings(
        market_id="ETH-USD",
        quote_interval_s=0.02,
        cancel_scan_interval_s=0.02,
        cleanup_interval_s=0.05,
        restart_backoff_cap_s=0.01,
        stop_timeout_s=1.0,
    )


class FakeDirectory:
    """In-memory order directory recording every call."""

    def __init__(self, listed: Optional[List[OrderData]] = None,
                 profile_id: int = 7, cancel_status: OrderStatus = OrderStatus.CANCELING):
        self.listed = listed or []
        self.profile_id = profile_id
        self.cancel_status = cancel_status
        self.created: List[dict] = []
        self.canceled: List[str] = []
        self.fail_list: Optional[Exception] = None
        self.fail_create: Optional[Exception] = None
        self.fail_cancel: Dict[str, Exception] = {}
        self._next_id = 100

    async def list_orders(self, market_id: str) -> List[OrderData]:
        if self.fail_list is not None:
            raise self.fail_list
        return list(self.listed)

    async def create_order(self, market_id, side, order_type, price: Decimal, size: Decimal) -> OrderResult:
        if self.fail_create is not None:
            raise self.fail_create
        self.created.append({"market_id": market_id, "side": side, "type": order_type,
                             "price": price, "size": size})
        self._next_id += 1
        return OrderResult(id=f"o{self._next_id}", status=OrderStatus.PROCESSING, market_id=market_id)

    async def cancel_order(self, order_id: str, market_id: str) -> OrderResult:
        if order_id in self.fail_cancel:
            raise self.fail_cancel[order_id]
        self.canceled.append(order_id)
        return OrderResult(id=order_id, status=self.cancel_status, market_id=market_id)

    async def get_profile(self) -> ProfileData:
        return ProfileData(id=self.profile_id)


@pytest.fixture
def directory():
    return FakeDirectory()


async def wait_until(pred, timeout: float = 2.0, step: float = 0.005):
    """Poll an async or sync predicate until true; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        res = pred()
        if asyncio.iscoroutine(res):
            res = await res
        if res:
            return
        await asyncio.sleep(step)
    raise AssertionError("condition not met before timeout")
