# orderwatch/services/directory_service.py
from decimal import Decimal
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from infra import HttpPort
from orderwatch.enums import OrdType, Side
from orderwatch.errors import DecodeError
from orderwatch.models import (
    OrderCancelRequest, OrderCreateRequest, OrderData, OrderResult, ProfileData,
)
from orderwatch.services.endpoints import Endpoints
from utils.logger import logger

M = TypeVar("M", bound=BaseModel)


def _first(rows: List[Any], what: str) -> Any:
    if not rows:
        raise DecodeError(f"empty result for {what}")
    return rows[0]


def _decode(model: Type[M], raw: Any, what: str) -> M:
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise DecodeError(f"bad {what} payload: {e.error_count()} error(s)", what=what) from e


class DirectoryService:
    """
    REST order directory: list / create / cancel orders and resolve the profile.
    Stateless; callers decide what to write into the stores.
    """

    def __init__(self, http: HttpPort, endpoints: Endpoints) -> None:
        self._http = http
        self._ep = endpoints

    async def list_orders(self, market_id: str) -> List[OrderData]:
        """GET /orders?market_id=..."""
        rows = await self._http.get_private(self._ep.orders, params={"market_id": market_id})
        orders = [_decode(OrderData, r, "order") for r in rows]
        logger.debug(f"Directory list_orders market={market_id} n={len(orders)}")
        return orders

    async def create_order(self, market_id: str, side: Side, order_type: OrdType,
                           price: Decimal, size: Decimal) -> OrderResult:
        """POST /orders"""
        req = OrderCreateRequest(market_id=market_id, side=side, type=order_type, price=price, size=size)
        rows = await self._http.post_private(self._ep.orders, req.to_body())
        return _decode(OrderResult, _first(rows, "create_order"), "create_order")

    async def cancel_order(self, order_id: str, market_id: str) -> OrderResult:
        """DELETE /orders"""
        req = OrderCancelRequest(order_id=order_id, market_id=market_id)
        rows = await self._http.delete_private(self._ep.orders, req.to_body())
        return _decode(OrderResult, _first(rows, "cancel_order"), "cancel_order")

    async def get_profile(self) -> ProfileData:
        """GET /account"""
        rows = await self._http.get_private(self._ep.account)
        return _decode(ProfileData, _first(rows, "get_profile"), "get_profile")
