# orderwatch/models.py
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, List, Dict, Any

from pydantic import BaseModel

from orderwatch.enums import OrderStatus, Side, OrdType


@dataclass(frozen=True)
class EventEnvelope:
    """One push publication: routing channel name + raw JSON payload."""
    channel: str
    payload: bytes


@dataclass(frozen=True)
class MarketSnapshot:
    best_bid: Decimal = Decimal(0)
    best_ask: Decimal = Decimal(0)


@dataclass
class OrderCreateRequest:
    market_id: str
    side: Side
    type: OrdType
    price: Optional[Decimal]
    size: Decimal
    client_order_id: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "market_id": self.market_id,
            "type": self.type.value,
            "side": self.side.value,
            "size": float(self.size),
        }
        if self.price is not None:
            body["price"] = float(self.price)
        if self.client_order_id:
            body["client_order_id"] = self.client_order_id
        return body


@dataclass
class OrderCancelRequest:
    order_id: str
    market_id: str

    def to_body(self) -> Dict[str, Any]:
        return {"order_id": self.order_id, "market_id": self.market_id}


# ---- wire payloads -----------------------------------------------------------

class OrderData(BaseModel):
    id: str
    status: OrderStatus
    market_id: Optional[str] = None
    profile_id: Optional[int] = None
    order_type: Optional[str] = None
    side: Optional[str] = None
    price: Optional[Decimal] = None
    size: Optional[Decimal] = None
    client_order_id: Optional[str] = None
    timestamp: Optional[int] = None


class OrderResult(BaseModel):
    """create/cancel response subset the watchdog keeps."""
    id: str
    status: OrderStatus
    market_id: Optional[str] = None
    client_order_id: Optional[str] = None


class MarketData(BaseModel):
    id: str = ""
    status: Optional[str] = None
    best_bid: Optional[Decimal] = None
    best_ask: Optional[Decimal] = None
    market_price: Optional[Decimal] = None
    index_price: Optional[Decimal] = None
    last_trade_price: Optional[Decimal] = None
    fair_price: Optional[Decimal] = None
    min_tick: Optional[Decimal] = None
    min_order: Optional[Decimal] = None
    last_update_sequence: Optional[int] = None


class ProfileData(BaseModel):
    id: int = 0
    status: Optional[str] = None
    wallet: Optional[str] = None
    balance: Optional[Decimal] = None
    orders: Optional[List[OrderData]] = None


class OrderbookData(BaseModel):
    market_id: str
    bids: Optional[List[List[Decimal]]] = None
    asks: Optional[List[List[Decimal]]] = None
    sequence: int = 0
    timestamp: int = 0


class TradeData(BaseModel):
    id: str
    market_id: str
    timestamp: int = 0
    price: Decimal
    size: Decimal
    liquidation: bool = False
    taker_side: Optional[str] = None
