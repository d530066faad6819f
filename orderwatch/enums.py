# orderwatch/enums.py
from enum import Enum


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"


class OrdType(str, Enum):
    LIMIT = "limit"
    MARKET = "market"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    STOP_LIMIT = "stop_limit"
    STOP_MARKET = "stop_market"


class OrderStatus(str, Enum):
    UNKNOWN = "unknown"
    PROCESSING = "processing"
    PLACED = "placed"
    OPEN = "open"
    CLOSED = "closed"
    REJECTED = "rejected"
    CANCELED = "canceled"
    CANCELING = "canceling"
    AMENDING = "amending"
    CANCELINGALL = "cancelingall"

    @classmethod
    def _missing_(cls, value):
        # venue may add statuses; they decode as UNKNOWN instead of failing the payload
        return cls.UNKNOWN

    def __str__(self):
        return self.value


TERMINAL_STATUSES = frozenset({OrderStatus.CANCELED, OrderStatus.CLOSED, OrderStatus.REJECTED})
CANCELABLE_STATUSES = frozenset({OrderStatus.OPEN, OrderStatus.CANCELING})


class ChannelKind(Enum):
    MARKET = "market"
    ACCOUNT = "account"
    ORDERBOOK = "orderbook"
    TRADE = "trade"
    UNKNOWN = "unknown"

    @classmethod
    def from_prefix(cls, prefix: str) -> "ChannelKind":
        try:
            return cls(prefix)
        except ValueError:
            return cls.UNKNOWN


class WatchDogState(Enum):
    CREATED = "created"
    BOOTSTRAPPED = "bootstrapped"
    RUNNING = "running"
    STOPPED = "stopped"

    def __str__(self):
        return self.name


class QueueOverflow(str, Enum):
    DROP_OLDEST = "drop_oldest"
    DROP_NEWEST = "drop_newest"
