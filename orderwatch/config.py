# orderwatch/config.py
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Mapping

from orderwatch.enums import OrderStatus, QueueOverflow
from orderwatch.ticks import to_decimal


@dataclass
class WatchDogSettings:
    """Watchdog runtime configuration."""
    market_id: str = "ETH-USD"

    price_tick: Decimal = Decimal("0.1")
    size_tick: Decimal = Decimal("0.001")
    default_size: Decimal = Decimal("0.001")
    bid_discount: Decimal = Decimal("0.94")     # quote = best_bid * bid_discount

    quote_interval_s: float = 3.0
    cancel_scan_interval_s: float = 5.0
    cleanup_interval_s: float = 300.0

    cancel_queue_size: int = 10000
    event_queue_size: int = 10000
    event_queue_overflow: QueueOverflow = QueueOverflow.DROP_OLDEST

    evict_statuses: List[OrderStatus] = field(default_factory=lambda: [OrderStatus.CANCELED])
    display_channels: List[str] = field(default_factory=lambda: ["account"])

    restart_backoff_cap_s: float = 30.0
    stop_timeout_s: float = 5.0


def _positive(name: str, value: float) -> float:
    if value <= 0:
        raise ValueError(f"Invalid cfg: watchdog.{name} must be > 0, got {value}")
    return value


def make_settings_from_cfg(cfg: Mapping[str, Any]) -> WatchDogSettings:
    try:
        wd = cfg["watchdog"]
        market_id = str(wd["market_id"])
    except KeyError as e:
        raise ValueError(f"Invalid cfg missing key: {e}") from e

    d = WatchDogSettings(market_id=market_id)
    try:
        for name in ("price_tick", "size_tick", "default_size", "bid_discount"):
            if name in wd:
                setattr(d, name, to_decimal(wd[name]))
        for name in ("quote_interval_s", "cancel_scan_interval_s", "cleanup_interval_s",
                     "restart_backoff_cap_s", "stop_timeout_s"):
            if name in wd:
                setattr(d, name, _positive(name, float(wd[name])))
        for name in ("cancel_queue_size", "event_queue_size"):
            if name in wd:
                setattr(d, name, int(_positive(name, int(wd[name]))))
        if "event_queue_overflow" in wd:
            d.event_queue_overflow = QueueOverflow(str(wd["event_queue_overflow"]).lower())
        if "evict_statuses" in wd:
            d.evict_statuses = [_strict_status(s) for s in wd["evict_statuses"] or []]
        if "display_channels" in wd:
            d.display_channels = [str(c) for c in wd["display_channels"] or []]
    except ArithmeticError as e:
        raise ValueError(f"Invalid cfg number in watchdog section: {e}") from e

    return d


def _strict_status(value: Any) -> OrderStatus:
    # OrderStatus maps unknown strings to UNKNOWN; config typos must fail loudly instead
    s = str(value).lower()
    if s not in {st.value for st in OrderStatus}:
        raise ValueError(f"Invalid cfg: unknown order status {value!r} in watchdog.evict_statuses")
    return OrderStatus(s)
