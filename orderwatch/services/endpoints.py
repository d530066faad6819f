# orderwatch/services/endpoints.py
from dataclasses import dataclass
from typing import Any, Mapping


@dataclass
class Endpoints:
    # REST base URL and push feed URL
    rest_base: str
    ws_url: str

    # REST paths used by the watchdog
    orders: str = "/orders"
    account: str = "/account"

    # push channel name formats
    market_channel: str = "market:{market_id}"
    orderbook_channel: str = "orderbook:{market_id}"
    trade_channel: str = "trade:{market_id}"
    account_channel: str = "account@{profile_id}"

    def market_channels(self, market_id: str) -> list[str]:
        return [
            self.market_channel.format(market_id=market_id),
            self.orderbook_channel.format(market_id=market_id),
            self.trade_channel.format(market_id=market_id),
        ]

    def channels_for(self, market_id: str, profile_id: int) -> list[str]:
        return self.market_channels(market_id) + [self.account_channel.format(profile_id=profile_id)]


def make_endpoints_from_cfg(cfg: Mapping[str, Any]) -> Endpoints:
    try:
        venue = cfg["venue"]
        rest_base = str(venue["api_url"]).rstrip("/")
        ws_url = str(venue["ws_url"])
    except KeyError as e:
        raise ValueError(f"Invalid cfg missing key: {e}") from e

    if not rest_base:
        raise ValueError("Invalid cfg: venue.api_url is empty")
    if not ws_url:
        raise ValueError("Invalid cfg: venue.ws_url is empty")

    return Endpoints(rest_base=rest_base, ws_url=ws_url)
