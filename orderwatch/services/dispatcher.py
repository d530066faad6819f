# orderwatch/services/dispatcher.py
import asyncio
from typing import Iterable, Optional

from pydantic import ValidationError

from orderwatch.enums import ChannelKind
from orderwatch.loops import get_or_done
from orderwatch.models import EventEnvelope, MarketData, OrderbookData, ProfileData, TradeData
from orderwatch.stores.market_store import MarketStore
from orderwatch.stores.order_store import OrderStore
from utils.logger import logger


def channel_prefix(channel: str) -> Optional[str]:
    """'account@42' -> 'account', 'market:ETH-USD' -> 'market', anything else -> None."""
    if "@" in channel:
        return channel.split("@", 1)[0]
    if ":" in channel:
        return channel.split(":", 1)[0]
    return None


def parse_channel(channel: str) -> Optional[ChannelKind]:
    """Channel kind, or None when the name carries no prefix at all."""
    prefix = channel_prefix(channel)
    if prefix is None:
        return None
    return ChannelKind.from_prefix(prefix)


class Dispatcher:
    """
    Routes feed envelopes to the stores.
    The only writer reachable from the push stream; never raises out of dispatch().
    """

    def __init__(self, order_store: OrderStore, market_store: MarketStore,
                 display_channels: Iterable[str] = ("account",)) -> None:
        self._orders = order_store
        self._market = market_store
        self._display = frozenset(display_channels)
        self.handled = 0
        self.dropped = 0

    async def dispatch(self, env: EventEnvelope) -> Optional[ChannelKind]:
        """Apply one envelope; returns the kind handled, or None if it was dropped."""
        prefix = channel_prefix(env.channel)
        if prefix is None:
            logger.warning(f"Dispatcher: malformed channel name {env.channel!r}, dropped")
            self.dropped += 1
            return None

        if prefix in self._display:
            logger.info(f"{env.channel}: {env.payload.decode('utf-8', errors='replace')}")
        else:
            logger.debug(f"{env.channel}: {env.payload[:256]!r}")

        kind = ChannelKind.from_prefix(prefix)
        try:
            if kind is ChannelKind.MARKET:
                md = MarketData.model_validate_json(env.payload)
                await self._market.update(best_bid=md.best_bid, best_ask=md.best_ask)
            elif kind is ChannelKind.ACCOUNT:
                pd = ProfileData.model_validate_json(env.payload)
                n = await self._orders.upsert_many((o.id, o.status) for o in pd.orders or [])
                if n:
                    logger.debug(f"Dispatcher: account update applied {n} order(s)")
            elif kind is ChannelKind.ORDERBOOK:
                OrderbookData.model_validate_json(env.payload)
            elif kind is ChannelKind.TRADE:
                TradeData.model_validate_json(env.payload)
            else:
                logger.error(f"Dispatcher: unknown channel {env.channel}, dropped")
                self.dropped += 1
                return None
        except ValidationError as e:
            logger.error(f"Dispatcher: decode failed channel={env.channel}: {e.errors()[0]['msg']}")
            self.dropped += 1
            return None
        except Exception:
            logger.exception(f"Dispatcher: failed to apply envelope channel={env.channel}")
            self.dropped += 1
            return None

        self.handled += 1
        return kind

    async def run(self, queue: "asyncio.Queue[EventEnvelope]", done: asyncio.Event) -> None:
        """Listener: pop envelopes until shutdown."""
        logger.info("Dispatcher: listener started")
        while not done.is_set():
            env = await get_or_done(queue, done)
            if env is None:
                break
            await self.dispatch(env)
        logger.info("Dispatcher: listener stopped")
