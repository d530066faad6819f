# orderwatch/services/feed_service.py
import asyncio
import contextlib
from typing import Any, List, Mapping, Optional

from infra.ws_client import FeedClient
from orderwatch.config import WatchDogSettings
from orderwatch.models import EventEnvelope
from orderwatch.services.endpoints import Endpoints
from utils.logger import logger


class FeedService:
    """
    Owns the push feed for one market and one profile:
    builds the channel set, binds the hand-off queue, connects, then reads in the background.
    """

    def __init__(self, endpoints: Endpoints, settings: WatchDogSettings, token: str,
                 feed_cfg: Optional[Mapping[str, Any]] = None, client_factory=FeedClient) -> None:
        self._ep = endpoints
        self._s = settings
        self._token = token
        self._cfg = dict(feed_cfg or {})
        self._factory = client_factory
        self.queue: "asyncio.Queue[EventEnvelope]" = asyncio.Queue(maxsize=settings.event_queue_size)
        self.client: Optional[FeedClient] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def depth(self) -> int:
        return self.queue.qsize()

    def channels(self, profile_id: int) -> List[str]:
        return self._ep.channels_for(self._s.market_id, profile_id)

    async def start(self, profile_id: int) -> None:
        """Connect and subscribe (FeedError is fatal), then keep reading in a background task."""
        channels = self.channels(profile_id)
        self.client = self._factory(
            self._ep.ws_url,
            self._token,
            channels,
            handshake_timeout_s=float(self._cfg.get("handshake_timeout_s", 10)),
            read_timeout_s=float(self._cfg.get("read_timeout_s", 60)),
            reconnect_cap_s=float(self._cfg.get("reconnect_cap_s", 20)),
        )
        self.client.bind_queue(self.queue, overflow=self._s.event_queue_overflow)
        await self.client.connect()
        self._task = asyncio.create_task(self.client.run_forever(), name="feed")
        logger.info(f"Feed started channels={channels}")

    async def stop(self) -> None:
        if self.client is not None:
            await self.client.stop()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Feed stopped")
