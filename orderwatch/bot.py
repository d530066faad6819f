# orderwatch/bot.py
from typing import Optional

from orderwatch.config import WatchDogSettings
from orderwatch.services.feed_service import FeedService
from orderwatch.watchdog import WatchDog
from utils.logger import logger


class Bot:
    """
    Top-level composition: resolve the profile, open the feed, run the watchdog.
    Any startup failure propagates out of run().
    """

    def __init__(self, directory, feed: FeedService, settings: WatchDogSettings) -> None:
        self._dir = directory
        self._feed = feed
        self._s = settings
        self.profile_id: Optional[int] = None
        self.watchdog: Optional[WatchDog] = None

    async def start(self) -> WatchDog:
        profile = await self._dir.get_profile()
        self.profile_id = profile.id
        logger.info(f"ProfileId = {self.profile_id} detected")

        await self._feed.start(self.profile_id)
        self.watchdog = WatchDog(self._dir, self._s, self._feed.queue)
        try:
            await self.watchdog.start()
        except BaseException:
            await self._feed.stop()
            raise
        return self.watchdog

    async def run(self) -> None:
        """start(), then block until the watchdog stops."""
        wd = await self.start()
        try:
            await wd.wait()
        finally:
            await self._feed.stop()

    async def stop(self) -> None:
        if self.watchdog is not None:
            await self.watchdog.stop()
        await self._feed.stop()
