# app/run_watchdog.py
import os
import sys
import signal
import asyncio
import contextlib

from dotenv import load_dotenv

load_dotenv(os.path.expanduser("~/.orderwatch/.env"))

from utils import logger, load_cfg
from infra.http_client import HttpClient, HttpError
from orderwatch.bot import Bot
from orderwatch.config import make_settings_from_cfg
from orderwatch.errors import WatchDogError
from orderwatch.services.directory_service import DirectoryService
from orderwatch.services.endpoints import make_endpoints_from_cfg
from orderwatch.services.feed_service import FeedService


async def main(cfg_path: str | None = None) -> int:
    cfg = load_cfg(cfg_path or os.getenv("ORDERWATCH_CONFIG"))
    settings = make_settings_from_cfg(cfg)
    endpoints = make_endpoints_from_cfg(cfg)

    stop_evt = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_evt.set)

    async with HttpClient(cfg, logger) as http:
        directory = DirectoryService(http, endpoints)
        feed = FeedService(endpoints, settings, token=cfg["venue"].get("jwt_private", ""),
                           feed_cfg=cfg.get("feed"))
        bot = Bot(directory, feed, settings)

        run_task = asyncio.create_task(bot.run(), name="bot")
        stop_task = asyncio.create_task(stop_evt.wait(), name="signal")
        await asyncio.wait({run_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

        if stop_evt.is_set():
            logger.info("Signal received, shutting down")
            await bot.stop()
            if not run_task.done():
                run_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await run_task
            return 0

        stop_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await stop_task
        try:
            run_task.result()
        except (WatchDogError, HttpError) as e:
            logger.error(f"WatchDog {settings.market_id} fatal: {e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None)))
