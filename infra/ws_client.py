# infra/ws_client.py
from utils.logger import logger
import contextlib
import asyncio, json, random, websockets
from typing import Dict, Any, Iterable, Optional, List, Union
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from orderwatch.enums import QueueOverflow
from orderwatch.errors import FeedError
from orderwatch.models import EventEnvelope

Json = Dict[str, Any]


def iter_messages(raw: Union[str, bytes]) -> List[Json]:
    """
    Split one websocket frame into protocol messages.
    The server batches several JSON objects into a frame, newline separated.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    out: List[Json] = []
    for line in raw.split("\n"):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.warning(f"WS frame: undecodable line dropped: {line[:128]}")
            continue
        if isinstance(data, dict):
            out.append(data)
    return out


def publication_envelope(msg: Json) -> Optional[EventEnvelope]:
    """{"push": {"channel": ch, "pub": {"data": {...}}}} -> EventEnvelope(ch, data bytes)."""
    push = msg.get("push")
    if not isinstance(push, dict):
        return None
    pub = push.get("pub")
    channel = push.get("channel")
    if not isinstance(pub, dict) or "data" not in pub or not channel:
        return None
    data = json.dumps(pub["data"], separators=(",", ":"), ensure_ascii=False)
    return EventEnvelope(channel=str(channel), payload=data.encode("utf-8"))


class FeedClient:
    """
    Push-feed client for the venue's Centrifugo JSON protocol.
    Publications are handed off to a bound asyncio.Queue without ever waiting on the consumer.
    """

    def __init__(self,
        url: str,
        token: str,
        channels: Iterable[str],
        handshake_timeout_s: float = 10.0,
        read_timeout_s: float = 60.0,
        reconnect_cap_s: float = 20.0,
        inst_name: str = "feed",
    ):
        self.url = url
        self.token = token
        self.channels = list(channels)
        self.handshake_timeout_s = handshake_timeout_s
        self.read_timeout_s = read_timeout_s
        self.reconnect_cap_s = reconnect_cap_s
        self.inst_name = inst_name

        self._ws = None
        self._stop = False
        self._cmd_id = 0

        self._q: Optional[asyncio.Queue] = None
        self._overflow = QueueOverflow.DROP_OLDEST
        self.dropped = 0

        logger.info(f"FeedClient {inst_name} init url={url} channels={self.channels} "
                    f"read_timeout_s={read_timeout_s} reconnect_cap_s={reconnect_cap_s}")

    def bind_queue(self, q: asyncio.Queue, *, overflow: QueueOverflow = QueueOverflow.DROP_OLDEST):
        self._q = q
        self._overflow = QueueOverflow(overflow)

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        """First connection: handshake and every subscription, or FeedError."""
        self._stop = False
        try:
            await self._open()
        except FeedError:
            await self._close_ws()
            raise
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            await self._close_ws()
            raise FeedError(f"feed connect to {self.url} failed: {type(e).__name__} ({e})") from e

    async def _open(self) -> None:
        logger.info(f"WS {self.inst_name} connect: connecting to {self.url}")
        self._ws = await websockets.connect(
            self.url, open_timeout=self.handshake_timeout_s, ping_interval=None, close_timeout=5,
        )
        self._cmd_id = 0
        reply = await self._command({"connect": {"token": self.token, "name": "orderwatch"}})
        client_id = (reply.get("connect") or {}).get("client", "")
        logger.info(f"WS {self.inst_name} connect: connected client={client_id}")
        for channel in self.channels:
            logger.info(f"WS {self.inst_name} subscribe: {channel}")
            await self._command({"subscribe": {"channel": channel}})
            logger.info(f"WS {self.inst_name} subscribed: {channel}")

    async def _command(self, body: Json) -> Json:
        """Send one command and read until its reply; pushes arriving meanwhile are handled normally."""
        self._cmd_id += 1
        cid = self._cmd_id
        await self._ws.send(json.dumps({"id": cid, **body}))

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.handshake_timeout_s
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise FeedError(f"no reply to command id={cid} {list(body)}")
            raw = await asyncio.wait_for(self._ws.recv(), timeout=remaining)
            reply = None
            for msg in iter_messages(raw):
                if msg.get("id") == cid:
                    reply = msg
                else:
                    await self._handle(msg)
            if reply is None:
                continue
            if "error" in reply:
                raise FeedError(f"command {list(body)} rejected: {reply['error']}")
            return reply

    async def _handle(self, msg: Json) -> None:
        if not msg:
            # server ping
            with contextlib.suppress(ConnectionClosed):
                await self._ws.send("{}")
            return

        env = publication_envelope(msg)
        if env is not None:
            self._q_put(env)
            return

        push = msg.get("push")
        if isinstance(push, dict):
            if "disconnect" in push:
                logger.warning(f"WS {self.inst_name} server disconnect: {push['disconnect']}")
            elif "unsubscribe" in push:
                logger.warning(f"WS {self.inst_name} unsubscribed by server: {push.get('channel')}")
            else:
                logger.debug(f"WS {self.inst_name} push ignored: {push}")
            return

        if "error" in msg:
            logger.error(f"WS {self.inst_name} reply ERROR: {msg}")
            return
        logger.debug(f"WS {self.inst_name} message ignored: {msg}")

    async def _read_loop(self) -> None:
        while not self._stop and self._ws is not None:
            raw = await asyncio.wait_for(self._ws.recv(), timeout=self.read_timeout_s)
            for msg in iter_messages(raw):
                await self._handle(msg)

    async def run_forever(self) -> None:
        """Read until stop(); reconnect and resubscribe with capped backoff after a disconnect."""
        retry = 0
        while not self._stop:
            try:
                if self._ws is None:
                    await asyncio.sleep(random.uniform(0.0, 0.5))
                    await self._open()
                    retry = 0
                await self._read_loop()
            except asyncio.CancelledError:
                raise
            except InvalidStatus as e:
                code = getattr(e.response, "status_code", None)
                logger.warning(f"WS {self.inst_name} handshake rejected: HTTP {code}")
            except (ConnectionClosed, OSError, asyncio.TimeoutError) as e:
                if not self._stop:
                    logger.warning(f"WS {self.inst_name} connection closed: {type(e).__name__} ({e})")
            except FeedError as e:
                logger.error(f"WS {self.inst_name} resubscribe failed: {e}")
            except Exception:
                logger.exception(f"WS {self.inst_name} loop: exception")
            finally:
                await self._close_ws()

            if self._stop:
                break
            backoff = min(self.reconnect_cap_s, 2 ** min(retry, 6))
            backoff *= random.uniform(0.8, 1.3)
            await asyncio.sleep(backoff)
            retry += 1

    def _q_put(self, env: EventEnvelope) -> None:
        if self._q is None:
            return
        try:
            self._q.put_nowait(env)
            return
        except asyncio.QueueFull:
            pass

        self.dropped += 1
        if self._overflow is QueueOverflow.DROP_NEWEST:
            logger.warning(f"WS {self.inst_name} queue full, drop incoming msg channel={env.channel}")
            return
        with contextlib.suppress(asyncio.QueueEmpty):
            old = self._q.get_nowait()
            logger.warning(f"WS {self.inst_name} queue full, drop oldest msg channel={old.channel}")
        self._q.put_nowait(env)

    async def _close_ws(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        with contextlib.suppress(Exception):
            await ws.close()
        logger.info(f"WS {self.inst_name} close: websocket closed")

    async def stop(self) -> None:
        self._stop = True
        await self._close_ws()
