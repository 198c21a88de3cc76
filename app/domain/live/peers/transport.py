"""WebSocket signaling client used by the broadcaster and viewer controllers."""

from collections.abc import Awaitable, Callable
from typing import Protocol
from urllib.parse import urlsplit, urlunsplit

import orjson
from loguru import logger
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from app.schemas import Envelope, EnvelopeError, dump_envelope, parse_envelope
from app.schemas.signaling import SignalingModel
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

EnvelopeHandler = Callable[[Envelope], Awaitable[None]]

_WS_SCHEMES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


class SignalingSender(Protocol):
    async def send(self, envelope: SignalingModel) -> None: ...


def signaling_url(base_url: str, path: str = "/ws") -> str:
    """Derive the relay URL from a page/API base URL (https -> wss, http -> ws)."""
    parts = urlsplit(base_url)
    scheme = _WS_SCHEMES.get(parts.scheme.lower())
    if scheme is None or not parts.netloc:
        raise ValueError(f"Cannot derive a signaling URL from {base_url!r}")

    if not path.startswith("/"):
        path = f"/{path}"
    return urlunsplit((scheme, parts.netloc, path, "", ""))


class SignalingClient:
    """One WebSocket connection to the relay.

    There is no reconnect: once the connection drops, in-flight signaling is
    lost and ``send`` raises.
    """

    def __init__(self, url: str, connection: ClientConnection | None = None):
        self.url = url
        self._ws = connection

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def connect(self) -> "SignalingClient":
        if not self.connected:
            self._ws = await connect(self.url)
            logger.info(f"Connected to signaling relay {self.url}")
        return self

    async def send(self, envelope: SignalingModel) -> None:
        if self._ws is None or not self.connected:
            raise AppError(
                errcode=AppErrorCode.E_SIGNALING_NOT_CONNECTED,
                errmesg=f"Signaling connection to {self.url} is not open",
                status_code=HttpStatusCode.CONFLICT,
            )

        await self._ws.send(orjson.dumps(dump_envelope(envelope)).decode())

    async def run(self, handler: EnvelopeHandler) -> None:
        """Dispatch incoming envelopes until the connection closes.

        Frames that fail to parse are logged and dropped.
        """
        if self._ws is None:
            await self.connect()

        try:
            async for raw in self._ws:
                try:
                    envelope = parse_envelope(raw)
                except EnvelopeError as e:
                    logger.warning(f"Dropping signaling frame: {e.errmesg}")
                    continue

                await handler(envelope)
        except ConnectionClosed as e:
            logger.info(f"Signaling connection closed: {e}")

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def __aenter__(self) -> "SignalingClient":
        return await self.connect()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
