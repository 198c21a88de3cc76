"""Tests for the WebSocket signaling client."""

import orjson
import pytest
from websockets.exceptions import ConnectionClosedError
from websockets.protocol import State

from app.domain.live.peers import SignalingClient, signaling_url
from app.schemas.signaling import Heart, ViewerCount
from app.utils.app_errors import AppError, AppErrorCode


class FakeConnection:
    """Subset of websockets' ClientConnection."""

    def __init__(self, frames: list[str | bytes] | None = None, drop: bool = False):
        self.frames = list(frames or [])
        self.drop = drop
        self.state = State.OPEN
        self.sent: list[str] = []

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.state = State.CLOSED

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame
        if self.drop:
            raise ConnectionClosedError(None, None)


class TestSignalingUrl:
    @pytest.mark.parametrize(
        "base_url, expected",
        [
            ("https://live.example.com", "wss://live.example.com/ws"),
            ("http://localhost:8000/app/page", "ws://localhost:8000/ws"),
            ("ws://127.0.0.1:9000", "ws://127.0.0.1:9000/ws"),
        ],
    )
    def test_scheme_follows_page(self, base_url, expected):
        assert signaling_url(base_url) == expected

    def test_custom_path(self):
        assert signaling_url("https://live.example.com", "signal") == "wss://live.example.com/signal"

    @pytest.mark.parametrize("base_url", ["ftp://example.com", "example.com", ""])
    def test_rejects_unusable_url(self, base_url):
        with pytest.raises(ValueError):
            signaling_url(base_url)


class TestSignalingClient:
    async def test_send_serializes_camel_case_json(self):
        connection = FakeConnection()
        client = SignalingClient("ws://test/ws", connection=connection)

        await client.send(Heart(stream_id="st_1"))

        assert orjson.loads(connection.sent[0]) == {"type": "heart", "streamId": "st_1"}

    async def test_send_when_closed_raises(self):
        connection = FakeConnection()
        client = SignalingClient("ws://test/ws", connection=connection)
        await client.close()

        with pytest.raises(AppError) as exc_info:
            await client.send(Heart())

        assert exc_info.value.errcode == AppErrorCode.E_SIGNALING_NOT_CONNECTED.value
        assert client.connected is False

    async def test_run_dispatches_and_drops_bad_frames(self):
        connection = FakeConnection(
            frames=[
                '{"type": "viewer-count", "count": 2}',
                "{not json",
                '{"type": "unknown-type"}',
                b'{"type": "heart"}',
            ]
        )
        client = SignalingClient("ws://test/ws", connection=connection)
        received = []

        async def handler(envelope):
            received.append(envelope)

        await client.run(handler)

        assert len(received) == 2
        assert isinstance(received[0], ViewerCount)
        assert isinstance(received[1], Heart)

    async def test_run_returns_when_connection_drops(self):
        """No reconnect: run ends and in-flight signaling is lost."""
        connection = FakeConnection(frames=['{"type": "heart"}'], drop=True)
        client = SignalingClient("ws://test/ws", connection=connection)
        received = []

        async def handler(envelope):
            received.append(envelope)

        await client.run(handler)

        assert len(received) == 1
