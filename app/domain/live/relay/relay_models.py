"""Relay domain models."""

from datetime import datetime
from enum import Enum
from typing import Protocol

import orjson
from loguru import logger
from pydantic import BaseModel

from app.domain.utils.idgen import new_connection_id
from app.domain.utils.timeutil import utc_now
from app.schemas import StreamState, dump_envelope
from app.schemas.signaling import SignalingModel


class TextSocket(Protocol):
    """The part of a WebSocket the relay writes to."""

    async def send_text(self, data: str) -> None: ...


class ParticipantRole(str, Enum):
    UNBOUND = "unbound"
    BROADCASTER = "broadcaster"
    VIEWER = "viewer"

    def __str__(self) -> str:
        return self.value


class Participant:
    """One relay connection and the stream binding it currently holds.

    A connection holds at most one role at a time. Reaction subscriptions are
    tracked separately and survive role changes.
    """

    def __init__(self, socket: TextSocket, connection_id: str | None = None):
        self.socket = socket
        self.connection_id = connection_id or new_connection_id()
        self.role = ParticipantRole.UNBOUND
        self.stream_id: str | None = None
        self.viewer_id: str | None = None
        self.broadcaster_id: str | None = None
        self.reaction_targets: set[str] = set()
        self.connected_at: datetime = utc_now()

    def bind_broadcaster(self, stream_id: str, broadcaster_id: str | None) -> None:
        self.role = ParticipantRole.BROADCASTER
        self.stream_id = stream_id
        self.broadcaster_id = broadcaster_id
        self.viewer_id = None

    def bind_viewer(self, stream_id: str, viewer_id: str) -> None:
        self.role = ParticipantRole.VIEWER
        self.stream_id = stream_id
        self.viewer_id = viewer_id
        self.broadcaster_id = None

    def unbind(self) -> None:
        self.role = ParticipantRole.UNBOUND
        self.stream_id = None
        self.viewer_id = None
        self.broadcaster_id = None

    @property
    def label(self) -> str:
        if self.role == ParticipantRole.VIEWER:
            return f"viewer {self.viewer_id}@{self.stream_id}"
        if self.role == ParticipantRole.BROADCASTER:
            return f"broadcaster@{self.stream_id}"
        return f"connection {self.connection_id}"

    async def send(self, envelope: SignalingModel) -> bool:
        """Best-effort delivery. Failures are logged, never retried."""
        try:
            await self.socket.send_text(orjson.dumps(dump_envelope(envelope)).decode())
        except Exception as e:
            logger.warning(f"Failed to deliver {envelope.type} to {self.label}: {type(e).__name__}: {e}")
            return False
        return True

    def __repr__(self) -> str:
        return f"Participant({self.connection_id}, {self.label})"


class StreamSummary(BaseModel):
    """Read-only view of an in-memory stream."""

    stream_id: str
    state: StreamState
    broadcaster_id: str | None = None
    viewer_count: int
    created_at: datetime
