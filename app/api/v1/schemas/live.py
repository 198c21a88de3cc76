from datetime import datetime

from pydantic import BaseModel, Field, field_serializer

from app.domain.live.relay import StreamSummary
from app.schemas import StreamState

from .base import serialize_utc_datetime


class StreamOut(BaseModel):
    stream_id: str = Field(description="Broadcaster-chosen stream identifier")
    state: StreamState = Field(description="live when a broadcaster is attached, connecting otherwise")
    broadcaster_id: str | None = Field(default=None, description="Identifier announced by the broadcaster")
    viewer_count: int = Field(description="Viewers currently bound to the stream")
    created_at: datetime

    @field_serializer("created_at")
    def serialize_datetime(self, v: datetime) -> str:
        return serialize_utc_datetime(v)

    @classmethod
    def from_summary(cls, summary: StreamSummary) -> "StreamOut":
        return cls(**summary.model_dump())


class ListStreamsOut(BaseModel):
    streams: list[StreamOut]
    total_viewers: int
