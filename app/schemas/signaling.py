"""Signaling envelopes exchanged over the live-stream WebSocket.

Envelopes are JSON objects with a mandatory ``type`` discriminant. Field names
are camelCase on the wire (``streamId``, ``viewerId``) and snake_case here.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

import orjson
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

Identifier = Annotated[str, Field(min_length=1, max_length=128)]


class MessageType(str, Enum):
    BROADCASTER_READY = "broadcaster-ready"
    BROADCASTER_STOPPED = "broadcaster-stopped"
    VIEWER_JOIN = "viewer-join"
    VIEWER_CONNECTED = "viewer-connected"
    VIEWER_DISCONNECTED = "viewer-disconnected"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    HEART = "heart"
    VIEWER_COUNT = "viewer-count"
    STREAM_ENDED = "stream-ended"
    CHAT = "chat"
    JOIN_REACTIONS = "join-reactions"
    REACTION = "reaction"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


# Spellings used by older clients
_TYPE_ALIASES = {
    "join_reactions": MessageType.JOIN_REACTIONS.value,
    "viewer_join": MessageType.VIEWER_JOIN.value,
    "ice_candidate": MessageType.ICE_CANDIDATE.value,
}


class SignalingModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SessionDescription(SignalingModel):
    """SDP offer or answer, same shape as the browser's RTCSessionDescriptionInit."""

    type: Literal["offer", "answer", "pranswer", "rollback"]
    sdp: str = ""


class IceCandidate(SignalingModel):
    """Trickled ICE candidate, same shape as the browser's RTCIceCandidateInit."""

    candidate: str = ""
    sdp_mid: str | None = None
    sdp_m_line_index: int | None = Field(default=None, alias="sdpMLineIndex")
    username_fragment: str | None = None


class BroadcasterReady(SignalingModel):
    type: Literal["broadcaster-ready"] = "broadcaster-ready"
    stream_id: Identifier | None = None
    broadcaster_id: Identifier | None = None

    @property
    def resolved_stream_id(self) -> str | None:
        return self.stream_id or self.broadcaster_id


class BroadcasterStopped(SignalingModel):
    type: Literal["broadcaster-stopped"] = "broadcaster-stopped"
    stream_id: Identifier | None = None


class ViewerJoin(SignalingModel):
    type: Literal["viewer-join"] = "viewer-join"
    stream_id: Identifier
    viewer_id: Identifier


class ViewerConnected(SignalingModel):
    type: Literal["viewer-connected"] = "viewer-connected"
    viewer_id: Identifier


class ViewerDisconnected(SignalingModel):
    type: Literal["viewer-disconnected"] = "viewer-disconnected"
    viewer_id: Identifier


class Offer(SignalingModel):
    type: Literal["offer"] = "offer"
    viewer_id: Identifier | None = None
    stream_id: Identifier | None = None
    offer: SessionDescription


class Answer(SignalingModel):
    type: Literal["answer"] = "answer"
    viewer_id: Identifier | None = None
    stream_id: Identifier | None = None
    answer: SessionDescription


class IceCandidateMessage(SignalingModel):
    type: Literal["ice-candidate"] = "ice-candidate"
    viewer_id: Identifier | None = None
    stream_id: Identifier | None = None
    candidate: IceCandidate | None = None


class Heart(SignalingModel):
    type: Literal["heart"] = "heart"
    stream_id: Identifier | None = None


class ViewerCount(SignalingModel):
    type: Literal["viewer-count"] = "viewer-count"
    count: int = Field(ge=0)


class StreamEnded(SignalingModel):
    type: Literal["stream-ended"] = "stream-ended"
    stream_id: Identifier | None = None


class Chat(SignalingModel):
    type: Literal["chat"] = "chat"
    stream_id: Identifier | None = None
    user_id: str | int | None = None
    username: str | None = None
    content: str = Field(max_length=2000)
    timestamp: datetime | None = None


class JoinReactions(SignalingModel):
    type: Literal["join-reactions"] = "join-reactions"
    target_type: Identifier
    target_id: str | int

    @property
    def target_key(self) -> str:
        return f"{self.target_type}_{self.target_id}"


class Reaction(SignalingModel):
    type: Literal["reaction"] = "reaction"
    emoji: str = Field(min_length=1, max_length=32)
    target_type: Identifier
    target_id: str | int
    timestamp: datetime | None = None

    @property
    def target_key(self) -> str:
        return f"{self.target_type}_{self.target_id}"


class ErrorMessage(SignalingModel):
    type: Literal["error"] = "error"
    code: str
    message: str


Envelope = Annotated[
    Union[
        BroadcasterReady,
        BroadcasterStopped,
        ViewerJoin,
        ViewerConnected,
        ViewerDisconnected,
        Offer,
        Answer,
        IceCandidateMessage,
        Heart,
        ViewerCount,
        StreamEnded,
        Chat,
        JoinReactions,
        Reaction,
        ErrorMessage,
    ],
    Field(discriminator="type"),
]

_envelope_adapter: TypeAdapter[Envelope] = TypeAdapter(Envelope)


class EnvelopeError(AppError):
    """Raised when a frame cannot be decoded into a known envelope."""

    def __init__(self, errmesg: str):
        super().__init__(
            errcode=AppErrorCode.E_INVALID_ENVELOPE,
            errmesg=errmesg,
            status_code=HttpStatusCode.BAD_REQUEST,
        )


def parse_envelope(raw: str | bytes | dict[str, Any]) -> Envelope:
    """Decode a text/bytes frame (or an already-decoded dict) into an envelope.

    Raises:
        EnvelopeError: invalid JSON, missing/unknown type, or invalid payload
    """
    if isinstance(raw, dict):
        data = dict(raw)
    else:
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise EnvelopeError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise EnvelopeError(f"Envelope must be a JSON object, got {type(data).__name__}")

    msg_type = data.get("type")
    if not isinstance(msg_type, str) or not msg_type:
        raise EnvelopeError("Envelope is missing a 'type' field")
    data["type"] = _TYPE_ALIASES.get(msg_type, msg_type)

    try:
        return _envelope_adapter.validate_python(data)
    except ValidationError as e:
        raise EnvelopeError(f"Invalid '{msg_type}' envelope: {e.errors(include_url=False)}") from e


def dump_envelope(envelope: BaseModel) -> dict[str, Any]:
    """Serialize an envelope to its camelCase wire form, omitting unset optionals."""
    return envelope.model_dump(mode="json", by_alias=True, exclude_none=True)


__all__ = [
    "Answer",
    "BroadcasterReady",
    "BroadcasterStopped",
    "Chat",
    "Envelope",
    "EnvelopeError",
    "ErrorMessage",
    "Heart",
    "IceCandidate",
    "IceCandidateMessage",
    "JoinReactions",
    "MessageType",
    "Offer",
    "Reaction",
    "SessionDescription",
    "StreamEnded",
    "ViewerConnected",
    "ViewerCount",
    "ViewerDisconnected",
    "ViewerJoin",
    "dump_envelope",
    "parse_envelope",
]
