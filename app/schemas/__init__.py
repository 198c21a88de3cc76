"""Wire and state schemas for live streaming."""

from .signaling import (
    Envelope,
    EnvelopeError,
    IceCandidate,
    MessageType,
    SessionDescription,
    dump_envelope,
    parse_envelope,
)
from .stream_state import StreamState

__all__ = [
    "Envelope",
    "EnvelopeError",
    "IceCandidate",
    "MessageType",
    "SessionDescription",
    "StreamState",
    "dump_envelope",
    "parse_envelope",
]
