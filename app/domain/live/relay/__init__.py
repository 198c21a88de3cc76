"""Server-side signaling relay: routes envelopes between one broadcaster and N viewers per stream."""

from .relay_domain import SignalingRelay
from .relay_models import Participant, ParticipantRole, StreamSummary
from ._registry import ReactionRegistry, StreamRegistry, StreamRoom

__all__ = [
    "Participant",
    "ParticipantRole",
    "ReactionRegistry",
    "SignalingRelay",
    "StreamRegistry",
    "StreamRoom",
    "StreamSummary",
]
