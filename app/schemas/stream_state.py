"""Common enums used across schemas."""

from enum import Enum


class StreamState(str, Enum):
    """Connection status of a broadcaster or viewer for one stream.

    State Transition Flow:

    IDLE → CONNECTING → LIVE → ENDED
             ↓    ↑              ↓
            IDLE  └──────────────┘  (restart / re-join)

    State Descriptions:
    - IDLE: Nothing requested yet, or media access was denied.
    - CONNECTING: Broadcaster is acquiring media, or viewer sent its join and
      is waiting for the offer and the first remote track.
    - LIVE: Broadcaster announced readiness, or viewer is receiving media.
    - ENDED: Broadcaster stopped, or viewer left / saw the stream end.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    LIVE = "live"
    ENDED = "ended"

    def __str__(self) -> str:
        return self.value


__all__ = ["StreamState"]
