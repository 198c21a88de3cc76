"""In-memory registries for stream rooms and reaction subscriptions.

Every method here is synchronous. Callers mutate the registry before their
first ``await`` so interleaved join/leave handlers on the event loop always
see a consistent view.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from app.domain.utils.timeutil import utc_now
from app.schemas import StreamState

from .relay_models import Participant, StreamSummary


@dataclass
class StreamRoom:
    """Participants of one stream: at most one broadcaster, viewers keyed by viewer id."""

    stream_id: str
    broadcaster: Participant | None = None
    viewers: dict[str, Participant] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)

    @property
    def state(self) -> StreamState:
        return StreamState.LIVE if self.broadcaster is not None else StreamState.CONNECTING

    @property
    def viewer_count(self) -> int:
        return len(self.viewers)

    def participants(self) -> list[Participant]:
        members = list(self.viewers.values())
        if self.broadcaster is not None:
            members.insert(0, self.broadcaster)
        return members

    def is_empty(self) -> bool:
        return self.broadcaster is None and not self.viewers

    def summary(self) -> StreamSummary:
        return StreamSummary(
            stream_id=self.stream_id,
            state=self.state,
            broadcaster_id=self.broadcaster.broadcaster_id if self.broadcaster else None,
            viewer_count=self.viewer_count,
            created_at=self.created_at,
        )


class StreamRegistry:
    """Stream rooms keyed by stream id.

    Rooms are created on first reference and dropped once they hold neither a
    broadcaster nor viewers.
    """

    def __init__(self):
        self._streams: dict[str, StreamRoom] = {}

    def get(self, stream_id: str | None) -> StreamRoom | None:
        if not stream_id:
            return None
        return self._streams.get(stream_id)

    def get_or_create(self, stream_id: str) -> StreamRoom:
        room = self._streams.get(stream_id)
        if room is None:
            room = StreamRoom(stream_id=stream_id)
            self._streams[stream_id] = room
            logger.info(f"Stream room created: {stream_id}")
        return room

    def discard_if_empty(self, room: StreamRoom) -> None:
        if room.is_empty() and self._streams.get(room.stream_id) is room:
            del self._streams[room.stream_id]
            logger.info(f"Stream room removed: {room.stream_id}")

    def bind_broadcaster(
        self, stream_id: str, participant: Participant, broadcaster_id: str | None
    ) -> StreamRoom:
        """Bind ``participant`` as the broadcaster of ``stream_id``.

        The caller must have checked that no other broadcaster holds the room.
        """
        room = self.get_or_create(stream_id)
        room.broadcaster = participant
        participant.bind_broadcaster(stream_id, broadcaster_id)
        return room

    def unbind_broadcaster(self, participant: Participant) -> StreamRoom | None:
        """Release the participant's broadcaster binding; returns the room it held."""
        room = self.get(participant.stream_id)
        participant.unbind()
        if room is None or room.broadcaster is not participant:
            return None

        room.broadcaster = None
        return room

    def bind_viewer(
        self, stream_id: str, viewer_id: str, participant: Participant
    ) -> tuple[StreamRoom, Participant | None]:
        """Bind a viewer, returning the room and any binding it replaced.

        A viewer id maps to exactly one connection per stream. Rejoining with
        the same id replaces the earlier binding.
        """
        room = self.get_or_create(stream_id)
        replaced = room.viewers.get(viewer_id)
        if replaced is not None and replaced is not participant:
            replaced.unbind()

        room.viewers[viewer_id] = participant
        participant.bind_viewer(stream_id, viewer_id)
        return room, replaced

    def unbind_viewer(self, participant: Participant) -> StreamRoom | None:
        """Release the participant's viewer binding; returns the room it left.

        Returns None when the binding was already replaced by another connection.
        """
        room = self.get(participant.stream_id)
        viewer_id = participant.viewer_id
        participant.unbind()
        if room is None or viewer_id is None or room.viewers.get(viewer_id) is not participant:
            return None

        del room.viewers[viewer_id]
        return room

    def summaries(self) -> list[StreamSummary]:
        return [room.summary() for room in self._streams.values()]

    def __len__(self) -> int:
        return len(self._streams)

    def __contains__(self, stream_id: object) -> bool:
        return stream_id in self._streams

    def __iter__(self) -> Iterator[StreamRoom]:
        return iter(list(self._streams.values()))


class ReactionRegistry:
    """Reaction subscribers keyed by ``"{targetType}_{targetId}"``."""

    def __init__(self):
        self._targets: dict[str, set[Participant]] = {}

    def subscribe(self, target_key: str, participant: Participant) -> None:
        self._targets.setdefault(target_key, set()).add(participant)
        participant.reaction_targets.add(target_key)

    def unsubscribe_all(self, participant: Participant) -> None:
        for target_key in participant.reaction_targets:
            subscribers = self._targets.get(target_key)
            if subscribers is None:
                continue
            subscribers.discard(participant)
            if not subscribers:
                del self._targets[target_key]
        participant.reaction_targets.clear()

    def subscribers(self, target_key: str) -> list[Participant]:
        return list(self._targets.get(target_key, ()))

    def __len__(self) -> int:
        return len(self._targets)
