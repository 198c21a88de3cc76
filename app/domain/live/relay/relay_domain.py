"""Signaling relay: a pub/sub keyed by stream id.

The relay never interprets SDP or candidates. It only decides who receives an
envelope:

- offer / broadcaster ice-candidate  -> the one viewer named by ``viewerId``
- answer / viewer ice-candidate      -> the stream's broadcaster, stamped with the viewer id
- viewer-join / viewer disconnect    -> broadcaster notified, viewer-count to everyone
- heart / chat                       -> everyone else in the stream (chat echoes to sender)
- broadcaster-stopped / disconnect   -> stream-ended to every viewer
- reaction                           -> subscribers of the reaction target

Delivery is at-most-once. Nothing is acknowledged or retried.
"""

from loguru import logger

from app.domain.utils.timeutil import utc_now
from app.schemas.signaling import (
    Answer,
    BroadcasterReady,
    BroadcasterStopped,
    Chat,
    Envelope,
    ErrorMessage,
    Heart,
    IceCandidateMessage,
    JoinReactions,
    Offer,
    Reaction,
    SignalingModel,
    StreamEnded,
    ViewerConnected,
    ViewerCount,
    ViewerDisconnected,
    ViewerJoin,
)
from app.shared.api.utils import run_taskgroup
from app.utils.app_errors import AppErrorCode

from ._registry import ReactionRegistry, StreamRegistry, StreamRoom
from .relay_models import Participant, ParticipantRole, StreamSummary


class SignalingRelay:
    """Routes signaling envelopes between one broadcaster and N viewers per stream."""

    def __init__(
        self,
        registry: StreamRegistry | None = None,
        reactions: ReactionRegistry | None = None,
    ):
        self.registry = registry or StreamRegistry()
        self.reactions = reactions or ReactionRegistry()

    # ==================== DISPATCH ====================

    async def handle(self, participant: Participant, envelope: Envelope) -> None:
        """Route one envelope received from ``participant``."""
        match envelope:
            case BroadcasterReady():
                await self._on_broadcaster_ready(participant, envelope)
            case BroadcasterStopped():
                await self._on_broadcaster_stopped(participant)
            case ViewerJoin():
                await self._on_viewer_join(participant, envelope)
            case Offer():
                await self._on_offer(participant, envelope)
            case Answer():
                await self._on_answer(participant, envelope)
            case IceCandidateMessage():
                await self._on_ice_candidate(participant, envelope)
            case Heart():
                await self._on_heart(participant, envelope)
            case Chat():
                await self._on_chat(participant, envelope)
            case JoinReactions():
                self.reactions.subscribe(envelope.target_key, participant)
                logger.debug(f"{participant.label} subscribed to reactions {envelope.target_key}")
            case Reaction():
                await self._on_reaction(envelope)
            case _:
                # viewer-connected, viewer-count, stream-ended, ... are relay-to-client only
                logger.warning(f"Dropping {envelope.type} from {participant.label}: not accepted from clients")

    async def disconnect(self, participant: Participant) -> None:
        """Release every binding held by a closed connection."""
        self.reactions.unsubscribe_all(participant)

        if participant.role == ParticipantRole.BROADCASTER:
            logger.info(f"Broadcaster disconnected from stream {participant.stream_id}")
            await self._end_stream(participant)
        elif participant.role == ParticipantRole.VIEWER:
            logger.info(f"{participant.label} disconnected")
            await self._leave_viewer(participant)

    # ==================== QUERIES ====================

    def get_stream(self, stream_id: str) -> StreamSummary | None:
        room = self.registry.get(stream_id)
        return room.summary() if room else None

    def snapshot(self) -> list[StreamSummary]:
        return self.registry.summaries()

    # ==================== BROADCASTER ====================

    async def _on_broadcaster_ready(self, participant: Participant, envelope: BroadcasterReady) -> None:
        stream_id = envelope.resolved_stream_id
        if not stream_id:
            logger.warning(f"Dropping broadcaster-ready from {participant.label}: no stream id")
            return

        if participant.role == ParticipantRole.VIEWER:
            logger.warning(f"Dropping broadcaster-ready from {participant.label}: connection is a viewer")
            return

        existing = self.registry.get(stream_id)
        if existing and existing.broadcaster is not None and existing.broadcaster is not participant:
            logger.warning(f"Rejecting broadcaster-ready for {stream_id}: stream already has a broadcaster")
            await participant.send(
                ErrorMessage(
                    code=AppErrorCode.E_STREAM_ALREADY_LIVE.value,
                    message=f"Stream {stream_id} already has a broadcaster",
                )
            )
            return

        if existing and existing.broadcaster is participant:
            # Repeated ready on the same stream: refresh the count only
            await self._send_viewer_count(existing)
            return

        if participant.role == ParticipantRole.BROADCASTER:
            # Switching streams ends the previous one
            await self._end_stream(participant)

        room = self.registry.bind_broadcaster(stream_id, participant, envelope.broadcaster_id)
        waiting = list(room.viewers)
        logger.info(f"Broadcaster ready on stream {stream_id} ({len(waiting)} viewers waiting)")

        for viewer_id in waiting:
            await participant.send(ViewerConnected(viewer_id=viewer_id))
        await self._send_viewer_count(room)

    async def _on_broadcaster_stopped(self, participant: Participant) -> None:
        if participant.role != ParticipantRole.BROADCASTER:
            logger.warning(f"Dropping broadcaster-stopped from {participant.label}: not a broadcaster")
            return

        logger.info(f"Broadcaster stopped stream {participant.stream_id}")
        await self._end_stream(participant)

    async def _end_stream(self, participant: Participant) -> None:
        room = self.registry.unbind_broadcaster(participant)
        if room is None:
            return

        viewers = list(room.viewers.values())
        self.registry.discard_if_empty(room)

        ended = StreamEnded(stream_id=room.stream_id)
        await self._fan_out(viewers, ended)

    # ==================== VIEWERS ====================

    async def _on_viewer_join(self, participant: Participant, envelope: ViewerJoin) -> None:
        if participant.role == ParticipantRole.BROADCASTER:
            logger.warning(f"Dropping viewer-join from {participant.label}: connection is a broadcaster")
            return

        if participant.role == ParticipantRole.VIEWER and (
            participant.stream_id != envelope.stream_id or participant.viewer_id != envelope.viewer_id
        ):
            # Joining somewhere else leaves the previous stream first
            await self._leave_viewer(participant)

        room, replaced = self.registry.bind_viewer(envelope.stream_id, envelope.viewer_id, participant)
        broadcaster = room.broadcaster

        if replaced is not None:
            logger.info(
                f"Viewer {envelope.viewer_id} rejoined stream {envelope.stream_id}, replacing previous binding"
            )
            if broadcaster is not None:
                await broadcaster.send(ViewerDisconnected(viewer_id=envelope.viewer_id))
        else:
            logger.info(f"Viewer {envelope.viewer_id} joined stream {envelope.stream_id}")

        if broadcaster is not None:
            await broadcaster.send(ViewerConnected(viewer_id=envelope.viewer_id))
        await self._send_viewer_count(room)

    async def _leave_viewer(self, participant: Participant) -> None:
        viewer_id = participant.viewer_id
        room = self.registry.unbind_viewer(participant)
        if room is None or viewer_id is None:
            return

        self.registry.discard_if_empty(room)
        if room.broadcaster is not None:
            await room.broadcaster.send(ViewerDisconnected(viewer_id=viewer_id))
        await self._send_viewer_count(room)

    # ==================== NEGOTIATION ====================

    async def _on_offer(self, participant: Participant, envelope: Offer) -> None:
        if participant.role != ParticipantRole.BROADCASTER:
            logger.warning(f"Dropping offer from {participant.label}: not a broadcaster")
            return

        viewer = self._find_viewer(participant, envelope.viewer_id)
        if viewer is None:
            return

        await viewer.send(envelope.model_copy(update={"stream_id": participant.stream_id}))

    async def _on_answer(self, participant: Participant, envelope: Answer) -> None:
        if participant.role != ParticipantRole.VIEWER:
            logger.warning(f"Dropping answer from {participant.label}: not a viewer")
            return

        broadcaster = self._find_broadcaster(participant)
        if broadcaster is None:
            return

        await broadcaster.send(
            envelope.model_copy(update={"viewer_id": participant.viewer_id, "stream_id": participant.stream_id})
        )

    async def _on_ice_candidate(self, participant: Participant, envelope: IceCandidateMessage) -> None:
        if participant.role == ParticipantRole.BROADCASTER:
            viewer = self._find_viewer(participant, envelope.viewer_id)
            if viewer is not None:
                await viewer.send(envelope.model_copy(update={"stream_id": participant.stream_id}))
        elif participant.role == ParticipantRole.VIEWER:
            broadcaster = self._find_broadcaster(participant)
            if broadcaster is not None:
                await broadcaster.send(
                    envelope.model_copy(
                        update={"viewer_id": participant.viewer_id, "stream_id": participant.stream_id}
                    )
                )
        else:
            logger.warning(f"Dropping ice-candidate from {participant.label}: not bound to a stream")

    def _find_viewer(self, broadcaster: Participant, viewer_id: str | None) -> Participant | None:
        room = self.registry.get(broadcaster.stream_id)
        viewer = room.viewers.get(viewer_id) if room and viewer_id else None
        if viewer is None:
            logger.warning(f"Dropping message from {broadcaster.label}: unknown viewer {viewer_id}")
        return viewer

    def _find_broadcaster(self, viewer: Participant) -> Participant | None:
        room = self.registry.get(viewer.stream_id)
        broadcaster = room.broadcaster if room else None
        if broadcaster is None:
            logger.warning(f"Dropping message from {viewer.label}: stream has no broadcaster")
        return broadcaster

    # ==================== ENGAGEMENT ====================

    async def _on_heart(self, participant: Participant, envelope: Heart) -> None:
        room = self.registry.get(participant.stream_id or envelope.stream_id)
        if room is None:
            logger.debug(f"Dropping heart from {participant.label}: unknown stream")
            return

        heart = Heart(stream_id=room.stream_id)
        await self._fan_out([p for p in room.participants() if p is not participant], heart)

    async def _on_chat(self, participant: Participant, envelope: Chat) -> None:
        room = self.registry.get(participant.stream_id or envelope.stream_id)
        if room is None:
            logger.debug(f"Dropping chat from {participant.label}: unknown stream")
            return

        message = envelope.model_copy(update={"stream_id": room.stream_id, "timestamp": utc_now()})
        recipients = room.participants()
        if participant not in recipients:
            recipients.append(participant)
        await self._fan_out(recipients, message)

    async def _on_reaction(self, envelope: Reaction) -> None:
        subscribers = self.reactions.subscribers(envelope.target_key)
        if not subscribers:
            return

        await self._fan_out(subscribers, envelope.model_copy(update={"timestamp": utc_now()}))

    # ==================== DELIVERY ====================

    async def _send_viewer_count(self, room: StreamRoom) -> None:
        await self._fan_out(room.participants(), ViewerCount(count=room.viewer_count))

    async def _fan_out(self, recipients: list[Participant], envelope: SignalingModel) -> None:
        if not recipients:
            return
        # Participant.send never raises, so one dead socket cannot cancel the rest
        await run_taskgroup(*(p.send(envelope) for p in recipients))
