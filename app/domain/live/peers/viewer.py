"""Viewer side of a live stream."""

import inspect

from aiortc import MediaStreamTrack
from loguru import logger

from app.domain.live.stream_state_machine import StreamStateMachine
from app.domain.utils.idgen import new_viewer_id
from app.schemas import IceCandidate, SessionDescription, StreamState
from app.schemas.signaling import (
    Answer,
    Chat,
    Envelope,
    ErrorMessage,
    Heart,
    IceCandidateMessage,
    Offer,
    StreamEnded,
    ViewerCount,
    ViewerJoin,
)
from app.utils.app_errors import AppError

from .rtc import PeerLink, PeerLinkFactory, TrackSink
from .transport import SignalingSender


class ViewerController:
    """Joins a stream, answers the broadcaster's offer and hands remote tracks to a sink.

    If signaling drops mid-negotiation the viewer stays CONNECTING; there is
    no reconnect.
    """

    def __init__(
        self,
        signaling: SignalingSender,
        peer_factory: PeerLinkFactory,
        *,
        track_sink: TrackSink | None = None,
    ):
        self.signaling = signaling
        self.state = StreamState.IDLE
        self.stream_id: str | None = None
        self.viewer_id: str | None = None
        self.link: PeerLink | None = None
        self.tracks: list[MediaStreamTrack] = []
        self.viewer_count = 0
        self.heart_count = 0

        self._peer_factory = peer_factory
        self._track_sink = track_sink
        self._joined = False

    def _set_state(self, new_state: StreamState) -> None:
        self.state = StreamStateMachine.transition(
            self.state, new_state, owner=f"viewer {self.viewer_id}"
        )

    async def join(self, stream_id: str, viewer_id: str | None = None) -> str:
        """Announce this viewer to the stream's broadcaster; returns the viewer id."""
        self._set_state(StreamState.CONNECTING)
        self.stream_id = stream_id
        self.viewer_id = viewer_id or new_viewer_id()
        self.tracks = []
        # The offer can arrive before send returns
        self._joined = True

        try:
            await self.signaling.send(ViewerJoin(stream_id=stream_id, viewer_id=self.viewer_id))
        except AppError:
            self._joined = False
            self._set_state(StreamState.ENDED)
            raise

        logger.info(f"Viewer {self.viewer_id} joining stream {stream_id}")
        return self.viewer_id

    async def leave(self) -> None:
        """Close the peer connection. The relay learns about it when the socket closes."""
        self._joined = False
        await self._close_link()
        if self.state in (StreamState.CONNECTING, StreamState.LIVE):
            self._set_state(StreamState.ENDED)

    # ==================== NEGOTIATION ====================

    async def handle_offer(self, offer: SessionDescription) -> PeerLink | None:
        """Answer the broadcaster's offer on a fresh peer connection."""
        if not self._joined:
            logger.warning("Dropping offer: viewer has not joined a stream")
            return None

        if self.state == StreamState.ENDED:
            # Broadcaster restarted the stream we are still subscribed to
            self._set_state(StreamState.CONNECTING)

        await self._close_link()
        link = self._peer_factory()
        self.link = link
        link.on_track(self._on_track)

        answer = await link.accept_offer(offer)
        if self.link is not link:
            logger.info(f"Offer for viewer {self.viewer_id} superseded during negotiation")
            return None

        await self.signaling.send(
            Answer(stream_id=self.stream_id, viewer_id=self.viewer_id, answer=answer)
        )
        logger.info(f"Viewer {self.viewer_id} answered offer on stream {self.stream_id}")
        return link

    async def handle_ice_candidate(self, candidate: IceCandidate) -> bool:
        if self.link is None:
            logger.debug(f"Ignoring ICE candidate for viewer {self.viewer_id}: no peer connection")
            return False

        await self.link.add_ice_candidate(candidate)
        return True

    async def _on_track(self, track: MediaStreamTrack) -> None:
        logger.info(f"Viewer {self.viewer_id} received {track.kind} track")
        self.tracks.append(track)
        if self.state == StreamState.CONNECTING:
            self._set_state(StreamState.LIVE)

        if self._track_sink is not None:
            result = self._track_sink(track)
            if inspect.isawaitable(result):
                await result

    async def handle_stream_ended(self) -> None:
        logger.info(f"Stream {self.stream_id} ended for viewer {self.viewer_id}")
        await self._close_link()
        self.viewer_count = 0
        if self.state in (StreamState.CONNECTING, StreamState.LIVE):
            self._set_state(StreamState.ENDED)

    async def _close_link(self) -> None:
        link, self.link = self.link, None
        if link is not None:
            await link.close()

    # ==================== ENGAGEMENT ====================

    async def send_heart(self) -> None:
        """Send a heart to everyone else watching. Purely cosmetic."""
        self.heart_count += 1
        await self.signaling.send(Heart(stream_id=self.stream_id))

    async def send_chat(self, content: str, *, username: str | None = None) -> None:
        await self.signaling.send(
            Chat(stream_id=self.stream_id, user_id=self.viewer_id, username=username, content=content)
        )

    # ==================== DISPATCH ====================

    async def handle_message(self, envelope: Envelope) -> None:
        """Handle one envelope from the relay.

        A rejected offer is logged; the viewer stays CONNECTING until the next one.
        """
        try:
            await self._dispatch(envelope)
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Viewer {self.viewer_id} failed to handle {envelope.type}: {type(e).__name__}: {e}")

    async def _dispatch(self, envelope: Envelope) -> None:
        match envelope:
            case Offer():
                await self.handle_offer(envelope.offer)
            case IceCandidateMessage() if envelope.candidate:
                await self.handle_ice_candidate(envelope.candidate)
            case StreamEnded():
                await self.handle_stream_ended()
            case ViewerCount():
                self.viewer_count = envelope.count
            case Heart():
                self.heart_count += 1
            case Chat():
                logger.debug(f"Chat on {self.stream_id} from {envelope.username}: {envelope.content}")
            case ErrorMessage():
                logger.error(f"Relay error for viewer {self.viewer_id}: {envelope.code} {envelope.message}")
            case _:
                logger.debug(f"Viewer ignoring {envelope.type}")
