"""Broadcaster side of a live stream.

Captures local media, announces readiness through the relay and negotiates
one peer connection per viewer the relay reports.
"""

from loguru import logger

from app.domain.live.stream_state_machine import StreamStateMachine
from app.domain.utils.idgen import new_stream_id
from app.schemas import IceCandidate, SessionDescription, StreamState
from app.schemas.signaling import (
    Answer,
    BroadcasterReady,
    BroadcasterStopped,
    Chat,
    Envelope,
    ErrorMessage,
    Heart,
    IceCandidateMessage,
    Offer,
    ViewerConnected,
    ViewerCount,
    ViewerDisconnected,
)
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .peer_registry import PeerRegistry
from .rtc import LocalMedia, MediaSource, PeerLink, PeerLinkFactory
from .transport import SignalingSender


class BroadcasterController:
    """Owns the local media and the per-viewer peer connections of one stream.

    State flow: IDLE -> CONNECTING -> LIVE -> ENDED, and ENDED -> CONNECTING to
    broadcast again. A viewer counts as connected as soon as its peer exists,
    whatever the ICE outcome. A failed peer stays registered until the viewer
    leaves or the stream stops.
    """

    def __init__(
        self,
        signaling: SignalingSender,
        media_source: MediaSource,
        peer_factory: PeerLinkFactory,
        *,
        stream_id: str | None = None,
        broadcaster_id: str | None = None,
    ):
        self.signaling = signaling
        self.stream_id = stream_id or new_stream_id()
        self.broadcaster_id = broadcaster_id or self.stream_id
        self.state = StreamState.IDLE
        self.peers = PeerRegistry()
        self.viewer_count = 0
        self.heart_count = 0

        self._media_source = media_source
        self._peer_factory = peer_factory
        self._media: LocalMedia | None = None

    @property
    def is_live(self) -> bool:
        return self.state == StreamState.LIVE

    def _set_state(self, new_state: StreamState) -> None:
        self.state = StreamStateMachine.transition(
            self.state, new_state, owner=f"broadcaster {self.stream_id}"
        )

    # ==================== LIFECYCLE ====================

    async def start_stream(self) -> None:
        """Acquire camera/microphone and announce the stream.

        Raises:
            AppError: E_MEDIA_ACCESS_DENIED if media cannot be opened (no retry),
                E_INVALID_STATE_TRANSITION if already streaming
        """
        self._set_state(StreamState.CONNECTING)

        try:
            media = await self._media_source()
        except Exception as e:
            self._set_state(StreamState.IDLE)
            logger.warning(f"Media access failed for stream {self.stream_id}: {type(e).__name__}: {e}")
            raise AppError(
                errcode=AppErrorCode.E_MEDIA_ACCESS_DENIED,
                errmesg=f"Could not access camera or microphone: {e}",
                status_code=HttpStatusCode.BAD_REQUEST,
            ) from e

        try:
            await self.signaling.send(
                BroadcasterReady(stream_id=self.stream_id, broadcaster_id=self.broadcaster_id)
            )
        except Exception:
            media.stop()
            self._set_state(StreamState.IDLE)
            raise

        self._media = media
        self._set_state(StreamState.LIVE)
        logger.info(f"Stream {self.stream_id} is live")

    async def stop_stream(self, *, notify: bool = True) -> None:
        """Stop local media, close every peer and announce the stop."""
        if self.state not in (StreamState.CONNECTING, StreamState.LIVE):
            logger.debug(f"Stream {self.stream_id} not streaming ({self.state}), nothing to stop")
            return

        if self._media is not None:
            self._media.stop()
            self._media = None

        closed = len(self.peers)
        await self.peers.close_all()
        self.viewer_count = 0
        self._set_state(StreamState.ENDED)

        if notify:
            try:
                await self.signaling.send(BroadcasterStopped(stream_id=self.stream_id))
            except AppError as e:
                # Local teardown is complete; the relay ends the stream on disconnect anyway
                logger.warning(f"Could not announce stop for stream {self.stream_id}: {e.errmesg}")

        logger.info(f"Stream {self.stream_id} ended, closed {closed} peer connections")

    # ==================== VIEWERS ====================

    async def handle_viewer_joined(self, viewer_id: str) -> PeerLink | None:
        """Create, register and offer a peer connection for a newly joined viewer."""
        if not self.is_live or self._media is None:
            logger.warning(f"Ignoring viewer {viewer_id} on stream {self.stream_id}: not live")
            return None

        link = self._peer_factory()
        # Registered before negotiating so early candidates land on this link
        await self.peers.insert(viewer_id, link)
        link.add_tracks(self._media.subscribe())

        offer = await link.create_offer()
        if self.peers.get(viewer_id) is not link:
            logger.info(f"Viewer {viewer_id} left during negotiation, offer not sent")
            return None

        await self.signaling.send(Offer(viewer_id=viewer_id, stream_id=self.stream_id, offer=offer))
        logger.info(f"Sent offer to viewer {viewer_id} on stream {self.stream_id}")
        return link

    async def handle_answer(self, viewer_id: str, answer: SessionDescription) -> bool:
        link = self.peers.get(viewer_id)
        if link is None:
            logger.debug(f"Dropping answer from viewer {viewer_id}: no peer connection")
            return False

        await link.apply_answer(answer)
        logger.info(f"Applied answer from viewer {viewer_id}")
        return True

    async def handle_ice_candidate(self, viewer_id: str, candidate: IceCandidate) -> bool:
        link = self.peers.get(viewer_id)
        if link is None:
            logger.debug(f"Dropping ICE candidate from viewer {viewer_id}: no peer connection")
            return False

        await link.add_ice_candidate(candidate)
        return True

    async def handle_viewer_disconnected(self, viewer_id: str) -> None:
        if await self.peers.remove(viewer_id):
            logger.info(f"Viewer {viewer_id} left stream {self.stream_id}")

    # ==================== DISPATCH ====================

    async def handle_message(self, envelope: Envelope) -> None:
        """Handle one envelope from the relay.

        A failure while negotiating with one viewer is logged and does not
        affect the others.
        """
        try:
            await self._dispatch(envelope)
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Stream {self.stream_id} failed to handle {envelope.type}: {type(e).__name__}: {e}")

    async def _dispatch(self, envelope: Envelope) -> None:
        match envelope:
            case ViewerConnected():
                await self.handle_viewer_joined(envelope.viewer_id)
            case Answer() if envelope.viewer_id:
                await self.handle_answer(envelope.viewer_id, envelope.answer)
            case IceCandidateMessage() if envelope.viewer_id and envelope.candidate:
                await self.handle_ice_candidate(envelope.viewer_id, envelope.candidate)
            case ViewerDisconnected():
                await self.handle_viewer_disconnected(envelope.viewer_id)
            case ViewerCount():
                self.viewer_count = envelope.count
            case Heart():
                self.heart_count += 1
            case Chat():
                logger.debug(f"Chat on {self.stream_id} from {envelope.username}: {envelope.content}")
            case ErrorMessage():
                logger.error(f"Relay rejected stream {self.stream_id}: {envelope.code} {envelope.message}")
                if envelope.code == AppErrorCode.E_STREAM_ALREADY_LIVE.value:
                    await self.stop_stream(notify=False)
            case _:
                logger.debug(f"Broadcaster ignoring {envelope.type}")
