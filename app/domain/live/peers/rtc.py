"""aiortc peer connections and local media.

aiortc gathers local ICE candidates before ``setLocalDescription`` returns
and embeds them in the SDP, so Python peers never trickle their own
candidates. They do accept trickled candidates from browser peers.
"""

from collections.abc import Awaitable, Callable

from aiortc import (
    MediaStreamTrack,
    RTCConfiguration,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.contrib.media import MediaPlayer, MediaRelay
from aiortc.sdp import candidate_from_sdp
from loguru import logger

from app.schemas import IceCandidate, SessionDescription

MediaSource = Callable[[], Awaitable["LocalMedia"]]
TrackSink = Callable[[MediaStreamTrack], Awaitable[None] | None]
PeerLinkFactory = Callable[[], "PeerLink"]


def _to_rtc_description(description: SessionDescription) -> RTCSessionDescription:
    return RTCSessionDescription(sdp=description.sdp, type=description.type)


def _from_rtc_description(description: RTCSessionDescription) -> SessionDescription:
    return SessionDescription(type=description.type, sdp=description.sdp)


class PeerLink:
    """One RTCPeerConnection plus the remote candidates waiting for it.

    Candidates that arrive before the remote description is applied are
    buffered and flushed right after it is set. An empty candidate string
    marks end-of-candidates and is ignored.
    """

    def __init__(self, pc: RTCPeerConnection):
        self.pc = pc
        self._pending_candidates: list[IceCandidate] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_remote_description(self) -> bool:
        return self.pc.remoteDescription is not None

    @property
    def pending_candidates(self) -> int:
        return len(self._pending_candidates)

    @property
    def connection_state(self) -> str:
        return getattr(self.pc, "connectionState", "new")

    def add_tracks(self, tracks: list[MediaStreamTrack]) -> None:
        for track in tracks:
            self.pc.addTrack(track)

    def on_track(self, callback: Callable[[MediaStreamTrack], object]) -> None:
        self.pc.on("track", callback)

    async def create_offer(self) -> SessionDescription:
        offer = await self.pc.createOffer()
        await self.pc.setLocalDescription(offer)
        return _from_rtc_description(self.pc.localDescription)

    async def accept_offer(self, offer: SessionDescription) -> SessionDescription:
        """Apply a remote offer and return the local answer."""
        await self.pc.setRemoteDescription(_to_rtc_description(offer))
        await self._flush_candidates()

        answer = await self.pc.createAnswer()
        await self.pc.setLocalDescription(answer)
        return _from_rtc_description(self.pc.localDescription)

    async def apply_answer(self, answer: SessionDescription) -> None:
        await self.pc.setRemoteDescription(_to_rtc_description(answer))
        await self._flush_candidates()

    async def add_ice_candidate(self, candidate: IceCandidate) -> bool:
        """Apply a remote candidate, or buffer it until the remote description is set.

        Returns:
            True if the candidate was handed to the connection now
        """
        if self._closed or not candidate.candidate:
            return False

        if not self.has_remote_description:
            self._pending_candidates.append(candidate)
            return False

        await self._apply_candidate(candidate)
        return True

    async def _flush_candidates(self) -> None:
        pending, self._pending_candidates = self._pending_candidates, []
        for candidate in pending:
            await self._apply_candidate(candidate)

    async def _apply_candidate(self, candidate: IceCandidate) -> None:
        sdp = candidate.candidate.removeprefix("candidate:")
        try:
            rtc_candidate = candidate_from_sdp(sdp)
        except (AssertionError, ValueError, IndexError) as e:
            logger.warning(f"Ignoring malformed ICE candidate {candidate.candidate!r}: {e}")
            return

        rtc_candidate.sdpMid = candidate.sdp_mid
        rtc_candidate.sdpMLineIndex = candidate.sdp_m_line_index
        await self.pc.addIceCandidate(rtc_candidate)

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return

        self._closed = True
        self._pending_candidates.clear()
        await self.pc.close()


def create_peer_link(ice_servers: list[str]) -> PeerLink:
    configuration = RTCConfiguration(iceServers=[RTCIceServer(urls=url) for url in ice_servers])
    return PeerLink(RTCPeerConnection(configuration=configuration))


def peer_link_factory(ice_servers: list[str]) -> PeerLinkFactory:
    def factory() -> PeerLink:
        return create_peer_link(ice_servers)

    return factory


class LocalMedia:
    """Captured camera/microphone tracks shared by every viewer's peer connection.

    Each peer gets its own relay subscription; a single aiortc track cannot
    feed several connections directly.
    """

    def __init__(self, tracks: list[MediaStreamTrack]):
        self.tracks = tracks
        self._relay = MediaRelay()

    def subscribe(self) -> list[MediaStreamTrack]:
        return [self._relay.subscribe(track) for track in self.tracks]

    def stop(self) -> None:
        for track in self.tracks:
            track.stop()


async def open_local_media(source: str, fmt: str | None = None) -> LocalMedia:
    """Open a camera/microphone device (or a media file) for broadcasting.

    Raises whatever the underlying player raises when the device cannot be opened.
    """
    player = MediaPlayer(source, format=fmt)
    tracks = [track for track in (player.audio, player.video) if track is not None]
    if not tracks:
        raise OSError(f"No audio or video tracks available from {source}")
    return LocalMedia(tracks)


def local_media_source(source: str, fmt: str | None = None) -> MediaSource:
    async def open_media() -> LocalMedia:
        return await open_local_media(source, fmt)

    return open_media
