"""Tests for BroadcasterController lifecycle and per-viewer negotiation."""

import pytest
import pytest_asyncio

from app.domain.live.peers import BroadcasterController
from app.schemas import IceCandidate, SessionDescription, StreamState, parse_envelope
from app.utils.app_errors import AppError, AppErrorCode
from tests.fixtures.live_fixtures import RecordingSignaling

HOST_CANDIDATE = "candidate:1 1 udp 2122260223 192.168.1.2 54321 typ host"


@pytest.fixture
def signaling() -> RecordingSignaling:
    return RecordingSignaling()


@pytest.fixture
def broadcaster(signaling, media_source, peer_factory) -> BroadcasterController:
    return BroadcasterController(signaling, media_source, peer_factory, stream_id="st_1")


@pytest_asyncio.fixture
async def live_broadcaster(broadcaster: BroadcasterController) -> BroadcasterController:
    await broadcaster.start_stream()
    return broadcaster


class TestStartStream:
    async def test_start_announces_ready_and_goes_live(self, broadcaster, signaling):
        await broadcaster.start_stream()

        assert broadcaster.state == StreamState.LIVE
        [ready] = signaling.sent
        assert ready.type == "broadcaster-ready"
        assert ready.stream_id == "st_1"
        assert ready.broadcaster_id == "st_1"

    async def test_generates_stream_id_when_omitted(self, signaling, media_source, peer_factory):
        controller = BroadcasterController(signaling, media_source, peer_factory)

        assert controller.stream_id.startswith("st_")

    async def test_media_denied_reports_failure_and_returns_to_idle(self, signaling, peer_factory):
        async def denied():
            raise PermissionError("camera blocked")

        controller = BroadcasterController(signaling, denied, peer_factory, stream_id="st_1")

        with pytest.raises(AppError) as exc_info:
            await controller.start_stream()

        assert exc_info.value.errcode == AppErrorCode.E_MEDIA_ACCESS_DENIED.value
        assert controller.state == StreamState.IDLE
        assert signaling.sent == []

    async def test_signaling_down_stops_media(self, media_source, local_media, peer_factory):
        controller = BroadcasterController(
            RecordingSignaling(fail=True), media_source, peer_factory, stream_id="st_1"
        )

        with pytest.raises(AppError):
            await controller.start_stream()

        assert local_media.stopped is True
        assert controller.state == StreamState.IDLE

    async def test_start_twice_is_rejected(self, live_broadcaster):
        with pytest.raises(AppError) as exc_info:
            await live_broadcaster.start_stream()

        assert exc_info.value.errcode == AppErrorCode.E_INVALID_STATE_TRANSITION.value


class TestViewerJoined:
    async def test_creates_offer_for_viewer(self, live_broadcaster, signaling, peer_factory, local_media):
        link = await live_broadcaster.handle_viewer_joined("vw_1")

        assert live_broadcaster.peers.get("vw_1") is link
        [offer] = signaling.of_type("offer")
        assert offer.viewer_id == "vw_1"
        assert offer.stream_id == "st_1"
        assert offer.offer.sdp == "m=audio\nm=video"
        assert local_media.subscriptions == 1

    async def test_each_viewer_gets_its_own_connection(self, live_broadcaster, peer_factory):
        await live_broadcaster.handle_viewer_joined("vw_1")
        await live_broadcaster.handle_viewer_joined("vw_2")

        assert len(live_broadcaster.peers) == 2
        assert live_broadcaster.peers.get("vw_1") is not live_broadcaster.peers.get("vw_2")

    async def test_rejoin_replaces_previous_connection(self, live_broadcaster):
        first = await live_broadcaster.handle_viewer_joined("vw_1")
        second = await live_broadcaster.handle_viewer_joined("vw_1")

        assert first.closed is True
        assert live_broadcaster.peers.get("vw_1") is second
        assert len(live_broadcaster.peers) == 1

    async def test_ignored_when_not_live(self, broadcaster, signaling):
        assert await broadcaster.handle_viewer_joined("vw_1") is None
        assert len(broadcaster.peers) == 0
        assert signaling.sent == []


class TestAnswerAndCandidates:
    async def test_answer_applies_to_matching_peer(self, live_broadcaster):
        link = await live_broadcaster.handle_viewer_joined("vw_1")

        applied = await live_broadcaster.handle_answer("vw_1", SessionDescription(type="answer", sdp="v=0"))

        assert applied is True
        assert link.has_remote_description is True

    async def test_answer_for_departed_viewer_is_dropped(self, live_broadcaster):
        await live_broadcaster.handle_viewer_joined("vw_1")
        await live_broadcaster.handle_viewer_disconnected("vw_1")

        assert await live_broadcaster.handle_answer("vw_1", SessionDescription(type="answer")) is False

    async def test_candidate_before_answer_is_buffered(self, live_broadcaster):
        link = await live_broadcaster.handle_viewer_joined("vw_1")

        await live_broadcaster.handle_ice_candidate("vw_1", IceCandidate(candidate=HOST_CANDIDATE))
        assert link.pending_candidates == 1

        await live_broadcaster.handle_answer("vw_1", SessionDescription(type="answer", sdp="v=0"))
        assert link.pending_candidates == 0
        assert len(link.pc.added_candidates) == 1

    async def test_candidate_for_unknown_viewer(self, live_broadcaster):
        assert await live_broadcaster.handle_ice_candidate("vw_x", IceCandidate(candidate=HOST_CANDIDATE)) is False


class TestStopStream:
    async def test_stop_closes_every_peer_and_empties_registry(self, live_broadcaster, signaling, local_media):
        links = [await live_broadcaster.handle_viewer_joined(f"vw_{i}") for i in range(3)]

        await live_broadcaster.stop_stream()

        assert all(link.closed for link in links)
        assert len(live_broadcaster.peers) == 0
        assert local_media.stopped is True
        assert live_broadcaster.state == StreamState.ENDED
        assert signaling.sent[-1].type == "broadcaster-stopped"

    async def test_stop_when_idle_is_noop(self, broadcaster, signaling):
        await broadcaster.stop_stream()

        assert broadcaster.state == StreamState.IDLE
        assert signaling.sent == []

    async def test_stop_with_signaling_down_still_tears_down(self, media_source, peer_factory):
        signaling = RecordingSignaling()
        controller = BroadcasterController(signaling, media_source, peer_factory, stream_id="st_1")
        await controller.start_stream()
        link = await controller.handle_viewer_joined("vw_1")
        signaling.fail = True

        await controller.stop_stream()

        assert link.closed is True
        assert controller.state == StreamState.ENDED

    async def test_restart_after_stop(self, live_broadcaster, local_media):
        await live_broadcaster.stop_stream()

        await live_broadcaster.start_stream()

        assert live_broadcaster.state == StreamState.LIVE


class TestHandleMessage:
    async def test_dispatches_relay_envelopes(self, live_broadcaster):
        await live_broadcaster.handle_message(parse_envelope({"type": "viewer-connected", "viewerId": "vw_1"}))
        await live_broadcaster.handle_message(parse_envelope({"type": "viewer-count", "count": 1}))
        await live_broadcaster.handle_message(parse_envelope({"type": "heart", "streamId": "st_1"}))

        assert "vw_1" in live_broadcaster.peers
        assert live_broadcaster.viewer_count == 1
        assert live_broadcaster.heart_count == 1

    async def test_viewer_disconnected_closes_peer(self, live_broadcaster):
        link = await live_broadcaster.handle_viewer_joined("vw_1")

        await live_broadcaster.handle_message(parse_envelope({"type": "viewer-disconnected", "viewerId": "vw_1"}))

        assert link.closed is True
        assert "vw_1" not in live_broadcaster.peers

    async def test_stream_already_live_error_stops_locally(self, live_broadcaster, signaling):
        await live_broadcaster.handle_message(
            parse_envelope({"type": "error", "code": "E_STREAM_ALREADY_LIVE", "message": "taken"})
        )

        assert live_broadcaster.state == StreamState.ENDED
        assert signaling.of_type("broadcaster-stopped") == []

    async def test_negotiation_failure_is_logged_not_raised(self, live_broadcaster, peer_factory):
        await live_broadcaster.handle_viewer_joined("vw_1")

        async def broken(*args):
            raise RuntimeError("negotiation failed")

        live_broadcaster.peers.get("vw_1").pc.setRemoteDescription = broken

        await live_broadcaster.handle_message(
            parse_envelope({"type": "answer", "viewerId": "vw_1", "answer": {"type": "answer", "sdp": "v=0"}})
        )

        # Failed peer stays registered until the viewer leaves or the stream stops
        assert "vw_1" in live_broadcaster.peers
