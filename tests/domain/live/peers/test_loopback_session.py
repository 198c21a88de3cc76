"""End-to-end negotiation through an in-process relay.

Broadcaster and viewers talk to a real SignalingRelay over the JSON wire
format; peer connections and media are fakes.
"""

import pytest

from app.domain.live.peers import BroadcasterController, ViewerController
from app.schemas import StreamState
from tests.fixtures.live_fixtures import LoopbackSignaling, deliver_all


@pytest.fixture
def broadcaster_signaling(relay) -> LoopbackSignaling:
    return LoopbackSignaling(relay)


@pytest.fixture
def broadcaster(broadcaster_signaling, media_source, peer_factory) -> BroadcasterController:
    controller = BroadcasterController(broadcaster_signaling, media_source, peer_factory, stream_id="st_1")
    broadcaster_signaling.handler = controller.handle_message
    return controller


def make_viewer(relay, peer_factory, sink=None) -> tuple[ViewerController, LoopbackSignaling]:
    signaling = LoopbackSignaling(relay)
    viewer = ViewerController(signaling, peer_factory, track_sink=sink)
    signaling.handler = viewer.handle_message
    return viewer, signaling


class TestRoundTrip:
    async def test_viewer_receives_media(self, relay, broadcaster, broadcaster_signaling, peer_factory):
        """start -> join v1 -> viewer-connected -> offer -> answer -> ontrack."""
        rendered = []
        viewer, viewer_signaling = make_viewer(relay, peer_factory, rendered.append)

        await broadcaster.start_stream()
        await viewer.join("st_1", "v1")
        await deliver_all(broadcaster_signaling, viewer_signaling)

        assert "viewer-connected" in broadcaster_signaling.types()
        assert "offer" in viewer_signaling.types()
        assert "answer" in broadcaster_signaling.types()

        link = broadcaster.peers.get("v1")
        assert link.has_remote_description is True
        assert viewer.link.has_remote_description is True
        assert viewer.state == StreamState.LIVE
        assert [track.kind for track in rendered] == ["audio", "video"]
        assert broadcaster.viewer_count == 1
        assert viewer.viewer_count == 1

    async def test_viewer_waiting_before_broadcaster(self, relay, broadcaster, broadcaster_signaling, peer_factory):
        viewer, viewer_signaling = make_viewer(relay, peer_factory)

        await viewer.join("st_1", "v1")
        await broadcaster.start_stream()
        await deliver_all(broadcaster_signaling, viewer_signaling)

        assert viewer.state == StreamState.LIVE
        assert "v1" in broadcaster.peers

    async def test_offers_stay_with_their_viewer(self, relay, broadcaster, broadcaster_signaling, peer_factory):
        first, first_signaling = make_viewer(relay, peer_factory)
        second, second_signaling = make_viewer(relay, peer_factory)

        await broadcaster.start_stream()
        await first.join("st_1", "v1")
        await second.join("st_1", "v2")
        await deliver_all(broadcaster_signaling, first_signaling, second_signaling)

        assert [f["viewerId"] for f in first_signaling.received if f["type"] == "offer"] == ["v1"]
        assert [f["viewerId"] for f in second_signaling.received if f["type"] == "offer"] == ["v2"]
        assert broadcaster.viewer_count == 2

    async def test_stop_ends_stream_for_viewers(self, relay, broadcaster, broadcaster_signaling, peer_factory):
        viewer, viewer_signaling = make_viewer(relay, peer_factory)
        await broadcaster.start_stream()
        await viewer.join("st_1", "v1")
        await deliver_all(broadcaster_signaling, viewer_signaling)
        link = broadcaster.peers.get("v1")

        await broadcaster.stop_stream()
        await deliver_all(broadcaster_signaling, viewer_signaling)

        assert link.closed is True
        assert len(broadcaster.peers) == 0
        assert viewer.state == StreamState.ENDED
        assert viewer.link is None

    async def test_viewer_leaving_releases_broadcaster_peer(
        self, relay, broadcaster, broadcaster_signaling, peer_factory
    ):
        viewer, viewer_signaling = make_viewer(relay, peer_factory)
        await broadcaster.start_stream()
        await viewer.join("st_1", "v1")
        await deliver_all(broadcaster_signaling, viewer_signaling)

        await viewer.leave()
        await viewer_signaling.close()
        await deliver_all(broadcaster_signaling, viewer_signaling)

        assert "v1" not in broadcaster.peers
        assert broadcaster.viewer_count == 0

    async def test_hearts_reach_the_broadcaster(self, relay, broadcaster, broadcaster_signaling, peer_factory):
        viewer, viewer_signaling = make_viewer(relay, peer_factory)
        await broadcaster.start_stream()
        await viewer.join("st_1", "v1")
        await deliver_all(broadcaster_signaling, viewer_signaling)

        await viewer.send_heart()
        await viewer.send_heart()
        await deliver_all(broadcaster_signaling, viewer_signaling)

        assert broadcaster.heart_count == 2
        assert viewer.heart_count == 2
