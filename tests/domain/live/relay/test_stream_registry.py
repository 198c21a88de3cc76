"""Tests for StreamRegistry and ReactionRegistry bookkeeping."""

from app.domain.live.relay import Participant, ParticipantRole, ReactionRegistry, StreamRegistry
from app.schemas import StreamState
from tests.fixtures.live_fixtures import FakeSocket


def make_participant() -> Participant:
    return Participant(FakeSocket())


class TestStreamRegistry:
    def test_get_or_create_reuses_room(self):
        registry = StreamRegistry()

        room = registry.get_or_create("st_1")

        assert registry.get_or_create("st_1") is room
        assert "st_1" in registry
        assert len(registry) == 1

    def test_get_with_empty_id_returns_none(self):
        assert StreamRegistry().get(None) is None

    def test_bind_broadcaster_sets_role_and_state(self):
        registry = StreamRegistry()
        broadcaster = make_participant()

        room = registry.bind_broadcaster("st_1", broadcaster, "user_1")

        assert room.broadcaster is broadcaster
        assert room.state == StreamState.LIVE
        assert broadcaster.role == ParticipantRole.BROADCASTER
        assert room.summary().broadcaster_id == "user_1"

    def test_viewers_without_broadcaster_are_connecting(self):
        registry = StreamRegistry()

        room, replaced = registry.bind_viewer("st_1", "vw_1", make_participant())

        assert replaced is None
        assert room.state == StreamState.CONNECTING
        assert room.viewer_count == 1

    def test_rebinding_viewer_id_replaces_previous_connection(self):
        """One viewer id maps to exactly one connection per stream."""
        registry = StreamRegistry()
        first, second = make_participant(), make_participant()
        registry.bind_viewer("st_1", "vw_1", first)

        room, replaced = registry.bind_viewer("st_1", "vw_1", second)

        assert replaced is first
        assert first.role == ParticipantRole.UNBOUND
        assert room.viewers == {"vw_1": second}

    def test_unbind_replaced_viewer_is_noop(self):
        registry = StreamRegistry()
        first, second = make_participant(), make_participant()
        registry.bind_viewer("st_1", "vw_1", first)
        registry.bind_viewer("st_1", "vw_1", second)

        assert registry.unbind_viewer(first) is None
        assert registry.get("st_1").viewer_count == 1

    def test_discard_if_empty_drops_room(self):
        registry = StreamRegistry()
        viewer = make_participant()
        room, _ = registry.bind_viewer("st_1", "vw_1", viewer)

        registry.discard_if_empty(room)
        assert "st_1" in registry

        registry.unbind_viewer(viewer)
        registry.discard_if_empty(room)
        assert "st_1" not in registry

    def test_participants_lists_broadcaster_first(self):
        registry = StreamRegistry()
        broadcaster, viewer = make_participant(), make_participant()
        registry.bind_viewer("st_1", "vw_1", viewer)
        room = registry.bind_broadcaster("st_1", broadcaster, None)

        assert room.participants() == [broadcaster, viewer]

    def test_unbind_broadcaster_of_other_room_returns_none(self):
        registry = StreamRegistry()
        participant = make_participant()
        participant.bind_broadcaster("st_missing", None)

        assert registry.unbind_broadcaster(participant) is None
        assert participant.role == ParticipantRole.UNBOUND


class TestReactionRegistry:
    def test_subscribe_and_unsubscribe_all(self):
        reactions = ReactionRegistry()
        participant = make_participant()

        reactions.subscribe("video_1", participant)
        reactions.subscribe("radio_2", participant)

        assert reactions.subscribers("video_1") == [participant]
        assert len(reactions) == 2

        reactions.unsubscribe_all(participant)

        assert reactions.subscribers("video_1") == []
        assert len(reactions) == 0
        assert participant.reaction_targets == set()
