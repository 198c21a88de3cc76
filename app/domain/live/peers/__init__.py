"""Broadcaster and viewer controllers that negotiate WebRTC peers through the relay."""

from .broadcaster import BroadcasterController
from .peer_registry import PeerRegistry
from .rtc import LocalMedia, PeerLink, create_peer_link, local_media_source, peer_link_factory
from .transport import SignalingClient, signaling_url
from .viewer import ViewerController

__all__ = [
    "BroadcasterController",
    "LocalMedia",
    "PeerLink",
    "PeerRegistry",
    "SignalingClient",
    "ViewerController",
    "create_peer_link",
    "local_media_source",
    "peer_link_factory",
    "signaling_url",
]
