"""
Live streaming domain logic.

Includes:
- relay: Server-side signaling relay keyed by stream id.
- peers: Broadcaster and viewer controllers that negotiate WebRTC peers.
- stream_state_machine: Valid StreamState transitions.
"""
