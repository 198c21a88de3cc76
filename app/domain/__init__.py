"""
Domain layer containing core business logic and domain services.

Submodules:
- live: Live streaming (signaling relay, broadcaster/viewer peers, stream state).
- recommendation: Content recommendation scoring.
- utils: Domain-specific utilities (e.g., ID generation).
"""
