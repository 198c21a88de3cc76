"""Example: Broadcast a camera (or a media file) through the signaling relay.

Prerequisites:
    - API server running (python -m app.main)
    - A capture device or media file readable by ffmpeg/PyAV

Usage:
    # Webcam on Linux
    python examples/broadcast_example.py --stream-id st_demo --source /dev/video0 --format v4l2

    # Loop a local file instead of a camera
    python examples/broadcast_example.py --stream-id st_demo --source demo.mp4
"""

import argparse
import asyncio
import os

from dotenv import load_dotenv

from app.app_config import get_app_environ_config
from app.domain.live.peers import (
    BroadcasterController,
    SignalingClient,
    local_media_source,
    peer_link_factory,
    signaling_url,
)

# Optional local override (do not commit). This demo repo ships without dotfiles.
load_dotenv("env.local", override=False)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")


async def broadcast(stream_id: str | None, source: str, fmt: str | None):
    app_config = get_app_environ_config()
    url = signaling_url(API_BASE_URL, app_config.SIGNALING_WS_PATH)

    async with SignalingClient(url) as signaling:
        broadcaster = BroadcasterController(
            signaling,
            local_media_source(source, fmt),
            peer_link_factory(app_config.RTC_ICE_SERVERS),
            stream_id=stream_id,
        )
        await broadcaster.start_stream()
        print(f"Live on stream {broadcaster.stream_id} (Ctrl+C to stop)")

        try:
            await signaling.run(broadcaster.handle_message)
        finally:
            await broadcaster.stop_stream()
            print(f"Stream ended. Viewers at end: {broadcaster.viewer_count}, hearts: {broadcaster.heart_count}")


def main():
    app_config = get_app_environ_config()

    parser = argparse.ArgumentParser(description="Broadcast local media to viewers")
    parser.add_argument("--stream-id", help="Stream identifier (generated when omitted)")
    parser.add_argument("--source", default=app_config.BROADCAST_MEDIA_SOURCE, help="Device or file")
    parser.add_argument("--format", default=app_config.BROADCAST_MEDIA_FORMAT, help="ffmpeg input format")
    args = parser.parse_args()

    if not args.source:
        parser.error("--source is required when BROADCAST_MEDIA_SOURCE is not set")

    try:
        asyncio.run(broadcast(args.stream_id, args.source, args.format))
    except KeyboardInterrupt:
        print("Interrupted")


if __name__ == "__main__":
    main()
