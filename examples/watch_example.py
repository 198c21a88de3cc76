"""Example: Watch a live stream and record what arrives.

Prerequisites:
    - API server running (python -m app.main)
    - A broadcaster live on the stream (see broadcast_example.py)

Usage:
    python examples/watch_example.py --stream-id st_demo

    # Save the received media
    python examples/watch_example.py --stream-id st_demo --output received.mp4

    # Send a heart and a chat message once connected
    python examples/watch_example.py --stream-id st_demo --chat "hello from python"
"""

import argparse
import asyncio
import os

from aiortc.contrib.media import MediaBlackhole, MediaRecorder
from dotenv import load_dotenv

from app.app_config import get_app_environ_config
from app.domain.live.peers import SignalingClient, ViewerController, peer_link_factory, signaling_url

load_dotenv("env.local", override=False)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")


async def watch(stream_id: str, output: str | None, chat: str | None, duration: float):
    app_config = get_app_environ_config()
    url = signaling_url(API_BASE_URL, app_config.SIGNALING_WS_PATH)
    sink = MediaRecorder(output) if output else MediaBlackhole()

    def on_track(track):
        print(f"Receiving {track.kind}")
        sink.addTrack(track)

    async with SignalingClient(url) as signaling:
        viewer = ViewerController(
            signaling,
            peer_link_factory(app_config.RTC_ICE_SERVERS),
            track_sink=on_track,
        )
        viewer_id = await viewer.join(stream_id)
        print(f"Joined {stream_id} as {viewer_id}")

        receiving = asyncio.create_task(signaling.run(viewer.handle_message))
        try:
            # Give negotiation time to deliver both tracks before recording
            await asyncio.sleep(2)
            await sink.start()

            await viewer.send_heart()
            if chat:
                await viewer.send_chat(chat, username="python-viewer")

            await asyncio.wait({receiving}, timeout=duration)
        finally:
            await sink.stop()
            await viewer.leave()
            receiving.cancel()

        print(f"State: {viewer.state}, viewers: {viewer.viewer_count}, hearts: {viewer.heart_count}")


def main():
    parser = argparse.ArgumentParser(description="Watch a live stream")
    parser.add_argument("--stream-id", required=True, help="Stream to join")
    parser.add_argument("--output", help="File to record into (discarded when omitted)")
    parser.add_argument("--chat", help="Chat message to send once joined")
    parser.add_argument("--duration", type=float, default=30.0, help="Seconds to watch")
    args = parser.parse_args()

    asyncio.run(watch(args.stream_id, args.output, args.chat, args.duration))


if __name__ == "__main__":
    main()
