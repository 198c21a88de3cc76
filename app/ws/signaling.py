"""WebSocket endpoint that feeds frames into the signaling relay.

Frames that fail to parse are logged and dropped; the sender is not told.
The socket closing releases every binding the connection held.
"""

from fastapi import APIRouter, WebSocket
from loguru import logger

from app.api.v1.dependency import get_signaling_relay
from app.app_config import get_app_environ_config
from app.domain.live.relay import Participant
from app.schemas import EnvelopeError, parse_envelope

router = APIRouter()


@router.websocket(get_app_environ_config().SIGNALING_WS_PATH)
async def signaling_socket(websocket: WebSocket):
    relay = get_signaling_relay(websocket)
    max_bytes = get_app_environ_config().SIGNALING_MAX_MESSAGE_BYTES

    await websocket.accept()
    participant = Participant(websocket)
    logger.info(f"Signaling connection opened: {participant.connection_id}")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(
                    f"Signaling connection closed: {participant.label} code={message.get('code')}"
                )
                break

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if not raw:
                continue

            size = len(raw.encode()) if isinstance(raw, str) else len(raw)
            if size > max_bytes:
                logger.warning(f"Dropping {size}-byte frame from {participant.label}: over {max_bytes} bytes")
                continue

            try:
                envelope = parse_envelope(raw)
            except EnvelopeError as e:
                logger.warning(f"Dropping frame from {participant.label}: {e.errmesg}")
                continue

            await relay.handle(participant, envelope)
    finally:
        await relay.disconnect(participant)
