from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from app.domain.live.relay import SignalingRelay
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


def get_signaling_relay(connection: HTTPConnection) -> SignalingRelay:
    """Relay created in the application lifespan; shared by HTTP and WebSocket routes."""
    relay = getattr(connection.app.state, "signaling_relay", None)
    if relay is None:
        raise AppError(
            errcode=AppErrorCode.E_INTERNAL_ERROR,
            errmesg="Signaling relay is not initialized",
            status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
        )
    return relay


SignalingRelayDep = Annotated[SignalingRelay, Depends(get_signaling_relay)]
