"""Read-only views of the in-memory streams held by the signaling relay."""

from fastapi import APIRouter, Path

from app.api.v1.dependency import SignalingRelayDep
from app.api.v1.schemas.base import ApiOut
from app.api.v1.schemas.live import ListStreamsOut, StreamOut
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

router = APIRouter(prefix="/live", tags=["Live"])


@router.get("/streams")
async def list_streams(relay: SignalingRelayDep) -> ApiOut[ListStreamsOut]:
    """List streams that currently have a broadcaster or waiting viewers."""
    streams = [StreamOut.from_summary(s) for s in relay.snapshot()]

    return ApiOut[ListStreamsOut](
        results=ListStreamsOut(
            streams=streams,
            total_viewers=sum(s.viewer_count for s in streams),
        )
    )


@router.get("/streams/{stream_id}")
async def get_stream(
    relay: SignalingRelayDep,
    stream_id: str = Path(..., min_length=1, max_length=128, description="Stream identifier"),
) -> ApiOut[StreamOut]:
    """Get one stream's state and viewer count.

    Raises:
        404: Stream not known to the relay
    """
    summary = relay.get_stream(stream_id)
    if summary is None:
        raise AppError(
            errcode=AppErrorCode.E_STREAM_NOT_FOUND,
            errmesg=f"Stream not found: {stream_id}",
            status_code=HttpStatusCode.NOT_FOUND,
        )

    return ApiOut[StreamOut](results=StreamOut.from_summary(summary))
