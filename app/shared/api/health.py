from fastapi import APIRouter, Request

from .utils import ApiSuccess

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=ApiSuccess)
async def health(request: Request):
    relay = getattr(request.app.state, "signaling_relay", None)
    if relay is None:
        return ApiSuccess(results="OK")

    return ApiSuccess(results={"status": "OK", "streams": len(relay.registry)})
