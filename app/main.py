import time
import traceback
import uuid
from contextlib import asynccontextmanager
from os import environ

import logfire
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from granian import Granian
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.app_config import get_app_environ_config
from app.domain.live.relay import SignalingRelay
from app.shared.api.utils import (
    api_failure,
    app_error_handler,
    init_logger,
    load_routes,
    validation_exception_handler,
)
from app.utils.app_errors import AppError, AppErrorCode
from app.ws.signaling import router as signaling_router


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000

            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Duration: {process_time:.2f}ms"
            )

            return response

        except Exception as exc:
            process_time = (time.time() - start_time) * 1000

            logger.error(
                f"[{request_id}] Unhandled exception in {request.method} {request.url.path} - "
                f"Duration: {process_time:.2f}ms - "
                f"Error: {type(exc).__name__}: {exc}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            failure = api_failure(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(
                status_code=500,
                content=failure.model_dump(),
            )


@asynccontextmanager
async def lifespan(server: FastAPI):
    init_logger()

    logger.info("Application startup...")

    # Streams live only in this process; run a single worker per relay
    server.state.signaling_relay = SignalingRelay()

    load_routes(server, "/api/v1")

    app_config = get_app_environ_config()
    if app_config.LOGFIRE_ENABLE:
        logger.info("Logfire initializing")

        logfire.configure(
            token=app_config.LOGFIRE_TOKEN,
            service_name="smooches-live",
            service_version=environ.get("BUILD_COMMIT") or "dev",
        )

        logger.info("Logfire instrument fastapi")
        logfire.instrument_fastapi(server, capture_headers=True)

        logger.info("Logfire instrument pydantic")
        logfire.instrument_pydantic()

    yield

    logger.info(f"Application shutdown with {len(server.state.signaling_relay.registry)} open streams")


app = FastAPI(
    version="1.0",
    title="Smooches Live API",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

app.add_middleware(HTTPLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,  # type: ignore
    allow_origins=get_app_environ_config().API_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore
app.add_exception_handler(AppError, app_error_handler)  # type: ignore

app.include_router(signaling_router)


def build_granian_kwargs():
    app_config = get_app_environ_config()
    kwargs = {
        "interface": "asgi",
        "address": app_config.API_HOST,
        "port": app_config.API_PORT,
        "workers": app_config.API_WORKERS,
        "reload": app_config.DEBUG,
    }

    return kwargs


if __name__ == "__main__":
    granian_kwargs = build_granian_kwargs()
    Granian("app.main:app", **granian_kwargs).serve()
