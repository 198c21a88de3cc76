import asyncio
import sys
from functools import lru_cache
from importlib import import_module
from os import environ
from pathlib import Path
from typing import Any, Literal
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from app.utils.app_errors import AppError, AppErrorCode

E_INTERNAL = AppErrorCode.E_INTERNAL_ERROR.value
E_INVALID_PARAMS = AppErrorCode.E_INVALID_PARAMS.value


def format_error(ex: BaseException) -> str:
    from traceback import TracebackException

    return "".join(TracebackException.from_exception(ex).format())


class ApiResponse(BaseModel):
    version: str | None = Field(default_factory=lambda: environ.get("BUILD_COMMIT", "dev"))


class ApiSuccess(ApiResponse):
    success: Literal[True] = True
    results: Any = "OK"


class ApiFailure(ApiResponse):
    success: Literal[False] = False
    errcode: str = E_INTERNAL
    erresid: str = Field(default_factory=lambda: uuid4().hex[:10])
    errmesg: str = "We are sorry, an error occurred."


def api_failure(errcode: str | None = None, errmesg: Exception | str | None = None, *, trace: Any = None):
    import inspect

    if not errcode:
        errcode = ApiFailure.model_fields["errcode"].default

    if isinstance(errmesg, Exception):
        errmesg = format_error(errmesg)

    if not errmesg:
        errmesg = ApiFailure.model_fields["errmesg"].default

    failure = ApiFailure(errcode=errcode, errmesg=errmesg)

    caller_frame = inspect.stack()[1]
    module = inspect.getmodule(caller_frame.frame)
    module_name = module.__name__ if module and getattr(module, "__name__", None) else caller_frame.filename
    caller_info = f"{module_name}:{caller_frame.function}:{caller_frame.lineno}"

    logger.warning(
        f"{failure.errcode} {failure.erresid}\n{failure.errmesg} caller={caller_info} trace={trace}"
    )

    return failure


def check_error(results: ApiFailure | dict) -> tuple[bool, bool]:
    if isinstance(results, ApiFailure):
        return True, results.errcode == E_INTERNAL

    if isinstance(results, dict) and "errcode" in results:
        return True, results["errcode"] == E_INTERNAL

    return False, False


def make_response(results, *, status_code: int | None = None):
    if isinstance(results, Exception):
        response = api_failure(errmesg=format_error(results))
        if status_code is None:
            status_code = 500
    else:
        response = results
        is_error, is_internal = check_error(results)
        if status_code is None:
            if is_error:
                status_code = 500 if is_internal else 400
            else:
                status_code = 200

    return ORJSONResponse(
        status_code=status_code,
        content=response.model_dump() if hasattr(response, "model_dump") else response,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()

    logger.warning(
        "Validation error: path={} method={} errors={}", request.url.path, request.method, errors
    )

    failure = api_failure(E_INVALID_PARAMS, errmesg=str(errors))

    return ORJSONResponse(status_code=422, content=failure.model_dump())


async def app_error_handler(request: Request, exc: AppError):
    """
    Exception handler for AppError.
    Converts AppError to ApiFailure and returns via make_response.
    """
    log_msg = f"{exc.errcode} {exc.erresid} msg={exc.errmesg} caller={exc.caller_info}"
    if exc.errcode == E_INTERNAL:
        logger.error(log_msg)
    else:
        logger.warning(log_msg)

    failure = ApiFailure(errcode=exc.errcode, errmesg=exc.errmesg, erresid=exc.erresid)
    return make_response(failure, status_code=exc.status_code)


def load_routes(app: FastAPI, prefix: str):
    app_root = Path(__file__).resolve().parents[2]
    for folder in (app_root / "shared" / "api", app_root / "api"):
        load_routes_in_folder(app, prefix, folder, app_root)

    for route_info in get_all_routes_info(app):
        methods = ",".join(sorted(route_info["methods"]))
        logger.info("Loaded route: {:<12} {:<60} {}", methods, route_info["path"], route_info["endpoint"])


def load_routes_in_folder(app: FastAPI, prefix: str, folder: Path, app_root: Path):
    from app.shared.config import config

    disabled_routes = config.get_list("API_DISABLED")
    logger.debug("disabled routes: {}", disabled_routes)

    for x in sorted(folder.rglob("*.py")):
        if x.name == "__init__.py":
            continue

        relative_path = x.relative_to(app_root).with_suffix("")
        name = ".".join((app_root.name, *relative_path.parts))

        disabled = False
        for disabled_route in disabled_routes:
            if f".{disabled_route}" in name:
                logger.warning("disabled route {} in {}", disabled_route, name)
                disabled = True
                break
        if disabled:
            continue

        try:
            module = import_module(name)
        except ImportError as e:
            logger.warning("Failed to import {}: {}", name, e)
            continue

        if hasattr(module, "router"):
            app.include_router(module.router, prefix=prefix)
            logger.info("Added routes in {}", name)


def get_all_routes_info(app: FastAPI):
    routes_info = []

    for route in app.routes:
        if hasattr(route, "methods"):
            endpoint_name = route.endpoint.__name__ if hasattr(route.endpoint, "__name__") else str(route.endpoint)
            routes_info.append(
                {
                    "methods": sorted(route.methods),
                    "path": route.path,
                    "name": route.name,
                    "endpoint": endpoint_name,
                }
            )

    return routes_info


@lru_cache
def get_worker_info():
    project_root = Path(__file__).parent.parent.parent.parent
    worker_name = environ.get("WORKER_NAME", project_root.name)

    parts = environ.get("BUILD_COMMIT", "").split("-")
    commit_id = parts[1] if len(parts) > 1 else "dev"

    return worker_name, commit_id, uuid4().hex[:8]


def init_logger():
    from app.app_config import get_app_environ_config

    logger.remove()

    worker_name, commit_id, _ = get_worker_info()

    if get_app_environ_config().DEBUG:
        logger_level = "DEBUG"
        logger_format = (
            f"<yellow>{worker_name}:{commit_id}</yellow> | "
            "<green>{time:MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )
    else:
        logger_level = "INFO"
        logger_format = (
            f"{worker_name}:{commit_id} | "
            "{time:MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{name}:{function}:{line} | "
            "{message}"
        )
    logger.add(sys.stderr, level=logger_level, format=logger_format)


def ensure_coro(awaitable):
    """Ensure the passed awaitable is a coroutine object suitable for create_task."""
    if asyncio.iscoroutine(awaitable):
        return awaitable

    async def _wrap():
        return await awaitable

    return _wrap()


async def run_taskgroup(*funcs):
    """Run multiple awaitables concurrently, failing if any of them fails."""
    try:
        async with asyncio.TaskGroup() as tg:
            for func in funcs:
                tg.create_task(ensure_coro(func))
    except Exception as tg_err:
        logger.error("Error running taskgroup: {}", tg_err)
        raise
