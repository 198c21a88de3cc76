"""Application error type raised from domain and API code."""

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class AppErrorCode(str, Enum):
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"
    E_INVALID_PARAMS = "E_INVALID_PARAMS"
    E_INVALID_REQUEST = "E_INVALID_REQUEST"

    # Streams
    E_STREAM_NOT_FOUND = "E_STREAM_NOT_FOUND"
    E_STREAM_ALREADY_LIVE = "E_STREAM_ALREADY_LIVE"
    E_INVALID_STATE_TRANSITION = "E_INVALID_STATE_TRANSITION"

    # Signaling
    E_INVALID_ENVELOPE = "E_INVALID_ENVELOPE"
    E_SIGNALING_NOT_CONNECTED = "E_SIGNALING_NOT_CONNECTED"

    # Peers
    E_MEDIA_ACCESS_DENIED = "E_MEDIA_ACCESS_DENIED"

    def __str__(self) -> str:
        return self.value


class HttpStatusCode(IntEnum):
    OK = 200
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422
    INTERNAL_SERVER_ERROR = 500


class AppError(Exception):
    """Error carrying an API error code, message and HTTP status.

    The caller location is captured at construction so handlers can log where
    the error was raised rather than where it was caught.
    """

    def __init__(
        self,
        errcode: AppErrorCode | str = AppErrorCode.E_INTERNAL_ERROR,
        errmesg: str = "We are sorry, an error occurred.",
        status_code: int = HttpStatusCode.BAD_REQUEST,
    ):
        self.errcode = errcode.value if isinstance(errcode, AppErrorCode) else str(errcode)
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.erresid = uuid4().hex[:10]

        caller_frame = inspect.stack()[1]
        module = inspect.getmodule(caller_frame.frame)
        module_name = (
            module.__name__ if module and getattr(module, "__name__", None) else caller_frame.filename
        )
        self.caller_info = f"{module_name}:{caller_frame.function}:{caller_frame.lineno}"

        super().__init__(f"{self.errcode}: {self.errmesg}")
