from datetime import datetime, timezone
from typing import Generic, TypeVar

from app.shared.api.utils import ApiSuccess

T = TypeVar("T")


class ApiOut(ApiSuccess, Generic[T]):
    """Standard API envelope used by public routers."""

    results: T  # type: ignore[valid-type]


def serialize_utc_datetime(dt: datetime) -> str:
    """Serialize datetime as ISO 8601 string with UTC timezone.

    Naive datetimes are assumed to be UTC. Output format: 2025-12-03T10:30:00+00:00
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()
