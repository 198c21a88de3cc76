from pydantic import BaseModel

from app.shared.config import config


class AppEnvironConfig(BaseModel):
    DEBUG: bool = config.get_bool("DEBUG")

    API_HOST: str = config.get("API_HOST", "0.0.0.0")
    API_PORT: int = config.get_int("API_PORT", 8000)
    API_WORKERS: int = config.get_int("API_WORKERS", 1)
    API_CORS_ORIGINS: list[str] = config.get_list("API_CORS_ORIGINS")

    LOGFIRE_ENABLE: bool = config.get_bool("LOGFIRE_ENABLE")
    LOGFIRE_TOKEN: str | None = config.get("LOGFIRE_TOKEN")

    # Signaling relay
    SIGNALING_WS_PATH: str = config.get("SIGNALING_WS_PATH", "/ws")
    # Frames above this size are dropped before parsing
    SIGNALING_MAX_MESSAGE_BYTES: int = config.get_int("SIGNALING_MAX_MESSAGE_BYTES", 65536)

    # WebRTC peers (broadcaster/viewer controllers)
    RTC_ICE_SERVERS: list[str] = config.get_list("RTC_ICE_SERVERS", "stun:stun.l.google.com:19302")
    BROADCAST_MEDIA_SOURCE: str | None = config.get("BROADCAST_MEDIA_SOURCE")
    BROADCAST_MEDIA_FORMAT: str | None = config.get("BROADCAST_MEDIA_FORMAT")


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
