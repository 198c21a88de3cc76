from ulid import ULID


def new_ulid(prefix: str | None = None) -> str:
    value = str(ULID()).lower()
    return f"{prefix}{value}" if prefix else value


def new_stream_id() -> str:
    return new_ulid("st_")


def new_viewer_id() -> str:
    return new_ulid("vw_")


def new_connection_id() -> str:
    return new_ulid("cn_")
