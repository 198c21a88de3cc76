"""
Layered environment configuration.

Later sources override earlier ones:
1) `env.example` (committed, safe placeholders)
2) `env.local` (optional, never committed)
3) Process environment (highest priority)

Blank values count as unset, so an empty `API_PORT=` in env.local falls back
to the caller's default instead of failing to parse.
"""

import os
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger

_TRUE_VALUES = {"1", "true", "yes", "on"}


class EnvironConfig:
    """Process-wide, dict-like view over the layered environment."""

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._values: dict[str, str | None] = {}
            self._load()
            EnvironConfig._initialized = True

    def _load(self):
        root = Path(__file__).resolve().parents[2]

        for name in ("env.example", "env.local"):
            path = root / name
            if path.exists():
                self._values.update(dotenv_values(path))
                logger.debug("Loaded environment from {}", path)

        self._values.update(os.environ)

    def __getitem__(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            raise KeyError(f"Configuration key '{key}' not set")
        return value

    def get(self, key: str, default: str | None = None) -> str | None:
        value = self._values.get(key)
        if value is None or not value.strip():
            return default
        return value.strip()

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        return default if value is None else value.lower() in _TRUE_VALUES

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError as e:
            raise ValueError(f"Configuration key '{key}' must be an integer, got {value!r}") from e

    def get_list(self, key: str, default: str | None = None) -> list[str]:
        """Comma-separated value as a list, blanks dropped."""
        return [x.strip() for x in (self.get(key) or default or "").split(",") if x.strip()]

    def reload(self):
        """Re-read env files and the process environment (tests use this after patching os.environ)."""
        self._values.clear()
        self._load()
        logger.info("Configuration reloaded")

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self):
        return iter(self._values)

    def items(self):
        return self._values.items()


config = EnvironConfig()
