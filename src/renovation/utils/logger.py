# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Logging utilities for the Renovation client.

Everything logs through the ``renovation`` logger tree. ``setup_logger``
attaches a single :class:`RenovationHandler` to the root logger (plain,
colored or structured JSON output) and is idempotent unless ``force=True``.
JSON output is serialized with ``orjson``.

Environment overrides:

* ``RENOVATION_LOG_LEVEL``: default level (``INFO`` when unset).
* ``RENOVATION_LOG_JSON``: emit one JSON object per record.
* ``NO_COLOR``: disable ANSI colors.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
import os
from typing import Any, ClassVar, Final

import orjson as oj


RESET: Final[str] = "\033[0m"

DEBUG_COLOR: Final[str] = "\033[36m"
INFO_COLOR: Final[str] = "\033[32m"
WARNING_COLOR: Final[str] = "\033[33m"
ERROR_COLOR: Final[str] = "\033[1;31m"
CRITICAL_COLOR: Final[str] = "\033[1;35m"
LOGGER_COLOR: Final[str] = "\033[94m"
EVENT_COLOR: Final[str] = "\033[2m"

DEFAULT_LOGGER_NAME: Final[str] = "renovation"
ENV_LOG_LEVEL: Final[str] = "RENOVATION_LOG_LEVEL"
ENV_LOG_JSON: Final[str] = "RENOVATION_LOG_JSON"
ENV_NO_COLOR: Final[str] = "NO_COLOR"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

JsonSerializer = Callable[[dict[str, Any]], str]
PayloadTransformer = Callable[[dict[str, Any]], dict[str, Any]]

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "taskName"}


class ColoredFormatter(logging.Formatter):
    """Colorize the level, the logger name and a trailing ``event`` tag."""

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": DEBUG_COLOR,
        "INFO": INFO_COLOR,
        "WARNING": WARNING_COLOR,
        "ERROR": ERROR_COLOR,
        "CRITICAL": CRITICAL_COLOR,
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname, name = record.levelname, record.name
        record.levelname = f"{self.LEVEL_COLORS.get(levelname, '')}{levelname}{RESET}"
        record.name = f"{LOGGER_COLOR}{name}{RESET}"
        try:
            result = super().format(record)
        finally:
            record.levelname, record.name = levelname, name

        event = getattr(record, "event", None)
        if event:
            result = f"{result} {EVENT_COLOR}({event}){RESET}"
        return result


class RenovationHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Marker handler so repeated ``setup_logger`` calls stay idempotent."""


class StructuredJSONFormatter(logging.Formatter):
    """Serialize records, including ``extra`` fields, into one JSON line."""

    def __init__(
        self,
        serializer: JsonSerializer | None = None,
        *,
        datefmt: str | None = None,
        payload_transformer: PayloadTransformer | None = None,
    ) -> None:
        super().__init__(datefmt=datefmt)
        self._serializer = serializer or orjson_serializer
        self._transformer = payload_transformer

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        context = {key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRS}
        if context:
            payload["context"] = context

        if self._transformer is not None:
            payload = self._transformer(payload)
        return self._serializer(payload)


def orjson_serializer(payload: dict[str, Any]) -> str:
    return oj.dumps(payload, default=str).decode()


def _read_bool_env(key: str) -> bool:
    value = os.getenv(key)
    return value is not None and value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL) or logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _installed_handlers(root: logging.Logger) -> list[RenovationHandler]:
    return [handler for handler in root.handlers if isinstance(handler, RenovationHandler)]


def setup_logger(
    *,
    level: int | str | None = None,
    use_json: bool | None = None,
    use_color: bool | None = None,
    json_serializer: JsonSerializer | None = None,
    payload_transformer: PayloadTransformer | None = None,
    fmt: str | None = None,
    datefmt: str | None = DEFAULT_DATEFMT,
    force: bool = False,
) -> None:
    """Configure the root logger for Renovation output.

    Args:
        level: Log level. Falls back to ``RENOVATION_LOG_LEVEL`` then ``INFO``.
        use_json: Structured JSON output. Defaults to ``RENOVATION_LOG_JSON``.
        use_color: ANSI colors. Defaults to on unless ``NO_COLOR`` is set or
            JSON output is selected.
        json_serializer: Replaces the ``orjson`` serializer for JSON output.
        payload_transformer: Hook applied to the JSON payload before it is
            serialized.
        fmt: Format string for plain-text output.
        datefmt: Date format for both output modes.
        force: Replace a previously installed handler.
    """
    root = logging.getLogger()
    existing = _installed_handlers(root)
    if existing and not force:
        return
    for handler in existing:
        root.removeHandler(handler)
        handler.close()

    resolved_level = _resolve_level(level)
    root.setLevel(resolved_level)

    resolved_json = use_json if use_json is not None else _read_bool_env(ENV_LOG_JSON)
    if use_color is None:
        use_color = not resolved_json and not os.getenv(ENV_NO_COLOR)

    formatter: logging.Formatter
    if resolved_json:
        formatter = StructuredJSONFormatter(json_serializer, datefmt=datefmt, payload_transformer=payload_transformer)
    elif use_color:
        formatter = ColoredFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)
    else:
        formatter = logging.Formatter(fmt or DEFAULT_FORMAT, datefmt=datefmt)

    handler = RenovationHandler()
    handler.setLevel(resolved_level)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def set_logging_enabled(enabled: bool) -> None:
    """Silence or restore every logger below ``renovation``."""
    # Children left at NOTSET inherit this level.
    logging.getLogger(DEFAULT_LOGGER_NAME).setLevel(logging.NOTSET if enabled else logging.CRITICAL + 1)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger in the ``renovation`` tree, configuring output on first use."""
    if not _installed_handlers(logging.getLogger()):
        setup_logger()
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "ColoredFormatter",
    "RenovationHandler",
    "StructuredJSONFormatter",
    "get_logger",
    "orjson_serializer",
    "set_logging_enabled",
    "setup_logger",
]
