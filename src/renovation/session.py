# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Session value, its observable holder and persistence backends.

The update state machine lives in :class:`renovation.auth.AuthController`;
this module only defines the data and where it is stored.
"""

from __future__ import annotations

from pathlib import Path
import time
from typing import Any, Final, Mapping, Protocol

import orjson as oj
from pydantic import BaseModel, ConfigDict, Field

from .utils.logger import get_logger
from .utils.observable import Subject


SESSION_KEY: Final[str] = "renovation_core_session_info"
VOLATILE_FIELDS: Final[tuple[str, ...]] = ("timestamp", "home_page", "message")

_logger = get_logger("renovation.session")


class Session(BaseModel):
    """Client view of the backend login state.

    Anything else the backend returns on login (``user``, ``full_name``,
    ``home_page``...) is kept as extra fields and persisted with the rest.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    logged_in: bool = Field(default=False, alias="loggedIn")
    timestamp: float = 0
    current_user: str | None = Field(default=None, alias="currentUser")
    token: str | None = None
    lang: str | None = None
    session_expired: bool | None = None

    @classmethod
    def logged_out(cls, **extra: Any) -> "Session":
        return cls.model_validate({"loggedIn": False, "timestamp": time.time(), **extra})

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def fingerprint(self) -> dict[str, Any]:
        """Content used to decide whether two sessions differ."""
        data = self.as_dict()
        for key in VOLATILE_FIELDS:
            data.pop(key, None)
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self.as_dict().get(key, default)


class SessionStatus(Subject[Session]):
    """Process-wide observable session, starting logged out."""

    def __init__(self) -> None:
        super().__init__(Session.logged_out(), name="session")

    @property
    def value(self) -> Session:
        return self._value  # type: ignore[return-value]


class SessionStore(Protocol):
    """Key-value persistence for the session blob."""

    def load(self, key: str) -> Mapping[str, Any] | None: ...

    def save(self, key: str, value: Mapping[str, Any]) -> None: ...

    def remove(self, key: str) -> None: ...


class MemorySessionStore:
    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    def load(self, key: str) -> Mapping[str, Any] | None:
        value = self._data.get(key)
        return dict(value) if value is not None else None

    def save(self, key: str, value: Mapping[str, Any]) -> None:
        self._data[key] = dict(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileSessionStore:
    """JSON file holding one object per key.

    Read and write problems are logged and otherwise ignored: a client that
    cannot persist its session still works, it just forgets on restart.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self, key: str) -> Mapping[str, Any] | None:
        value = self._read().get(key)
        return value if isinstance(value, dict) else None

    def save(self, key: str, value: Mapping[str, Any]) -> None:
        data = self._read()
        data[key] = dict(value)
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def _read(self) -> dict[str, Any]:
        try:
            data = oj.loads(self._path.read_bytes())
        except FileNotFoundError:
            return {}
        except (OSError, oj.JSONDecodeError) as exc:
            _logger.debug(
                "session file unreadable", extra={"event": "session.store.read_failed", "reason": str(exc)}
            )
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Mapping[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_bytes(oj.dumps(data, option=oj.OPT_INDENT_2))
        except OSError as exc:
            _logger.debug(
                "session file not writable", extra={"event": "session.store.write_failed", "reason": str(exc)}
            )


__all__ = [
    "SESSION_KEY",
    "FileSessionStore",
    "MemorySessionStore",
    "Session",
    "SessionStatus",
    "SessionStore",
]
