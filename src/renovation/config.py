# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Client configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from .session import SessionStore


ENV_HOST_URL: Final[str] = "RENOVATION_HOST_URL"
ENV_USE_JWT: Final[str] = "RENOVATION_USE_JWT"
ENV_CLIENT_ID: Final[str] = "RENOVATION_CLIENT_ID"
ENV_TIMEOUT: Final[str] = "RENOVATION_TIMEOUT"
ENV_SESSION_FILE: Final[str] = "RENOVATION_SESSION_FILE"


@dataclass(slots=True)
class RenovationConfig:
    """Settings shared by every controller of one :class:`~renovation.Renovation`.

    Attributes:
        host_url: Base URL of the Frappe site, e.g. ``"https://erp.example.com"``.
        use_jwt: Ask the backend for a JWT on login and send it as
            ``Authorization: JWTToken <token>``.
        client_id: Value of the ``X-Client-Site`` header for multi-tenant
            benches.
        timeout: Request timeout in seconds.
        verify: TLS certificate verification, forwarded to ``httpx``.
        headers: Extra headers sent with every request.
        storage: Where the session survives restarts. In-memory when ``None``.
        disable_log: Silence the ``renovation`` loggers.
    """

    host_url: str
    use_jwt: bool = False
    client_id: str | None = None
    timeout: float = 30.0
    verify: bool = True
    headers: dict[str, str] = field(default_factory=dict)
    storage: "SessionStore | None" = None
    disable_log: bool = False

    def __post_init__(self) -> None:
        if not self.host_url:
            raise ValueError("host_url is required")
        self.host_url = self.host_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        return self.host_url.lower().startswith("https://")

    @classmethod
    def from_env(cls, **overrides: Any) -> "RenovationConfig":
        """Build a config from ``RENOVATION_*`` variables; keyword arguments win."""
        values: dict[str, Any] = {}
        if host := os.getenv(ENV_HOST_URL):
            values["host_url"] = host
        if (use_jwt := os.getenv(ENV_USE_JWT)) is not None:
            values["use_jwt"] = use_jwt.strip().lower() in {"1", "true", "yes", "on"}
        if client_id := os.getenv(ENV_CLIENT_ID):
            values["client_id"] = client_id
        if timeout := os.getenv(ENV_TIMEOUT):
            values["timeout"] = float(timeout)
        if session_file := os.getenv(ENV_SESSION_FILE):
            from .session import FileSessionStore

            values["storage"] = FileSessionStore(session_file)
        values.update(overrides)
        if "host_url" not in values:
            raise ValueError(f"{ENV_HOST_URL} is not set")
        return cls(**values)


__all__ = ["RenovationConfig"]
