# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""The client object tying the controllers together.

Usage::

    from renovation import Renovation, RenovationConfig

    async with Renovation(RenovationConfig(host_url="https://erp.example.com")) as client:
        await client.auth.login("user@example.com", "secret")
        todo = await client.model.get_doc("ToDo", "TD-0001")

Each :class:`Renovation` owns its session, caches and HTTP client; several
clients for different sites can live in one process.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from .auth import AuthController
from .config import RenovationConfig
from .frappe import FrappeApps
from .meta import MetaController
from .model import ModelController
from .perm import PermissionController
from .response import RequestResponse
from .scripts import ScriptManager
from .session import MemorySessionStore, Session, SessionStatus
from .translation import TranslationController
from .transport import HttpTransport
from .utils.logger import get_logger, set_logging_enabled
from .utils.observable import Subject


class Renovation:
    """Client for one Frappe site."""

    def __init__(
        self,
        config: RenovationConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or get_logger("renovation")
        set_logging_enabled(not config.disable_log)

        self.session_status = SessionStatus()
        self.messages: Subject[Any] = Subject(name="messages")
        self.transport = HttpTransport(
            config,
            session_status=self.session_status,
            messages=self.messages,
            transport=transport,
        )

        self.scripts = ScriptManager(self)
        self.translate = TranslationController(self)
        self.frappe = FrappeApps(self)
        self.model = ModelController(self)
        self.meta = MetaController(self)
        self.perm = PermissionController(self)
        self.auth = AuthController(self, config.storage or MemorySessionStore())

        self.transport.on_invalid_request = self.auth.handle_invalid_request

    async def init(self) -> Session:
        """Load the backend app versions and restore the persisted session."""
        await self.frappe.load_app_versions()
        return await self.auth.restore_session()

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        json: Any = None,
        files: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestResponse[Any]:
        return await self.transport.request(
            endpoint, method, params=params, data=data, json=json, files=files, headers=headers
        )

    async def call(self, cmd: str, **params: Any) -> RequestResponse[Any]:
        return await self.transport.call(cmd, **params)

    def clear_cache(self) -> None:
        """Drop every per-session cache: documents, schemas, permissions and roles."""
        self.model.clear_cache()
        self.meta.clear_cache()
        self.perm.clear_cache()
        self.auth.clear_cache()

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "Renovation":
        await self.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["Renovation"]
