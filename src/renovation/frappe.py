# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Backend app discovery.

Several endpoints only exist when the ``renovation_core`` Frappe app is
installed on the site. :class:`FrappeApps` loads the installed app versions
once and answers feature checks against them.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any, Final, Mapping

from .controller import RenovationController
from .errors import AppNotInstalledError
from .response import RequestResponse
from .utils.inflight import InFlight


RENOVATION_CORE: Final[str] = "renovation_core"
_VERSION_PATTERN: Final[re.Pattern[str]] = re.compile(r"\d+(\.\d+){2,}")


@dataclass(frozen=True, slots=True)
class AppVersion:
    version: str
    major: int
    minor: int
    patch: int
    branch: str | None = None

    @classmethod
    def parse(cls, raw: Mapping[str, Any]) -> "AppVersion":
        """Parse ``{"version": "v12.3.1-beta", "branch": ...}``.

        Raises:
            ValueError: the version string has no ``major.minor.patch`` part.
        """
        if not isinstance(raw, Mapping):
            raise ValueError("Version empty or not in proper format")
        version = str(raw.get("version") or "")
        match = _VERSION_PATTERN.search(version)
        if match is None:
            raise ValueError("Version empty or not in proper format")
        segments = match.group(0).split(".")
        if len(segments) != 3:
            raise ValueError("Version empty or not in proper format")
        major, minor, patch = (int(segment) for segment in segments)
        return cls(version=version, major=major, minor=minor, patch=patch, branch=raw.get("branch"))


class FrappeApps(RenovationController):
    def __init__(self, core) -> None:
        super().__init__(core)
        self._versions: dict[str, AppVersion] = {}
        self._loaded = False
        self._inflight: InFlight[RequestResponse[bool]] = InFlight()

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load_app_versions(self) -> RequestResponse[bool]:
        return await self._inflight.run("versions", self._fetch_versions)

    def get_app_version(self, app: str) -> AppVersion | None:
        return self._versions.get(app)

    async def check_app_installed(
        self,
        features: list[str] | None = None,
        *,
        raise_error: bool = True,
        app: str = RENOVATION_CORE,
    ) -> bool:
        """Whether ``app`` is installed, loading versions on first use.

        Raises:
            AppNotInstalledError: ``app`` is missing and ``raise_error`` is set.
        """
        if not self._loaded:
            await self.load_app_versions()
        installed = app in self._versions
        if not installed and raise_error:
            raise AppNotInstalledError(app, features)
        return installed

    async def _fetch_versions(self) -> RequestResponse[bool]:
        response = await self.core.call("renovation_core.utils.site.get_versions")
        self._loaded = True
        if not response.success:
            self.logger.info(
                "app versions unavailable, assuming plain Frappe",
                extra={"event": "apps.versions.unavailable", "status": response.http_code},
            )
            return RequestResponse.fail(self.handle_error("app_versions", response.error))

        body = response.data if isinstance(response.data, dict) else {}
        versions = body.get("message")
        if not isinstance(versions, dict):
            self.logger.warning(
                "malformed app versions response", extra={"event": "apps.versions.invalid", "body": str(response.data)[:200]}
            )
            versions = {}
        for app, raw in versions.items():
            try:
                self._versions[app] = AppVersion.parse(raw)
            except ValueError:
                self.logger.warning(
                    "unparseable app version", extra={"event": "apps.versions.invalid", "app": app, "raw": raw}
                )
        return RequestResponse.ok(True, raw=response.raw)


__all__ = ["RENOVATION_CORE", "AppVersion", "FrappeApps"]
