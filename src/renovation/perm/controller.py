# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Permission resolution.

Two sources answer permission questions:

* The role matrix of a doctype, built from its schema's ``DocPerm`` rows and
  the roles of the current user. Missing schema or roles resolve to the
  default matrix, where only Administrator may read.
* The basic permissions of the desk boot info, lists of doctypes per action,
  bound to the user that was current when they were requested.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Mapping

import anyio

from ..controller import RenovationController
from ..response import RequestResponse
from ..utils.inflight import InFlight
from .model import BasicPermissions, Permission, PermissionMatrix, PermissionType, default_matrix

if TYPE_CHECKING:
    from ..model.doctype import DocType


ADMINISTRATOR = "Administrator"
GUEST = "Guest"


class PermissionController(RenovationController):
    def __init__(self, core) -> None:
        super().__init__(core)
        self._doctype_perms: dict[str, PermissionMatrix] = {}
        self._basic: BasicPermissions | None = None
        self._inflight: InFlight[RequestResponse[BasicPermissions]] = InFlight()

    @property
    def doctype_perms(self) -> Mapping[str, PermissionMatrix]:
        return self._doctype_perms

    @property
    def basic_perms(self) -> BasicPermissions | None:
        return self._basic

    def clear_cache(self) -> None:
        self._basic = None
        self._doctype_perms.clear()
        self._inflight.forget()

    # ---------------------------------------------------------------------
    # Role matrix
    # ---------------------------------------------------------------------

    async def get_perm(self, doctype: str) -> RequestResponse[PermissionMatrix]:
        """Permission levels the current user holds on ``doctype``.

        Always succeeds: when the schema or the roles cannot be loaded the
        default matrix is returned.
        """
        matrix = default_matrix(read=self.core.auth.get_current_user() == ADMINISTRATOR)
        results: dict[str, RequestResponse[Any]] = {}

        async def fetch(key: str, loader) -> None:
            results[key] = await loader()

        async with anyio.create_task_group() as tg:
            tg.start_soon(fetch, "meta", lambda: self.core.meta.get_doc_meta(doctype))
            tg.start_soon(fetch, "roles", self.core.auth.get_current_user_roles)

        meta, roles = results["meta"], results["roles"]
        if not meta.success or not roles.success:
            self.logger.debug(
                "falling back to default permissions",
                extra={"event": "perm.default", "doctype": doctype, "meta": meta.success, "roles": roles.success},
            )
            return RequestResponse.ok(matrix)

        _merge_docperms(matrix, meta.data, roles.data or [])
        return RequestResponse.ok(matrix)

    async def has_perm(
        self,
        doctype: str,
        ptype: PermissionType | str,
        perm_level: int = 0,
        docname: str | None = None,
    ) -> bool:
        ptype = PermissionType(ptype)
        if doctype not in self._doctype_perms:
            response = await self.get_perm(doctype)
            if response.success and response.data is not None:
                self._doctype_perms[doctype] = response.data

        level = self._doctype_perms.get(doctype, {}).get(perm_level)
        if level is None:
            return False

        allowed = level.allows(ptype)
        if perm_level == 0 and docname:
            docinfo = await self.core.meta.get_doc_info(doctype, docname)
            permissions = docinfo.data.get("permissions") if docinfo.success and docinfo.data else None
            if isinstance(permissions, Mapping) and not permissions.get(ptype.value):
                allowed = False
        return allowed

    async def has_perms(
        self, doctype: str, ptypes: Iterable[PermissionType | str], docname: str | None = None
    ) -> bool:
        for ptype in ptypes:
            if not await self.has_perm(doctype, ptype, 0, docname):
                return False
        return True

    async def can_submit(self, doctype: str) -> bool:
        return self._cached_level_zero(doctype, PermissionType.SUBMIT)

    async def can_amend(self, doctype: str) -> bool:
        return self._cached_level_zero(doctype, PermissionType.AMEND)

    async def can_recursive_delete(self, doctype: str) -> bool:
        return self._cached_level_zero(doctype, PermissionType.RECURSIVE_DELETE)

    # ---------------------------------------------------------------------
    # Basic permissions
    # ---------------------------------------------------------------------

    async def load_basic_perms(self) -> RequestResponse[BasicPermissions]:
        return await self._inflight.run("basic", self._fetch_basic_perms)

    async def can_create(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_create", doctype)

    async def can_read(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_read", doctype)

    async def can_write(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_write", doctype)

    async def can_cancel(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_cancel", doctype)

    async def can_delete(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_delete", doctype)

    async def can_import(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_import", doctype)

    async def can_export(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_export", doctype)

    async def can_print(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_print", doctype)

    async def can_email(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_email", doctype)

    async def can_search(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_search", doctype)

    async def can_get_report(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_get_report", doctype)

    async def can_set_user_permissions(self, doctype: str) -> bool:
        return await self._in_basic_perms("can_set_user_permissions", doctype)

    # ---------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------

    def _current_user(self) -> str:
        return self.core.auth.get_current_user() or GUEST

    async def _fetch_basic_perms(self) -> RequestResponse[BasicPermissions]:
        # Bound to the user at request time so a login during the request is detected.
        user = self._current_user()
        response = await self.core.request(
            "/api/method/renovation_core.utils.client.get_current_user_permissions", "POST"
        )
        if not response.success:
            return RequestResponse.fail(self.handle_error("load_basic_perms", response.error))
        message = response.data.get("message") if isinstance(response.data, dict) else None
        self._basic = BasicPermissions.from_frappe(message, user)
        return RequestResponse.ok(self._basic, response.http_code or 200, raw=response.raw)

    async def _in_basic_perms(self, key: str, doctype: str) -> bool:
        if self._basic is None or self._basic.user != self._current_user():
            self._basic = None
            await self.load_basic_perms()
        return self._basic is not None and self._basic.allows(key, doctype)

    def _cached_level_zero(self, doctype: str, ptype: PermissionType) -> bool:
        matrix = self._doctype_perms.get(doctype)
        if matrix is None or 0 not in matrix:
            self.logger.warning(
                "permission cache not loaded",
                extra={"event": "perm.not_loaded", "doctype": doctype, "ptype": ptype.value},
            )
            return False
        return matrix[0].allows(ptype)


def _merge_docperms(matrix: PermissionMatrix, meta: "DocType", roles: Iterable[str]) -> None:
    held = set(roles)
    for docperm in meta.permissions:
        if docperm.role not in held:
            continue
        level = matrix.setdefault(docperm.perm_level, Permission(perm_level=docperm.perm_level))
        level.merge(docperm)


__all__ = ["ADMINISTRATOR", "GUEST", "PermissionController"]
