# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Permission vocabulary and the per-doctype permission matrix."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from ..model.doctype import DocPerm


class PermissionType(str, Enum):
    CREATE = "create"
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    SUBMIT = "submit"
    CANCEL = "cancel"
    AMEND = "amend"
    REPORT = "report"
    IMPORT = "import"
    EXPORT = "export"
    PRINT = "print"
    EMAIL = "email"
    SHARE = "share"
    SET_USER_PERMISSIONS = "set_user_permissions"
    RECURSIVE_DELETE = "recursive_delete"


# Doctype lists returned by ``get_current_user_permissions``.
BASIC_PERMISSION_KEYS: Final[tuple[str, ...]] = (
    "can_create",
    "can_read",
    "can_write",
    "can_cancel",
    "can_delete",
    "can_import",
    "can_export",
    "can_print",
    "can_email",
    "can_search",
    "can_get_report",
    "can_set_user_permissions",
)


@dataclass(slots=True)
class Permission:
    """Flags granted at one permission level.

    ``if_owner`` records the subset of flags that came from owner-only rules.
    """

    perm_level: int = 0
    flags: dict[PermissionType, bool] = field(default_factory=dict)
    if_owner: dict[PermissionType, bool] = field(default_factory=dict)

    def allows(self, ptype: PermissionType | str) -> bool:
        return self.flags.get(PermissionType(ptype), False)

    def __getitem__(self, ptype: PermissionType | str) -> bool:
        return self.allows(ptype)

    def merge(self, docperm: "DocPerm") -> None:
        """OR the flags of ``docperm`` into this level."""
        for ptype in PermissionType:
            granted = self.flags.get(ptype, False) or docperm.allows(ptype)
            self.flags[ptype] = granted
            if docperm.if_owner and docperm.allows(ptype):
                self.if_owner[ptype] = True


PermissionMatrix = dict[int, Permission]


def default_matrix(*, read: bool = False) -> PermissionMatrix:
    return {0: Permission(perm_level=0, flags={PermissionType.READ: read})}


@dataclass(frozen=True, slots=True)
class BasicPermissions:
    """Doctype names per action for one user, as the desk boot info reports them."""

    user: str
    doctypes: Mapping[str, frozenset[str]]

    @classmethod
    def from_frappe(cls, message: Mapping[str, Any] | None, user: str) -> "BasicPermissions":
        message = message or {}
        doctypes: dict[str, frozenset[str]] = {}
        for key in BASIC_PERMISSION_KEYS:
            value = message.get(key)
            doctypes[key] = frozenset(value) if isinstance(value, Iterable) and not isinstance(value, str) else frozenset()
        return cls(user=user, doctypes=doctypes)

    def allows(self, key: str, doctype: str) -> bool:
        return doctype in self.doctypes.get(key, frozenset())


__all__ = [
    "BASIC_PERMISSION_KEYS",
    "BasicPermissions",
    "Permission",
    "PermissionMatrix",
    "PermissionType",
    "default_matrix",
]
