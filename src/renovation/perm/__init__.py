# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Role and boot-info permission checks."""

from __future__ import annotations

from .controller import PermissionController
from .model import BasicPermissions, Permission, PermissionMatrix, PermissionType


__all__ = [
    "BasicPermissions",
    "Permission",
    "PermissionController",
    "PermissionMatrix",
    "PermissionType",
]
