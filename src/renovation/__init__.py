# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Async client for Frappe backends."""

from __future__ import annotations

from .config import RenovationConfig
from .core import Renovation
from .errors import (
    AppNotInstalledError,
    DocumentNotCachedError,
    ErrorDetail,
    ErrorInfo,
    ErrorType,
    InvalidDocumentError,
    NotLoggedInError,
    RenovationException,
)
from .model import DocField, DocPerm, DocType, Document
from .perm import Permission, PermissionType
from .response import RequestResponse
from .session import FileSessionStore, MemorySessionStore, Session, SessionStore


__all__ = [
    "Renovation",
    "RenovationConfig",
    "RequestResponse",
    "Session",
    "SessionStore",
    "MemorySessionStore",
    "FileSessionStore",
    "Document",
    "DocType",
    "DocField",
    "DocPerm",
    "Permission",
    "PermissionType",
    "ErrorDetail",
    "ErrorInfo",
    "ErrorType",
    "RenovationException",
    "InvalidDocumentError",
    "DocumentNotCachedError",
    "NotLoggedInError",
    "AppNotInstalledError",
]
