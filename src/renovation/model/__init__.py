# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Documents, their schemas and the local document cache."""

from __future__ import annotations

from .controller import ModelController
from .doctype import TABLE_FIELD_TYPES, DocField, DocPerm, DocType
from .document import Document


__all__ = [
    "TABLE_FIELD_TYPES",
    "DocField",
    "DocPerm",
    "DocType",
    "Document",
    "ModelController",
]
