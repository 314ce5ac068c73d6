# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""DocType schema cache and document info."""

from __future__ import annotations

from .controller import MetaController


__all__ = ["MetaController"]
