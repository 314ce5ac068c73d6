# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Login, logout and the session state machine."""

from __future__ import annotations

from .controller import AuthController


__all__ = ["AuthController"]
