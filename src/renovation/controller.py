# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Base class for the controllers hanging off :class:`~renovation.Renovation`."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .config import RenovationConfig
from .errors import ErrorDetail, generic_error

if TYPE_CHECKING:
    from .core import Renovation


class RenovationController:
    """Gives a controller access to its sibling controllers and config.

    Subclasses override :meth:`handle_error` to map an operation's raw
    failure onto the error taxonomy, and :meth:`clear_cache` when they keep
    per-session state.
    """

    def __init__(self, core: "Renovation") -> None:
        self._core = core

    @property
    def core(self) -> "Renovation":
        return self._core

    @property
    def config(self) -> RenovationConfig:
        return self._core.config

    @property
    def logger(self) -> logging.Logger:
        return self._core.logger.getChild(type(self).__name__)

    def handle_error(self, error_id: str | None, error: ErrorDetail | None) -> ErrorDetail:
        return generic_error(error)

    def clear_cache(self) -> None:
        return None


__all__ = ["RenovationController"]
