# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Utility helpers for Renovation."""

from __future__ import annotations

from .coro import maybe_await, maybe_await_with_args
from .inflight import InFlight
from .json import deep_clone, dumps, get_json, loads
from .logger import get_logger, set_logging_enabled, setup_logger
from .observable import Subject


__all__ = [
    "InFlight",
    "Subject",
    "deep_clone",
    "dumps",
    "get_json",
    "get_logger",
    "loads",
    "maybe_await",
    "maybe_await_with_args",
    "set_logging_enabled",
    "setup_logger",
]
