# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""JSON helpers built on orjson.

Frappe double-encodes some payloads (_server_messages is a JSON string
holding a list of JSON strings), so :func:`get_json` decodes strings
opportunistically and hands anything else back untouched.
"""

from __future__ import annotations

from collections.abc import Mapping
import copy
from typing import Any

import orjson as oj


def _default(value: Any) -> Any:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def get_json(value: Any) -> Any:
    """Decode value when it is a JSON string, otherwise return it as-is."""
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    if not isinstance(value, str):
        return value
    try:
        return oj.loads(value)
    except oj.JSONDecodeError:
        return value


def dumps(value: Any) -> str:
    return oj.dumps(value, default=_default).decode()


def loads(value: str | bytes) -> Any:
    return oj.loads(value)


def deep_clone(value: Any) -> Any:
    return copy.deepcopy(value)


__all__ = ["deep_clone", "dumps", "get_json", "loads"]
