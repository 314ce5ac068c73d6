# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Result envelope returned by every network-facing operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .errors import ErrorDetail


T = TypeVar("T")


@dataclass(slots=True)
class RequestResponse(Generic[T]):
    success: bool
    data: T | None = None
    http_code: int | None = None
    error: ErrorDetail | None = None
    raw: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def ok(cls, data: T, http_code: int = 200, *, raw: Any = None) -> "RequestResponse[T]":
        return cls(success=True, data=data, http_code=http_code, raw=raw)

    @classmethod
    def fail(cls, error: ErrorDetail, *, raw: Any = None) -> "RequestResponse[Any]":
        """Failed envelope; status code and body are taken from ``error.info``."""
        return cls(success=False, data=error.info.data, http_code=error.info.http_code, error=error, raw=raw)


__all__ = ["RequestResponse"]
