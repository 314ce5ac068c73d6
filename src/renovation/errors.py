# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Error taxonomy and classification helpers.

Failures reported by the backend travel as data: every public coroutine
returns a :class:`~renovation.response.RequestResponse` whose ``error`` is an
:class:`ErrorDetail`. Each controller maps raw signals (HTTP status codes and
Frappe exception names) onto one :class:`ErrorType` plus a human readable
title, cause and suggestion. Anything unrecognized ends up as
:data:`ErrorType.GENERIC_ERROR` with HTTP 400 via :func:`generic_error`.

Exceptions are reserved for programmer errors, all deriving from
:class:`RenovationException`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Final, Mapping


GENERIC_ERROR_TITLE: Final[str] = "Generic Error"
DOCTYPE_NOT_EXIST_TITLE: Final[str] = "DocType doesn't exist"
DOCNAME_NOT_EXIST_TITLE: Final[str] = "Docname doesn't exist"


class ErrorType(str, Enum):
    AUTHENTICATION_ERROR = "AuthenticationError"
    PERMISSION_ERROR = "PermissionError"
    NOT_FOUND_ERROR = "NotFoundError"
    NETWORK_ERROR = "NetworkError"
    GENERIC_ERROR = "GenericError"
    DATA_FORMAT_ERROR = "DataFormatError"
    DUPLICATE_ENTRY_ERROR = "DuplicateEntryError"


@dataclass(slots=True)
class ErrorInfo:
    http_code: int | None = None
    cause: str | None = None
    suggestion: str | None = None
    data: Any = None
    server_messages: list[Any] | None = None
    raw_response: Any = field(default=None, repr=False)
    raw_error: BaseException | None = field(default=None, repr=False)


@dataclass(slots=True)
class ErrorDetail:
    """Structured failure attached to an unsuccessful response."""

    title: str | None = None
    description: str | None = None
    type: ErrorType | None = None
    info: ErrorInfo = field(default_factory=ErrorInfo)

    def evolve(self, *, info: Mapping[str, Any] | None = None, **changes: Any) -> "ErrorDetail":
        """Copy with ``changes`` applied; ``info`` updates individual info fields."""
        new_info = replace(self.info, **dict(info or {}))
        return replace(self, info=new_info, **changes)

    @property
    def http_code(self) -> int | None:
        return self.info.http_code

    def exception_text(self) -> str:
        """Frappe exception text carried by the response body, if any."""
        return exception_text(self.info.data)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RenovationException(Exception):
    """Base class for errors raised, rather than returned, by the client."""


class InvalidDocumentError(RenovationException, ValueError):
    """Raised for malformed documents and invalid document operations."""


class DocumentNotCachedError(RenovationException, LookupError):
    """Raised when a document is expected in the local cache but missing."""

    def __init__(self, doctype: str, docname: str) -> None:
        super().__init__(f"Cache doc not found: {doctype}:{docname}")
        self.doctype = doctype
        self.docname = docname


class NotLoggedInError(RenovationException):
    """Raised by operations that require an authenticated session."""


class AppNotInstalledError(RenovationException):
    """Raised when a feature needs a backend app that is not installed."""

    def __init__(self, app: str, features: list[str] | None = None) -> None:
        listed = "\n".join(features or [])
        super().__init__(
            f'The app "{app}" is not installed in the backend.\n'
            f"Please install it to be able to use the feature(s):\n\n{listed}"
        )
        self.app = app
        self.features = list(features or [])


# ---------------------------------------------------------------------------
# Classification helpers
# ---------------------------------------------------------------------------


def exception_text(data: Any) -> str:
    if not isinstance(data, Mapping):
        return ""
    parts = [data.get(key) for key in ("exception", "exc_type", "exc")]
    return "\n".join(str(part) for part in parts if part)


def generic_error(error: ErrorDetail | None = None) -> ErrorDetail:
    error = error or ErrorDetail()
    return error.evolve(
        title=error.title or GENERIC_ERROR_TITLE,
        type=error.type or ErrorType.GENERIC_ERROR,
        info={"http_code": 400},
    )


def doctype_not_found(error: ErrorDetail) -> ErrorDetail:
    return error.evolve(
        title=DOCTYPE_NOT_EXIST_TITLE,
        type=ErrorType.NOT_FOUND_ERROR,
        info={
            "http_code": 404,
            "cause": "DocType does not exist",
            "suggestion": "Make sure the queried DocType is input correctly or create the required DocType",
        },
    )


def docname_not_found(error: ErrorDetail) -> ErrorDetail:
    return error.evolve(
        title=DOCNAME_NOT_EXIST_TITLE,
        type=ErrorType.NOT_FOUND_ERROR,
        info={
            "http_code": 404,
            "cause": "Docname does not exist",
            "suggestion": "Make sure the queried document name is correct or create the required document",
        },
    )


def wrong_input(error: ErrorDetail) -> ErrorDetail:
    return error.evolve(
        title="Wrong input",
        type=ErrorType.DATA_FORMAT_ERROR,
        info={
            "http_code": 412,
            "cause": "The input arguments are in the wrong type/format",
            "suggestion": "Use the correct parameters types/formats referencing the functions signature",
        },
    )


__all__ = [
    "DOCNAME_NOT_EXIST_TITLE",
    "DOCTYPE_NOT_EXIST_TITLE",
    "GENERIC_ERROR_TITLE",
    "AppNotInstalledError",
    "DocumentNotCachedError",
    "ErrorDetail",
    "ErrorInfo",
    "ErrorType",
    "InvalidDocumentError",
    "NotLoggedInError",
    "RenovationException",
    "docname_not_found",
    "doctype_not_found",
    "exception_text",
    "generic_error",
    "wrong_input",
]
