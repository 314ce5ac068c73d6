# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import pytest

from renovation.errors import (
    DOCNAME_NOT_EXIST_TITLE,
    DOCTYPE_NOT_EXIST_TITLE,
    GENERIC_ERROR_TITLE,
    AppNotInstalledError,
    DocumentNotCachedError,
    ErrorDetail,
    ErrorInfo,
    ErrorType,
    docname_not_found,
    doctype_not_found,
    exception_text,
    generic_error,
    wrong_input,
)
from renovation.response import RequestResponse


def test_generic_error_fills_defaults() -> None:
    error = generic_error()

    assert error.title == GENERIC_ERROR_TITLE
    assert error.type is ErrorType.GENERIC_ERROR
    assert error.http_code == 400


def test_generic_error_keeps_existing_classification() -> None:
    original = ErrorDetail(title="Forbidden", type=ErrorType.PERMISSION_ERROR, info=ErrorInfo(http_code=403))

    error = generic_error(original)

    assert error.title == "Forbidden"
    assert error.type is ErrorType.PERMISSION_ERROR
    assert error.http_code == 400
    assert original.http_code == 403


def test_not_found_helpers_keep_response_data() -> None:
    base = ErrorDetail(info=ErrorInfo(http_code=500, data={"exc_type": "DoesNotExistError"}))

    doctype = doctype_not_found(base)
    docname = docname_not_found(base)

    assert doctype.title == DOCTYPE_NOT_EXIST_TITLE
    assert docname.title == DOCNAME_NOT_EXIST_TITLE
    for error in (doctype, docname):
        assert error.type is ErrorType.NOT_FOUND_ERROR
        assert error.http_code == 404
        assert error.info.data == {"exc_type": "DoesNotExistError"}
        assert error.info.suggestion


def test_wrong_input_is_a_data_format_error() -> None:
    error = wrong_input(ErrorDetail())

    assert error.type is ErrorType.DATA_FORMAT_ERROR
    assert error.http_code == 412


def test_exception_text_joins_frappe_exception_fields() -> None:
    text = exception_text({"exception": "frappe.exceptions.DuplicateEntryError", "exc_type": "DuplicateEntryError"})

    assert "frappe.exceptions.DuplicateEntryError" in text
    assert "DuplicateEntryError" in text
    assert exception_text("not a mapping") == ""


def test_failed_response_takes_code_and_body_from_error() -> None:
    error = ErrorDetail(info=ErrorInfo(http_code=417, data={"message": "nope"}))

    response = RequestResponse.fail(error)

    assert response.success is False
    assert response.http_code == 417
    assert response.data == {"message": "nope"}
    assert response.error is error


def test_exception_messages() -> None:
    assert str(DocumentNotCachedError("ToDo", "TD-1")) == "Cache doc not found: ToDo:TD-1"
    with pytest.raises(AppNotInstalledError, match='"renovation_core" is not installed'):
        raise AppNotInstalledError("renovation_core", ["pin_login"])
