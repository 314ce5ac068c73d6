# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Document cache ("locals") and document CRUD.

Every document the client has seen or created lives in ``locals`` under
``(doctype, name)``. Documents created on the client get a transient name
``"New <Doctype> <N>"`` from a per-doctype counter; the counters survive
deletes and only reset with :meth:`ModelController.clear_cache`, so a
transient name is never handed out twice in one session.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from ..controller import RenovationController
from ..errors import (
    DocumentNotCachedError,
    ErrorDetail,
    ErrorInfo,
    ErrorType,
    InvalidDocumentError,
    docname_not_found,
    generic_error,
    wrong_input,
)
from ..response import RequestResponse
from ..utils.json import deep_clone
from .doctype import TABLE_FIELD_TYPES, DocField
from .document import Document


DocLike = Document | Mapping[str, Any]


class ModelController(RenovationController):
    def __init__(self, core) -> None:
        super().__init__(core)
        self._locals: defaultdict[str, dict[str, Document]] = defaultdict(dict)
        self._counters: defaultdict[str, int] = defaultdict(int)

    # ---------------------------------------------------------------------
    # Local cache
    # ---------------------------------------------------------------------

    @property
    def locals(self) -> Mapping[str, Mapping[str, Document]]:
        return self._locals

    def get_new_name(self, doctype: str) -> str:
        self._counters[doctype] += 1
        return f"New {doctype} {self._counters[doctype]}"

    def new_doc(self, doctype: str) -> Document:
        doc = Document(
            {"doctype": doctype, "name": self.get_new_name(doctype), "docstatus": 0, "__islocal": 1, "__unsaved": 1}
        )
        return self.add_to_locals(doc)

    def add_to_locals(self, doc: DocLike) -> Document:
        """Cache ``doc`` and every child document found in its table fields.

        A document without a name is treated as new: it gets a transient
        name and the unsaved flags. Child dicts are replaced in place by
        :class:`Document` instances.
        """
        doc = Document.coerce(doc)
        if not doc.name:
            doc.name = self.get_new_name(doc.doctype)
            doc.mark_new()
        self._locals[doc.doctype][doc.name] = doc

        for _, rows in doc.child_tables():
            for index, row in enumerate(rows):
                if isinstance(row, Mapping) and row.get("doctype"):
                    rows[index] = self.add_to_locals(row)
        return doc

    def get_from_locals(self, doctype: str, name: str) -> Document | None:
        return self._locals.get(doctype, {}).get(name)

    def remove_from_locals(self, doctype: str, name: str) -> Document | None:
        return self._locals.get(doctype, {}).pop(name, None)

    def copy_doc(self, doc: DocLike) -> Document:
        clone = deep_clone(Document.coerce(doc))
        fresh = self.new_doc(clone.doctype)
        clone.update(fresh)
        self._locals[clone.doctype][clone.name] = clone
        return clone

    def amend_doc(self, doc: DocLike) -> Document:
        doc = Document.coerce(doc)
        amended = self.copy_doc(doc)
        amended["amended_from"] = doc.name
        return amended

    async def add_child_doc(self, doc: DocLike, field: str | DocField) -> Document:
        """Append a new row to the table field ``field`` of ``doc``.

        Raises:
            InvalidDocumentError: the field is unknown or not a table field.
        """
        doc = Document.coerce(doc)
        meta = await self.core.meta.get_doc_meta(doc.doctype)
        fieldname = field.fieldname if isinstance(field, DocField) else field
        docfield = meta.data.get_field(fieldname) if meta.success and fieldname else None
        if docfield is None:
            raise InvalidDocumentError("Failed to get datafield")
        if docfield.fieldtype not in TABLE_FIELD_TYPES:
            raise InvalidDocumentError(f"{docfield.fieldname} is not a table field")

        rows = doc.get(docfield.fieldname)
        if not isinstance(rows, list):
            rows = doc[docfield.fieldname] = []
        child = self.new_doc(docfield.options or "")
        child["idx"] = len(rows) + 1
        child["parent"] = doc.name
        child["parenttype"] = doc.doctype
        child["parentfield"] = docfield.fieldname
        rows.append(child)
        return child

    async def set_local_value(self, doctype: str, docname: str, fieldname: str, value: Any) -> Document:
        """Set a field on a cached document and run the field's script event.

        Raises:
            DocumentNotCachedError: ``(doctype, docname)`` is not cached.
        """
        doc = self.get_from_locals(doctype, docname)
        if doc is None:
            raise DocumentNotCachedError(doctype, docname)
        doc["__unsaved"] = 1
        doc[fieldname] = value
        await self.core.scripts.trigger(doctype, docname, fieldname)
        return doc

    def clear_cache(self) -> None:
        self._locals.clear()
        self._counters.clear()

    # ---------------------------------------------------------------------
    # Server round trips
    # ---------------------------------------------------------------------

    async def get_doc(self, doctype: str, docname: str, *, force_fetch: bool = False) -> RequestResponse[Document]:
        if not doctype or not docname:
            return RequestResponse.fail(self.handle_error("get_doc", ErrorDetail(info=ErrorInfo(http_code=412))))
        if not force_fetch and (cached := self.get_from_locals(doctype, docname)) is not None:
            return RequestResponse.ok(cached)

        if await self.core.frappe.check_app_installed(raise_error=False):
            await self.core.meta.get_doc_meta(doctype)
            response = await self.core.request(f"/api/method/renovation/doc/{_quote(doctype)}/{_quote(docname)}")
        else:
            response = await self.core.request(_resource_path(doctype, docname))

        body = response.data if isinstance(response.data, dict) else {}
        data = body.get("data")
        if response.success and isinstance(data, Mapping) and data:
            doc = self.add_to_locals(Document({"doctype": doctype, **data}))
            return RequestResponse.ok(doc, response.http_code or 200, raw=response.raw)

        if f"New {doctype}" in docname:
            return RequestResponse.ok(self.new_doc(doctype))
        return RequestResponse.fail(self.handle_error("get_doc", response.error))

    async def save_doc(self, doc: DocLike) -> RequestResponse[Document]:
        doc = Document.coerce(doc)
        if doc.name:
            await self.core.scripts.trigger(doc.doctype, doc.name, "validate")

        if doc.is_local:
            response = await self.core.request(_resource_path(doc.doctype), "POST", json=doc.as_dict())
        else:
            response = await self.core.request(_resource_path(doc.doctype, doc.name or ""), "PUT", json=doc.as_dict())

        body = response.data if isinstance(response.data, dict) else {}
        status = body.get("status")
        if response.success and body.get("data") and status in (None, "success"):
            previous = doc.name
            doc.update(body["data"])
            doc.mark_saved()
            if previous and previous != doc.name:
                self.remove_from_locals(doc.doctype, previous)
            self.add_to_locals(doc)
            return RequestResponse.ok(doc, response.http_code or 200, raw=response.raw)
        return RequestResponse.fail(self.handle_error("save_doc", response.error))

    async def submit_doc(self, doc: DocLike) -> RequestResponse[Document]:
        doc = Document.coerce(doc)
        response = await self.core.call("frappe.client.submit", doc=doc.as_dict())
        message = _message(response)
        if response.success and isinstance(message, Mapping):
            doc.update(message)
            self.add_to_locals(doc)
            return RequestResponse.ok(doc, response.http_code or 200, raw=response.raw)
        return RequestResponse.fail(self.handle_error("submit_doc", response.error))

    async def cancel_doc(self, doctype: str, docname: str) -> RequestResponse[Any]:
        response = await self.core.call("frappe.client.cancel", doctype=doctype, name=docname)
        if response.success:
            if (cached := self.get_from_locals(doctype, docname)) is not None:
                cached["docstatus"] = 2
            return RequestResponse.ok(_message(response), response.http_code or 200, raw=response.raw)
        return RequestResponse.fail(self.handle_error("cancel_doc", response.error))

    async def delete_doc(self, doctype: str, docname: str) -> RequestResponse[str]:
        response = await self.core.request(_resource_path(doctype, docname), "DELETE")
        if response.success:
            self.remove_from_locals(doctype, docname)
            return RequestResponse.ok(docname, response.http_code or 200, raw=response.raw)
        return RequestResponse.fail(self.handle_error("delete_doc", response.error))

    async def get_list(
        self,
        doctype: str,
        fields: list[str] | None = None,
        filters: Any = None,
        order_by: str | None = None,
        limit_page_length: int | None = None,
    ) -> RequestResponse[list[dict[str, Any]]]:
        response = await self.core.call(
            "frappe.client.get_list",
            doctype=doctype,
            fields=fields or ["name"],
            filters=filters,
            order_by=order_by,
            limit_page_length=limit_page_length,
        )
        if response.success:
            return RequestResponse.ok(_message(response) or [], response.http_code or 200, raw=response.raw)
        return RequestResponse.fail(self.handle_error("get_list", response.error))

    async def get_value(self, doctype: str, docname: str, fieldname: str | list[str]) -> RequestResponse[Any]:
        response = await self.core.call("frappe.client.get_value", doctype=doctype, filters=docname, fieldname=fieldname)
        if response.success:
            return RequestResponse.ok(_message(response), response.http_code or 200, raw=response.raw)
        return RequestResponse.fail(self.handle_error("get_value", response.error))

    async def set_value(self, doctype: str, docname: str, fieldname: str, value: Any) -> RequestResponse[Any]:
        response = await self.core.call(
            "frappe.client.set_value", doctype=doctype, name=docname, fieldname=fieldname, value=value
        )
        if response.success:
            message = _message(response)
            if isinstance(message, Mapping) and message.get("doctype") and message.get("name"):
                self.add_to_locals(Document(message))
            return RequestResponse.ok(message, response.http_code or 200, raw=response.raw)
        return RequestResponse.fail(self.handle_error("set_value", response.error))

    def handle_error(self, error_id: str | None, error: ErrorDetail | None) -> ErrorDetail:
        error = error or ErrorDetail()
        exc = error.exception_text()
        if error_id in ("get_doc", "delete_doc") and (error.http_code == 404 or "DoesNotExistError" in exc):
            return docname_not_found(error)
        if error_id == "get_doc" and error.http_code == 412:
            return wrong_input(error)
        if error_id == "save_doc" and "DuplicateEntryError" in exc:
            return error.evolve(
                title="Duplicate document found",
                type=ErrorType.DUPLICATE_ENTRY_ERROR,
                info={
                    "http_code": 409,
                    "cause": "Same name already used for another document",
                    "suggestion": "Change the name of the document or set it to be autonamed",
                },
            )
        return generic_error(error)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _quote(value: str) -> str:
    return quote(value, safe="")


def _resource_path(doctype: str, docname: str | None = None) -> str:
    path = f"/api/resource/{_quote(doctype)}"
    return f"{path}/{_quote(docname)}" if docname is not None else path


def _message(response: RequestResponse[Any]) -> Any:
    return response.data.get("message") if isinstance(response.data, dict) else None


__all__ = ["ModelController"]
