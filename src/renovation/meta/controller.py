# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""DocType schema cache.

Schemas come from ``renovation_core.utils.meta.get_bundle``, which returns the
requested doctype together with its child table doctypes. Loads are
coalesced per doctype: while a bundle request is pending every other caller
for that doctype awaits the same result. A failed load leaves nothing behind
so the next call retries.
"""

from __future__ import annotations

import re
from typing import Any, Final, Mapping

from pydantic import ValidationError

from ..controller import RenovationController
from ..errors import ErrorDetail, ErrorInfo, ErrorType, docname_not_found, doctype_not_found, generic_error
from ..model.doctype import DocType
from ..perm.model import PermissionType
from ..response import RequestResponse
from ..utils.inflight import InFlight


STANDARD_FIELD_LABELS: Final[dict[str, str]] = {"name": "Name", "docstatus": "DocStatus"}
DOCINFO_NOT_FOUND_TITLE: Final[str] = "DocInfo Not Found"

_WORD = re.compile(r"\w\S*")


class MetaController(RenovationController):
    def __init__(self, core) -> None:
        super().__init__(core)
        self._cache: dict[str, DocType] = {}
        self._inflight: InFlight[RequestResponse[DocType]] = InFlight()

    @property
    def doctype_cache(self) -> Mapping[str, DocType]:
        return self._cache

    def is_loading(self, doctype: str) -> bool:
        return doctype in self._inflight

    async def get_doc_meta(self, doctype: str) -> RequestResponse[DocType]:
        """Schema of ``doctype``, from cache or from a single shared bundle request."""
        if (cached := self._cache.get(doctype)) is not None:
            return RequestResponse.ok(cached)
        return await self._inflight.run(doctype, lambda: self._load_bundle(doctype))

    async def get_doc_info(self, doctype: str, docname: str) -> RequestResponse[dict[str, Any]]:
        """Desk side info of one document; ``permissions`` holds per-document overrides."""
        response = await self.core.call("frappe.desk.form.load.get_docinfo", doctype=doctype, name=docname)
        if not response.success:
            return RequestResponse.fail(self.handle_error("get_doc_info", response.error))

        docinfo = response.data.get("docinfo") if isinstance(response.data, dict) else None
        if not isinstance(docinfo, dict):
            error = ErrorDetail(
                title=DOCINFO_NOT_FOUND_TITLE,
                info=ErrorInfo(http_code=response.http_code, data=response.data, raw_response=response.raw),
            )
            return RequestResponse.fail(self.handle_error("get_doc_info", error))
        return RequestResponse.ok(docinfo, response.http_code or 200, raw=response.raw)

    async def get_doc_count(self, doctype: str, filters: Any = None) -> RequestResponse[int]:
        response = await self.core.request(
            "/api/method/frappe.desk.reportview.get",
            params={
                "doctype": doctype,
                "fields": [f"count(`tab{doctype}`.name) as total_count"],
                "filters": filters,
            },
        )
        if response.success:
            try:
                count = response.data["message"]["values"][0][0]
            except (KeyError, IndexError, TypeError):
                count = 0
            return RequestResponse.ok(int(count or 0), response.http_code or 200, raw=response.raw)
        return RequestResponse.fail(self.handle_error("get_doc_count", response.error))

    async def get_field_label(self, doctype: str, fieldname: str) -> str:
        """Translated label of ``fieldname``, title-cased when the schema has none."""
        label = STANDARD_FIELD_LABELS.get(fieldname, fieldname)
        meta = await self.get_doc_meta(doctype)
        if not meta.success or meta.data is None:
            self.logger.warning(
                "failed to read docmeta for field label",
                extra={"event": "meta.field_label.unavailable", "doctype": doctype},
            )
        else:
            docfield = meta.data.get_field(fieldname) or next(
                (df for df in meta.data.disabled_fields if df.fieldname == fieldname), None
            )
            label = docfield.label if docfield is not None and docfield.label else _title_case(label)
        return self.core.translate.get_message(label)

    def clear_cache(self) -> None:
        self._cache.clear()
        self._inflight.forget()

    def handle_error(self, error_id: str | None, error: ErrorDetail | None) -> ErrorDetail:
        error = error or ErrorDetail()
        if error_id == "get_doc_meta" and error.http_code == 404:
            return doctype_not_found(error)
        if error_id == "get_doc_count" and (error.http_code == 404 or "TableMissingError" in error.exception_text()):
            return doctype_not_found(error)
        if error_id == "get_doc_info":
            if error.http_code == 404:
                return docname_not_found(error)
            if error.http_code == 500:
                return doctype_not_found(error)
            if error.title == DOCINFO_NOT_FOUND_TITLE:
                return error.evolve(type=ErrorType.NOT_FOUND_ERROR, info={"http_code": 404, "cause": "DocInfo not found"})
        return generic_error(error)

    # ---------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------

    async def _load_bundle(self, doctype: str) -> RequestResponse[DocType]:
        self.logger.debug("loading doctype bundle", extra={"event": "meta.load", "doctype": doctype})
        response = await self.core.call("renovation_core.utils.meta.get_bundle", doctype=doctype)
        message = response.data.get("message") if response.success and isinstance(response.data, dict) else None
        if not isinstance(message, dict):
            return RequestResponse.fail(self.handle_error("get_doc_meta", response.error))

        metas: dict[str, DocType] = {}
        for raw in message.get("metas") or []:
            if not isinstance(raw, dict) or raw.get("doctype") != "DocType":
                continue
            try:
                meta = DocType.from_frappe(raw)
            except ValidationError:
                self.logger.warning(
                    "skipping malformed doctype in bundle",
                    extra={"event": "meta.invalid", "doctype": raw.get("name")},
                )
                continue
            metas[meta.name] = meta
            self.core.translate.extend_dictionary(raw.get("__messages"))
            for script in raw.get("renovation_scripts") or []:
                if isinstance(script, dict) and script.get("name"):
                    await self.core.scripts.add_script(doctype, script["name"], script.get("code"))

        if doctype not in metas:
            error = ErrorDetail(info=ErrorInfo(http_code=404, data=response.data, raw_response=response.raw))
            return RequestResponse.fail(self.handle_error("get_doc_meta", error))

        self._cache.update(metas)
        # Builds the role matrix for each parent doctype; the schemas are cached already.
        for name, meta in metas.items():
            if not meta.is_table:
                await self.core.perm.has_perm(name, PermissionType.READ)
        return RequestResponse.ok(self._cache[doctype], response.http_code or 200, raw=response.raw)


def _title_case(value: str) -> str:
    return _WORD.sub(lambda match: match.group(0).capitalize(), value or "")


__all__ = ["MetaController"]
