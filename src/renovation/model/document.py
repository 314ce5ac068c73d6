# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Documents: a typed core over an open field map.

A :class:`Document` always knows its ``doctype``; everything else, including
the status flags Frappe uses for unsaved client-side records (``__islocal``,
``__unsaved``), lives in the field map and is sent back to the server as-is.
Child tables are lists of documents stored under the parent's table field.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, MutableMapping
import copy
from typing import Any

from ..errors import InvalidDocumentError


class Document(MutableMapping[str, Any]):
    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None, /, **fields: Any) -> None:
        merged = {**(data or {}), **fields}
        if not merged.get("doctype"):
            raise InvalidDocumentError("Invalid object for doctype")
        self._data: dict[str, Any] = merged

    @classmethod
    def coerce(cls, value: "Document | Mapping[str, Any]") -> "Document":
        return value if isinstance(value, Document) else cls(value)

    # ------------------------------------------------------------------
    # Typed core
    # ------------------------------------------------------------------

    @property
    def doctype(self) -> str:
        return self._data["doctype"]

    @property
    def name(self) -> str | None:
        return self._data.get("name")

    @name.setter
    def name(self, value: str | None) -> None:
        self._data["name"] = value

    @property
    def docstatus(self) -> int:
        return int(self._data.get("docstatus") or 0)

    @property
    def is_local(self) -> bool:
        return bool(self._data.get("__islocal"))

    @property
    def is_unsaved(self) -> bool:
        return bool(self._data.get("__unsaved"))

    def mark_new(self) -> None:
        self._data.update({"docstatus": 0, "__islocal": 1, "__unsaved": 1})

    def mark_saved(self) -> None:
        self._data.update({"__islocal": 0, "__unsaved": 0})

    def child_tables(self) -> Iterator[tuple[str, list[Any]]]:
        for fieldname, value in self._data.items():
            if isinstance(value, list):
                yield fieldname, value

    def as_dict(self) -> dict[str, Any]:
        """Plain ``dict`` copy with child documents converted recursively."""
        return {key: _plain(value) for key, value in self._data.items()}

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key == "doctype" and not value:
            raise InvalidDocumentError("doctype cannot be empty")
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        if key == "doctype":
            raise InvalidDocumentError("doctype cannot be removed")
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Document(doctype={self.doctype!r}, name={self.name!r})"

    def __deepcopy__(self, memo: dict[int, Any]) -> "Document":
        clone = Document.__new__(Document)
        clone._data = copy.deepcopy(self._data, memo)
        return clone


def _plain(value: Any) -> Any:
    if isinstance(value, Document):
        return value.as_dict()
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


__all__ = ["Document"]
