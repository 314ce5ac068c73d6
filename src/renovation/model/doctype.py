# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""DocType schema models parsed from Frappe meta bundles.

Frappe serializes checkboxes as ``0``/``1``; :data:`Flag` fields turn them
into ``bool`` (only ``1`` or ``True`` count as set). Keys the models do not
name are kept as extra attributes.
"""

from __future__ import annotations

from typing import Annotated, Any, Final

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from ..perm.model import PermissionType


TABLE_FIELD_TYPES: Final[frozenset[str]] = frozenset({"Table", "Table MultiSelect"})


def _as_flag(value: Any) -> bool:
    return value is True or value == 1


Flag = Annotated[bool, BeforeValidator(_as_flag)]


class _FrappeModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class DocField(_FrappeModel):
    fieldname: str | None = None
    fieldtype: str | None = None
    label: str | None = None
    options: str | None = None
    default: Any = None
    description: str | None = None
    depends_on: str | None = None
    fetch_from: str | None = None
    permlevel: int = 0
    idx: int | None = None

    reqd: Flag = False
    hidden: Flag = False
    read_only: Flag = False
    unique: Flag = False
    bold: Flag = False
    collapsible: Flag = False
    no_copy: Flag = False
    allow_on_submit: Flag = False
    in_list_view: Flag = False
    in_standard_filter: Flag = False
    in_global_search: Flag = False
    print_hide: Flag = False
    report_hide: Flag = False
    search_index: Flag = False
    set_only_once: Flag = False
    translatable: Flag = False
    fetch_if_empty: Flag = False
    ignore_user_permissions: Flag = False

    @property
    def is_table(self) -> bool:
        return self.fieldtype in TABLE_FIELD_TYPES


class DocPerm(_FrappeModel):
    role: str = ""
    perm_level: int = Field(default=0, alias="permlevel")
    if_owner: Flag = False

    create: Flag = False
    read: Flag = False
    write: Flag = False
    delete: Flag = False
    submit: Flag = False
    cancel: Flag = False
    amend: Flag = False
    report: Flag = False
    import_: Flag = Field(default=False, alias="import")
    export: Flag = False
    print: Flag = False
    email: Flag = False
    share: Flag = False
    set_user_permissions: Flag = False
    recursive_delete: Flag = False

    def allows(self, ptype: PermissionType | str) -> bool:
        ptype = PermissionType(ptype)
        attribute = "import_" if ptype is PermissionType.IMPORT else ptype.value
        return bool(getattr(self, attribute))


class DocType(_FrappeModel):
    """Schema of one doctype as returned by ``renovation_core.utils.meta.get_bundle``."""

    name: str
    module: str | None = None
    autoname: str | None = None
    title_field: str | None = None
    image_field: str | None = None
    search_fields: str | None = None
    sort_field: str | None = None
    sort_order: str | None = None

    fields: list[DocField] = Field(default_factory=list)
    disabled_fields: list[DocField] = Field(default_factory=list, alias="_fields")
    permissions: list[DocPerm] = Field(default_factory=list)

    is_submittable: Flag = False
    istable: Flag = False
    issingle: Flag = False
    treeview: Flag = False
    editable_grid: Flag = False
    quick_entry: Flag = False
    track_changes: Flag = False
    track_seen: Flag = False
    custom: Flag = False
    beta: Flag = False
    image_view: Flag = False
    read_only: Flag = False
    read_only_onload: Flag = False
    hide_heading: Flag = False
    hide_toolbar: Flag = False
    allow_copy: Flag = False
    allow_import: Flag = False
    allow_rename: Flag = False
    in_create: Flag = False
    has_web_view: Flag = False
    allow_guest_to_view: Flag = False
    show_name_in_global_search: Flag = False

    @classmethod
    def from_frappe(cls, meta: dict[str, Any]) -> "DocType":
        return cls.model_validate(meta)

    @property
    def doctype(self) -> str:
        return self.name

    @property
    def is_table(self) -> bool:
        return self.istable

    @property
    def is_single(self) -> bool:
        return self.issingle

    def get_field(self, fieldname: str) -> DocField | None:
        return next((df for df in self.fields if df.fieldname == fieldname), None)

    def table_fields(self) -> list[DocField]:
        return [df for df in self.fields if df.is_table]


__all__ = ["TABLE_FIELD_TYPES", "DocField", "DocPerm", "DocType", "Flag"]
