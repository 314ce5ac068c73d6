# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Role matrix resolution and boot-info permissions."""

from __future__ import annotations

import anyio
import httpx
import pytest

from renovation import PermissionType, Renovation

from tests.helpers import FakeFrappe, bundle, doctype_meta, error_response


BUNDLE = "renovation_core.utils.meta.get_bundle"
ROLES = "/api/method/renovation_core.utils.client.get_current_user_roles"
BASIC = "/api/method/renovation_core.utils.client.get_current_user_permissions"


def _invoice_bundle() -> dict[str, object]:
    return bundle(
        doctype_meta(
            "Invoice",
            is_submittable=1,
            permissions=[
                {"role": "Accounts User", "permlevel": 0, "read": 1, "write": 1},
                {"role": "Accounts Manager", "permlevel": 0, "submit": 1, "amend": 1},
                {"role": "Accounts Manager", "permlevel": 1, "read": 1},
                {"role": "Auditor", "permlevel": 0, "delete": 1},
                {"role": "Accounts User", "permlevel": 0, "create": 1, "if_owner": 1},
            ],
        )
    )


async def _login(client: Renovation, user: str) -> None:
    await client.auth.update_session({"user": user}, logged_in=True)


@pytest.mark.anyio
async def test_matrix_merges_roles_the_user_holds(client: Renovation, frappe: FakeFrappe) -> None:
    frappe.command(BUNDLE, _invoice_bundle())
    frappe.route("GET", ROLES, {"message": ["Accounts User", "Accounts Manager"]})
    await _login(client, "jane@example.com")

    response = await client.perm.get_perm("Invoice")

    matrix = response.data
    level0 = matrix[0]
    assert [level0.allows(p) for p in ("read", "write", "submit", "amend", "delete")] == [True, True, True, True, False]
    assert level0.if_owner == {PermissionType.CREATE: True}
    assert matrix[1].allows(PermissionType.READ)
    assert matrix[1].perm_level == 1


@pytest.mark.anyio
async def test_missing_roles_resolve_to_default_deny(client: Renovation, frappe: FakeFrappe) -> None:
    frappe.command(BUNDLE, _invoice_bundle())
    frappe.route("GET", ROLES, lambda request: error_response(500))
    await _login(client, "jane@example.com")

    response = await client.perm.get_perm("Invoice")

    assert response.success
    assert list(response.data) == [0]
    assert response.data[0].allows("read") is False
    assert await client.perm.has_perm("Invoice", PermissionType.WRITE) is False


@pytest.mark.anyio
async def test_administrator_reads_by_default(client: Renovation, frappe: FakeFrappe) -> None:
    frappe.command(BUNDLE, lambda request: error_response(500))
    await _login(client, "Administrator")

    response = await client.perm.get_perm("Invoice")

    assert response.data[0].allows("read") is True


@pytest.mark.anyio
async def test_has_perm_levels_and_docinfo_override(client: Renovation, frappe: FakeFrappe) -> None:
    frappe.command(BUNDLE, _invoice_bundle())
    frappe.route("GET", ROLES, {"message": ["Accounts User"]})
    frappe.command("frappe.desk.form.load.get_docinfo", {"docinfo": {"permissions": {"read": 1, "write": 0}}})
    await _login(client, "jane@example.com")

    assert await client.perm.has_perm("Invoice", "write") is True
    assert await client.perm.has_perm("Invoice", "read", perm_level=1) is False
    assert await client.perm.has_perm("Invoice", "write", docname="INV-1") is False
    assert await client.perm.has_perm("Invoice", "read", docname="INV-1") is True
    assert await client.perm.has_perms("Invoice", ["read", "write"]) is True
    assert await client.perm.has_perms("Invoice", ["read", "submit"]) is False


@pytest.mark.anyio
async def test_submit_and_amend_read_the_cached_matrix(client: Renovation, frappe: FakeFrappe) -> None:
    frappe.command(BUNDLE, _invoice_bundle())
    frappe.route("GET", ROLES, {"message": ["Accounts Manager"]})
    await _login(client, "jane@example.com")

    assert await client.perm.can_submit("Invoice") is False

    await client.meta.get_doc_meta("Invoice")

    assert await client.perm.can_submit("Invoice") is True
    assert await client.perm.can_amend("Invoice") is True
    assert await client.perm.can_recursive_delete("Invoice") is False


@pytest.mark.anyio
async def test_basic_perms_rebind_to_current_user(client: Renovation, frappe: FakeFrappe) -> None:
    answers = {
        "jane@example.com": {"can_read": ["ToDo", "Note"], "can_create": ["ToDo"]},
        "joe@example.com": {"can_read": ["Note"]},
    }
    frappe.route("POST", BASIC, lambda request: {"message": answers[client.auth.get_current_user()]})

    await _login(client, "jane@example.com")
    assert await client.perm.can_read("ToDo") is True
    assert await client.perm.can_create("ToDo") is True
    assert await client.perm.can_delete("ToDo") is False
    assert frappe.count(BASIC) == 1

    await _login(client, "joe@example.com")
    assert await client.perm.can_read("ToDo") is False
    assert client.perm.basic_perms.user == "joe@example.com"
    assert frappe.count(BASIC) == 2


@pytest.mark.anyio
async def test_basic_perms_for_guest(client: Renovation, frappe: FakeFrappe) -> None:
    frappe.route("POST", BASIC, {"message": {"can_read": ["Blog Post"]}})

    assert await client.perm.can_read("Blog Post") is True
    assert await client.perm.can_search("Blog Post") is False
    assert client.perm.basic_perms.user == "Guest"
    assert frappe.count(BASIC) == 1


@pytest.mark.anyio
async def test_concurrent_basic_perm_checks_share_one_request(client: Renovation, frappe: FakeFrappe) -> None:
    release = anyio.Event()

    async def slow_basic(request: httpx.Request) -> dict[str, object]:
        await release.wait()
        return {"message": {"can_read": ["ToDo"], "can_write": ["ToDo"]}}

    frappe.route("POST", BASIC, slow_basic)
    results: list[bool] = []

    async def check(action) -> None:
        results.append(await action("ToDo"))

    async with anyio.create_task_group() as tg:
        tg.start_soon(check, client.perm.can_read)
        tg.start_soon(check, client.perm.can_write)
        await anyio.wait_all_tasks_blocked()
        release.set()

    assert results == [True, True]
    assert frappe.count(BASIC) == 1


@pytest.mark.anyio
async def test_basic_perms_reload_when_user_changes_under_the_cache(client: Renovation, frappe: FakeFrappe) -> None:
    answers = {"Guest": {"can_read": ["Blog Post"]}, "joe@example.com": {"can_read": ["Note"]}}
    frappe.route("POST", BASIC, lambda request: {"message": answers[client.auth.get_current_user() or "Guest"]})

    assert await client.perm.can_read("Blog Post") is True
    assert client.perm.basic_perms.user == "Guest"

    # The session holder is bypassed, so nothing clears the permission cache.
    client.auth._current_user = "joe@example.com"

    assert await client.perm.can_read("Note") is True
    assert await client.perm.can_read("Blog Post") is False
    assert client.perm.basic_perms.user == "joe@example.com"
    assert frappe.count(BASIC) == 2


@pytest.mark.anyio
async def test_docinfo_permissions_deny_types_they_leave_out(client: Renovation, frappe: FakeFrappe) -> None:
    frappe.command(BUNDLE, _invoice_bundle())
    frappe.route("GET", ROLES, {"message": ["Accounts User"]})
    await _login(client, "jane@example.com")

    frappe.command("frappe.desk.form.load.get_docinfo", {"docinfo": {"permissions": {"read": 1}}})
    assert await client.perm.has_perm("Invoice", "write", docname="INV-1") is False

    frappe.command("frappe.desk.form.load.get_docinfo", {"docinfo": {}})
    assert await client.perm.has_perm("Invoice", "write", docname="INV-1") is True
