# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""HTTP transport: envelopes, server messages and error tagging."""

from __future__ import annotations

from typing import Any

import httpx
import orjson as oj
import pytest

from renovation import RenovationConfig
from renovation.errors import ErrorType
from renovation.session import SessionStatus
from renovation.transport import CLIENT_ID_HEADER, HttpTransport
from renovation.utils.observable import Subject

from tests.helpers import HOST_URL, FakeFrappe, error_response


def _make_transport(frappe: FakeFrappe, **config: Any) -> tuple[HttpTransport, SessionStatus, list[Any]]:
    status = SessionStatus()
    messages: Subject[Any] = Subject(name="messages")
    received: list[Any] = []
    messages.subscribe(received.append)
    transport = HttpTransport(
        RenovationConfig(host_url=HOST_URL, **config),
        session_status=status,
        messages=messages,
        transport=frappe.transport(),
    )
    return transport, status, received


def _server_messages(*messages: dict[str, Any]) -> str:
    return oj.dumps([oj.dumps(message).decode() for message in messages]).decode()


@pytest.mark.anyio
async def test_success_wraps_body(frappe: FakeFrappe) -> None:
    frappe.route("GET", "/api/method/ping", {"message": "pong"})
    transport, _, _ = _make_transport(frappe)

    response = await transport.request("/api/method/ping")

    assert response.success
    assert response.http_code == 200
    assert response.data == {"message": "pong"}
    await transport.aclose()


@pytest.mark.anyio
async def test_error_status_becomes_failed_envelope(frappe: FakeFrappe) -> None:
    frappe.route("GET", "/api/method/broken", lambda request: error_response(417, exc="ValidationError"))
    transport, _, _ = _make_transport(frappe)

    response = await transport.request("/api/method/broken")

    assert not response.success
    assert response.http_code == 417
    assert response.error is not None
    assert response.error.info.data == {"exc": "ValidationError"}
    await transport.aclose()


@pytest.mark.anyio
async def test_network_failure_does_not_raise() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = HttpTransport(
        RenovationConfig(host_url=HOST_URL),
        session_status=SessionStatus(),
        messages=Subject(),
        transport=httpx.MockTransport(refuse),
    )

    response = await transport.request("/api/method/ping")

    assert not response.success
    assert response.error is not None
    assert response.error.type is ErrorType.NETWORK_ERROR
    await transport.aclose()


@pytest.mark.anyio
async def test_server_messages_are_decoded_and_published(frappe: FakeFrappe) -> None:
    frappe.route(
        "GET",
        "/api/method/notify",
        {"message": "ok", "_server_messages": _server_messages({"message": "Saved"}, {"message": "Synced"})},
    )
    transport, _, received = _make_transport(frappe)

    response = await transport.request("/api/method/notify")

    assert response.data["_server_messages"] == [{"message": "Saved"}, {"message": "Synced"}]
    assert received == [{"message": "Saved"}, {"message": "Synced"}]
    await transport.aclose()


@pytest.mark.anyio
async def test_exception_names_tag_the_error(frappe: FakeFrappe) -> None:
    frappe.route("GET", "/api/method/secret", lambda request: error_response(403, exc="frappe.PermissionError"))
    frappe.route("GET", "/api/method/auth", lambda request: error_response(401, exc="frappe.AuthenticationError"))
    transport, _, _ = _make_transport(frappe)

    denied = await transport.request("/api/method/secret")
    unauthenticated = await transport.request("/api/method/auth")

    assert denied.error.type is ErrorType.PERMISSION_ERROR
    assert unauthenticated.error.type is ErrorType.AUTHENTICATION_ERROR
    await transport.aclose()


@pytest.mark.anyio
async def test_session_expired_publishes_logged_out_session(frappe: FakeFrappe) -> None:
    frappe.route("GET", "/api/method/expired", lambda request: error_response(403, session_expired=1))
    transport, status, _ = _make_transport(frappe)

    await transport.request("/api/method/expired")

    assert status.value.logged_in is False
    assert status.value.session_expired is True
    await transport.aclose()


@pytest.mark.anyio
async def test_invalid_request_invokes_hook(frappe: FakeFrappe) -> None:
    frappe.route(
        "GET",
        "/api/method/invalid",
        lambda request: error_response(400, _server_messages=_server_messages({"message": "Invalid Request"})),
    )
    transport, _, _ = _make_transport(frappe)
    fired: list[bool] = []

    async def on_invalid() -> None:
        fired.append(True)

    transport.on_invalid_request = on_invalid
    await transport.request("/api/method/invalid")

    assert fired == [True]
    await transport.aclose()


@pytest.mark.anyio
async def test_headers_carry_client_id_and_token(frappe: FakeFrappe) -> None:
    frappe.route("GET", "/api/method/ping", {"message": "pong"})
    transport, _, _ = _make_transport(frappe, client_id="site-a")
    transport.set_auth_token("JWTToken abc")

    await transport.request("/api/method/ping")

    headers = frappe.last("/api/method/ping").headers
    assert headers[CLIENT_ID_HEADER.lower()] == "site-a"
    assert headers["authorization"] == "JWTToken abc"
    assert headers["x-requested-with"] == "XMLHttpRequest"
    await transport.aclose()


@pytest.mark.anyio
async def test_call_posts_cmd_and_form_values_are_stringified(frappe: FakeFrappe) -> None:
    frappe.command("frappe.client.get_value", {"message": {"status": "Open"}})
    frappe.route("POST", "/api/method/login", {"message": "Logged In"})
    transport, _, _ = _make_transport(frappe)

    await transport.call("frappe.client.get_value", doctype="ToDo", fieldname=["status"])
    await transport.request("/api/method/login", "POST", data={"usr": "a", "use_jwt": True, "skip": None})

    call = frappe.last("frappe.client.get_value")
    assert call.json == {"cmd": "frappe.client.get_value", "doctype": "ToDo", "fieldname": ["status"]}
    assert frappe.last("/api/method/login").form == {"usr": "a", "use_jwt": "1"}
    await transport.aclose()


def test_session_cookie_is_stored_in_jar(frappe: FakeFrappe) -> None:
    transport, _, _ = _make_transport(frappe)

    transport.set_cookie("renovation_core_session_info", '{"loggedIn":true}')

    assert "renovation_core_session_info" in transport.cookies
