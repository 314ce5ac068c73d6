# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""In-memory Frappe backend for client tests."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import inspect
from typing import Any
from urllib.parse import parse_qs

import httpx
import orjson as oj


Handler = Callable[[httpx.Request], "httpx.Response | dict[str, Any] | Awaitable[httpx.Response | dict[str, Any]]"]

HOST_URL = "http://erp.test"


@dataclass
class RecordedCall:
    method: str
    path: str
    cmd: str | None = None
    json: dict[str, Any] = field(default_factory=dict)
    form: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)


class FakeFrappe:
    """Routes requests by ``(method, path)``, and desk commands by ``cmd``.

    Handlers return an :class:`httpx.Response` or a dict served as a 200 JSON
    body; they may be coroutine functions. Unrouted requests get Frappe's 404.
    """

    def __init__(self, *, apps: tuple[str, ...] = ("frappe", "renovation_core")) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.commands: dict[str, Handler] = {}
        self.calls: list[RecordedCall] = []
        self.apps = apps

        self.command("renovation_core.utils.site.get_versions", self._versions)
        self.route("GET", "/api/method/renovation_core.utils.client.get_lang_dict", {"message": {}})

    def route(self, method: str, path: str, handler: Handler | dict[str, Any]) -> None:
        self.routes[(method.upper(), path)] = _as_handler(handler)

    def command(self, cmd: str, handler: Handler | dict[str, Any]) -> None:
        self.commands[cmd] = _as_handler(handler)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def count(self, target: str) -> int:
        return sum(1 for call in self.calls if target in (call.cmd, call.path))

    def last(self, target: str) -> RecordedCall:
        return [call for call in self.calls if target in (call.cmd, call.path)][-1]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        call = _record(request)
        self.calls.append(call)

        if call.cmd is not None and call.path == "/":
            handler = self.commands.get(call.cmd)
        else:
            handler = self.routes.get((call.method, call.path))
        if handler is None:
            return httpx.Response(404, json={"exc_type": "DoesNotExistError", "exc": "frappe.exceptions.DoesNotExistError"})

        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)

    def _versions(self, request: httpx.Request) -> dict[str, Any]:
        versions = {"frappe": {"version": "v12.3.0"}, "renovation_core": {"version": "v1.2.0"}}
        return {"message": {app: versions[app] for app in self.apps if app in versions}}


def _as_handler(handler: Handler | dict[str, Any]) -> Handler:
    if callable(handler):
        return handler
    return lambda request: handler


def _record(request: httpx.Request) -> RecordedCall:
    content_type = request.headers.get("content-type", "")
    body = request.content
    payload: dict[str, Any] = {}
    form: dict[str, str] = {}
    if body and content_type.startswith("application/json"):
        payload = oj.loads(body)
    elif body and content_type.startswith("application/x-www-form-urlencoded"):
        form = {key: values[-1] for key, values in parse_qs(body.decode()).items()}
    return RecordedCall(
        method=request.method,
        path=request.url.path,
        cmd=payload.get("cmd") if isinstance(payload, dict) else None,
        json=payload if isinstance(payload, dict) else {},
        form=form,
        params=dict(request.url.params),
        headers=dict(request.headers),
    )


def error_response(status: int, **body: Any) -> httpx.Response:
    return httpx.Response(status, json=body)


def doctype_meta(name: str, *, fields: list[dict[str, Any]] | None = None, **extra: Any) -> dict[str, Any]:
    return {"doctype": "DocType", "name": name, "fields": fields or [], "permissions": [], **extra}


def bundle(*metas: dict[str, Any]) -> dict[str, Any]:
    return {"message": {"metas": list(metas)}}


__all__ = ["HOST_URL", "FakeFrappe", "RecordedCall", "bundle", "doctype_meta", "error_response"]
