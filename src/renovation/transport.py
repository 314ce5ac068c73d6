# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""HTTP transport for Frappe endpoints.

:class:`HttpTransport` owns one :class:`httpx.AsyncClient` and turns every
exchange into a :class:`~renovation.response.RequestResponse`; it never raises
for HTTP or network failures. After each request it inspects the body the way
the Frappe desk does:

* ``_server_messages`` (a JSON string holding JSON strings) is decoded in
  place and each message is published on the ``messages`` subject.
* On failure, ``session_expired`` publishes a logged out, expired session;
  ``exc`` naming ``PermissionError`` or ``AuthenticationError`` tags the
  error; a first server message of ``"Invalid Request"`` asks the owner to
  drop the session through :attr:`HttpTransport.on_invalid_request`.

Server cookies (``sid`` and friends) persist in the client's cookie jar.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from http.cookiejar import Cookie
from typing import Any, Final
from urllib.parse import quote, urlparse

import httpx

from .config import RenovationConfig
from .errors import ErrorDetail, ErrorInfo, ErrorType
from .response import RequestResponse
from .session import Session, SessionStatus
from .utils.json import dumps, get_json
from .utils.logger import get_logger
from .utils.observable import Subject


DEFAULT_HEADERS: Final[dict[str, str]] = {
    "Accept": "application/json",
    "X-Requested-With": "XMLHttpRequest",
}
CLIENT_ID_HEADER: Final[str] = "X-Client-Site"

InvalidRequestHandler = Callable[[], Awaitable[None]]

_logger = get_logger("renovation.transport")


class HttpTransport:
    """Shared HTTP client for one Frappe site."""

    def __init__(
        self,
        config: RenovationConfig,
        *,
        session_status: SessionStatus,
        messages: Subject[Any],
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._session_status = session_status
        self._messages = messages
        self._client_id = config.client_id
        self._auth_token: str | None = None
        self._client = client or httpx.AsyncClient(
            base_url=config.host_url,
            timeout=config.timeout,
            verify=config.verify,
            transport=transport,
        )
        self.on_invalid_request: InvalidRequestHandler | None = None

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    @property
    def auth_token(self) -> str | None:
        return self._auth_token

    @property
    def client_id(self) -> str | None:
        return self._client_id

    def set_auth_token(self, value: str | None) -> None:
        """Set the full ``Authorization`` header value, or clear it with ``None``."""
        self._auth_token = value

    def set_client_id(self, client_id: str) -> None:
        self._client_id = client_id
        _logger.info("client id set", extra={"event": "transport.client_id", "client_id": client_id})

    def reset_client_id(self) -> None:
        self._client_id = None

    def set_cookie(self, name: str, value: str, *, secure: bool | None = None) -> None:
        """Store ``value`` as a cookie for the configured host.

        The cookie is ``Secure`` with ``SameSite=Lax`` on HTTPS hosts and
        ``SameSite=None`` otherwise.
        """
        secure = self._config.is_secure if secure is None else secure
        host = urlparse(self._config.host_url).hostname or ""
        cookie = Cookie(
            version=0,
            name=name,
            value=quote(value, safe=""),
            port=None,
            port_specified=False,
            domain=host,
            domain_specified=False,
            domain_initial_dot=False,
            path="/",
            path_specified=True,
            secure=secure,
            expires=None,
            discard=True,
            comment=None,
            comment_url=None,
            rest={"SameSite": "Lax" if secure else "None"},
        )
        self._client.cookies.jar.set_cookie(cookie)

    def headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = {**DEFAULT_HEADERS, **self._config.headers}
        if self._client_id:
            headers[CLIENT_ID_HEADER] = self._client_id
        if self._auth_token:
            headers["Authorization"] = self._auth_token
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        json: Any = None,
        files: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestResponse[Any]:
        """Send one request and wrap the outcome.

        ``endpoint`` is relative to the host URL unless it is absolute. Query
        parameters go in ``params``, form fields in ``data`` and JSON bodies
        in ``json``.
        """
        method = method.upper()
        try:
            response = await self._client.request(
                method,
                endpoint,
                params=_stringify(params),
                data=_stringify(data),
                json=json,
                files=files,
                headers=self.headers(headers),
            )
        except httpx.HTTPError as exc:
            _logger.warning(
                "request failed before a response arrived",
                extra={"event": "transport.network_error", "method": method, "endpoint": endpoint, "reason": str(exc)},
            )
            result: RequestResponse[Any] = RequestResponse.fail(
                ErrorDetail(
                    title="Network Error",
                    type=ErrorType.NETWORK_ERROR,
                    info=ErrorInfo(cause=str(exc), raw_error=exc),
                )
            )
        else:
            body = _decode_body(response)
            if response.is_success:
                result = RequestResponse.ok(body, response.status_code, raw=response)
            else:
                _logger.debug(
                    "request returned an error status",
                    extra={"event": "transport.http_error", "method": method, "endpoint": endpoint, "status": response.status_code},
                )
                result = RequestResponse.fail(
                    ErrorDetail(info=ErrorInfo(http_code=response.status_code, data=body, raw_response=response)),
                    raw=response,
                )

        await self._check_messages(result)
        await self._check_errors(result)
        return result

    async def call(self, cmd: str, **params: Any) -> RequestResponse[Any]:
        """Invoke a whitelisted server method through the desk ``cmd`` route."""
        return await self.request("/", "POST", json={"cmd": cmd, **params})

    async def aclose(self) -> None:
        await self._client.aclose()

    # ---------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------

    async def _check_messages(self, result: RequestResponse[Any]) -> None:
        body = result.data
        if not isinstance(body, dict) or "_server_messages" not in body:
            return
        decoded = get_json(body["_server_messages"])
        if not isinstance(decoded, list):
            return
        messages = [get_json(message) for message in decoded]
        body["_server_messages"] = messages
        if result.error is not None:
            result.error.info.server_messages = messages
        for message in messages:
            await self._messages.publish(message)

    async def _check_errors(self, result: RequestResponse[Any]) -> None:
        if result.success or result.error is None:
            return
        body = result.data if isinstance(result.data, dict) else {}

        if body.get("session_expired"):
            _logger.info("backend reported an expired session", extra={"event": "session.expired"})
            await self._session_status.publish(Session.logged_out(session_expired=True))

        exc = str(body.get("exc") or "")
        if "PermissionError" in exc:
            result.error.type = ErrorType.PERMISSION_ERROR
        elif "AuthenticationError" in exc:
            result.error.type = ErrorType.AUTHENTICATION_ERROR

        messages = body.get("_server_messages")
        if isinstance(messages, list) and messages:
            first = messages[0]
            if isinstance(first, dict) and first.get("message") == "Invalid Request":
                _logger.error("Invalid Request. Best to relogin", extra={"event": "session.invalid_request"})
                if self.on_invalid_request is not None:
                    await self.on_invalid_request()


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _stringify(values: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Form and query values as Frappe expects them: scalars as text, the rest as JSON."""
    if values is None:
        return None
    result: dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, bool):
            result[key] = int(value)
        elif isinstance(value, (str, int, float)):
            result[key] = value
        else:
            result[key] = dumps(value)
    return result


__all__ = ["CLIENT_ID_HEADER", "DEFAULT_HEADERS", "HttpTransport"]
