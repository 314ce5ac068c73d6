# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Authentication and the session state machine.

:meth:`AuthController.update_session` is the only writer of the session. It
is idempotent: a candidate whose content (ignoring ``timestamp``,
``home_page`` and ``message``) equals the current session changes nothing
and publishes nothing. Otherwise it clears every per-session cache before
touching anything else, persists the new session, applies the token and
language, and publishes last so subscribers see a fully applied state.

When the backend reports ``session_expired`` the transport publishes a logged
out session carrying the flag. The subscriber installed here turns that into
a proper logout exactly once: it only reacts while the stored session does
not carry the flag yet.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Mapping

import anyio

from ..controller import RenovationController
from ..errors import (
    ErrorDetail,
    ErrorInfo,
    ErrorType,
    NotLoggedInError,
    generic_error,
)
from ..frappe import RENOVATION_CORE
from ..response import RequestResponse
from ..session import SESSION_KEY, Session, SessionStore
from ..utils.inflight import InFlight
from ..utils.json import dumps


GUEST = "Guest"


class AuthController(RenovationController):
    def __init__(self, core, storage: SessionStore) -> None:
        super().__init__(core)
        self._storage = storage
        self._current_user: str | None = None
        self._current_token: str | None = None
        self._roles: list[str] | None = None
        self._roles_inflight: InFlight[RequestResponse[list[str]]] = InFlight()
        self._session_lock = anyio.Lock()
        self._unsubscribe = core.session_status.subscribe(self._on_session_change)

    # ---------------------------------------------------------------------
    # Session state
    # ---------------------------------------------------------------------

    @property
    def storage(self) -> SessionStore:
        return self._storage

    def current(self) -> Session:
        return self.core.session_status.value

    def subscribe(self, callback: Callable[[Session], Any]) -> Callable[[], None]:
        return self.core.session_status.subscribe(callback)

    def get_current_user(self) -> str | None:
        return self._current_user

    def get_current_token(self) -> str | None:
        return f"Token {self._current_token}" if self._current_token else None

    async def update_session(
        self,
        data: Mapping[str, Any] | None = None,
        logged_in: bool = False,
        use_timestamp: float | None = None,
        session_expired: bool = False,
    ) -> Session:
        """Apply a new session state and publish it when it differs from the current one."""
        data = dict(data or {})
        async with self._session_lock:
            session = self._apply_session(data, logged_in, use_timestamp, session_expired)
        if session is None:
            return self.current()

        self.logger.info(
            "session updated",
            extra={"event": "session.updated", "logged_in": session.logged_in, "user": session.current_user},
        )
        await self.core.session_status.notify(session)
        if session.logged_in and self.core.frappe.get_app_version(RENOVATION_CORE):
            await self.core.translate.load_translations()
        return session

    def _apply_session(
        self,
        data: dict[str, Any],
        logged_in: bool,
        use_timestamp: float | None,
        session_expired: bool,
    ) -> Session | None:
        # No awaits in here: the compare and the switch to the new value are one step.
        old = self.current()
        values: dict[str, Any] = {"loggedIn": logged_in, "timestamp": 0, **data}
        if logged_in:
            values["currentUser"] = data.get("user", data.get("currentUser"))
        candidate = Session.model_validate(values)

        if candidate.fingerprint() == old.fingerprint():
            return None

        self.core.clear_cache()

        session = candidate.model_copy(update={"timestamp": use_timestamp or time.time()})
        if session_expired:
            session = session.model_copy(update={"session_expired": old.session_expired})

        stored = session.as_dict()
        self._storage.save(SESSION_KEY, stored)
        self.core.transport.set_cookie(SESSION_KEY, dumps(stored))

        if session.logged_in:
            if session.token:
                self._set_auth_token(session.token)
            if session.lang:
                self.core.translate.set_current_language(session.lang)
            self._current_user = session.current_user
        else:
            self._clear_auth_token()
            self._roles = None
            self._current_user = None

        self.core.session_status.set(session)
        return session

    async def restore_session(self) -> Session:
        """Re-apply the stored session, keeping its timestamp."""
        stored = dict(self._storage.load(SESSION_KEY) or {})
        return await self.update_session(
            stored,
            logged_in=bool(stored.get("loggedIn")),
            use_timestamp=stored.get("timestamp"),
        )

    async def set_session_status_info(self, info: Session | Mapping[str, Any]) -> Session:
        data = info.as_dict() if isinstance(info, Session) else dict(info)
        return await self.update_session(data, logged_in=bool(data.get("loggedIn")))

    async def handle_invalid_request(self) -> None:
        """Drop the local session after the backend rejected the request outright."""
        await self.update_session({}, logged_in=False)

    # ---------------------------------------------------------------------
    # Endpoints
    # ---------------------------------------------------------------------

    async def login(self, email: str, password: str) -> RequestResponse[Session]:
        response = await self.core.request(
            "/api/method/login",
            "POST",
            data={"usr": email, "pwd": password, "use_jwt": self.config.use_jwt},
        )
        await self.update_session(_body(response), logged_in=response.success)
        if response.success:
            return RequestResponse.ok(self.current(), response.http_code or 200, raw=response.raw)
        return RequestResponse.fail(self.handle_error("login", response.error))

    async def pin_login(self, user: str, pin: str) -> RequestResponse[Any]:
        """Quick login with a PIN.

        Raises:
            AppNotInstalledError: ``renovation_core`` is not installed.
        """
        await self.core.frappe.check_app_installed(["pin_login"])
        response = await self.core.call(
            "renovation_core.utils.auth.pin_login", user=user, pin=pin, use_jwt=int(self.config.use_jwt)
        )
        await self.update_session(_body(response), logged_in=response.success)
        if response.success:
            return response
        return RequestResponse.fail(self.handle_error("pin_login", response.error))

    async def logout(self) -> RequestResponse[Any]:
        await self.update_session({}, logged_in=False)
        response = await self.core.request("/api/method/frappe.handler.logout")
        if response.success:
            return response
        return RequestResponse.fail(self.handle_error("logout", response.error))

    async def check_login(self) -> RequestResponse[Session]:
        """Ask the backend who is logged in and align the session with the answer."""
        response = await self.core.request("/api/method/frappe.auth.get_logged_user")
        if not response.success:
            await self.update_session({}, logged_in=False)
            return RequestResponse.fail(self.handle_error("check_login", response.error))

        user = _body(response).get("message")
        current = self.current()
        if current.logged_in and current.current_user == user:
            data = current.as_dict()
        else:
            data = {"user": user}
        await self.update_session(data, logged_in=True)
        return RequestResponse.ok(self.current(), response.http_code or 200, raw=response.raw)

    async def get_current_user_roles(self) -> RequestResponse[list[str]]:
        """Roles of the current user; cached, and shared between concurrent callers."""
        if self._roles is not None:
            return RequestResponse.ok(self._roles)
        return await self._roles_inflight.run("roles", self._fetch_roles)

    async def set_user_language(self, lang: str) -> bool:
        """Persist ``lang`` as the user's language and apply it to the session.

        Raises:
            ValueError: ``lang`` is empty.
            NotLoggedInError: no user is logged in.
        """
        if not lang or not lang.strip():
            raise ValueError("Language cannot be null or an empty string")
        session = self.current()
        if not session.logged_in:
            raise NotLoggedInError("No user logged in. This operation requires a logged in user")

        response = await self.core.model.set_value("User", session.current_user or "", "language", lang)
        if response.success:
            await self.update_session({**session.as_dict(), "lang": lang}, logged_in=True)
        return response.success

    async def change_password(self, old_password: str, new_password: str) -> RequestResponse[bool]:
        """Change the current user's password.

        Raises:
            AppNotInstalledError: ``renovation_core`` is not installed.
            ValueError: either password is empty.
            NotLoggedInError: no user, or Guest, is logged in.
        """
        await self.core.frappe.check_app_installed(["change_password"])
        if not old_password or not new_password:
            raise ValueError("Passwords must be specified")
        if not self._current_user or self._current_user == GUEST:
            raise NotLoggedInError("Need to be signed in to change password")

        response = await self.core.call(
            "renovation_core.utils.auth.change_password", old_password=old_password, new_password=new_password
        )
        if response.success:
            return RequestResponse.ok(True, response.http_code or 200, raw=response.raw)
        failed: RequestResponse[bool] = RequestResponse.fail(self.handle_error("change_password", response.error))
        failed.data = False
        return failed

    def clear_cache(self) -> None:
        self._roles = None
        self._roles_inflight.forget()

    def handle_error(self, error_id: str | None, error: ErrorDetail | None) -> ErrorDetail:
        error = error or ErrorDetail()
        data = error.info.data if isinstance(error.info.data, Mapping) else {}
        message = data.get("message")

        if error_id == "login" and message == "User disabled or missing":
            return error.evolve(
                title="User not found",
                type=ErrorType.NOT_FOUND_ERROR,
                info={"http_code": 404, "cause": message, "suggestion": "Create the new user or enable it if disabled"},
            )
        if error_id == "login" and message == "Incorrect password":
            return error.evolve(
                title="Incorrect Password",
                type=ErrorType.AUTHENTICATION_ERROR,
                info={"cause": message, "suggestion": "Enter the correct credentials"},
            )
        if error_id == "pin_login":
            if message == "Quick Login PIN time expired":
                return error.evolve(
                    title="Quick Login PIN Usage Window Expired",
                    info={"cause": "Quick PIN Usage window expired", "suggestion": "Login with full credentials"},
                )
            return error.evolve(
                title="Incorrect Pin",
                info={"cause": "Wrong PIN is entered", "suggestion": "Re-enter the PIN correctly"},
            )
        if error_id == "change_password":
            if error.type is ErrorType.AUTHENTICATION_ERROR:
                return error.evolve(
                    title="Invalid Password",
                    info={
                        "cause": "Wrong old password",
                        "suggestion": "Check that the current password is correct, or reset the password",
                    },
                )
            messages = error.info.server_messages or []
            if error.http_code == 417 and messages and "Invalid Password" in str(messages[0]):
                return error.evolve(
                    title="Weak Password",
                    info={
                        "cause": "Password does not pass the policy",
                        "suggestion": "Use stronger password, including uppercase, digits and special characters",
                    },
                )
        return generic_error(error)

    # ---------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------

    async def _on_session_change(self, value: Session) -> None:
        if not value.session_expired:
            return
        stored = self._storage.load(SESSION_KEY)
        if not stored or stored.get("session_expired") is not None:
            return
        data = value.as_dict()
        data.pop("session_expired", None)
        await self.update_session(data, logged_in=False, use_timestamp=value.timestamp, session_expired=True)

    async def _fetch_roles(self) -> RequestResponse[list[str]]:
        if not await self.core.frappe.check_app_installed(["get_current_user_roles"], raise_error=False):
            self._roles = None
            error = ErrorDetail(
                title=f"{RENOVATION_CORE} is not installed",
                info=ErrorInfo(cause="User roles are served by renovation_core"),
            )
            return RequestResponse.fail(self.handle_error("get_current_user_roles", error))

        response = await self.core.request("/api/method/renovation_core.utils.client.get_current_user_roles")
        roles = _body(response).get("message")
        if response.success and isinstance(roles, list):
            self._roles = roles
            return RequestResponse.ok(roles, response.http_code or 200, raw=response.raw)
        self._roles = None
        return RequestResponse.fail(self.handle_error("get_current_user_roles", response.error))

    def _set_auth_token(self, token: str) -> None:
        if not self.config.use_jwt:
            self._clear_auth_token()
            return
        self._current_token = token
        # Frappe reserves "Bearer" for OAuth and "Token" for API key pairs.
        self.core.transport.set_auth_token(f"JWTToken {token}")

    def _clear_auth_token(self) -> None:
        self._current_token = None
        self.core.transport.set_auth_token(None)


def _body(response: RequestResponse[Any]) -> dict[str, Any]:
    return response.data if isinstance(response.data, dict) else {}


__all__ = ["AuthController"]
