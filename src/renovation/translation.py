# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Per-language message dictionaries used to translate UI strings."""

from __future__ import annotations

from typing import Any, Mapping

from .controller import RenovationController
from .response import RequestResponse


class TranslationController(RenovationController):
    def __init__(self, core) -> None:
        super().__init__(core)
        self._current_language = "en"
        self._messages: dict[str, dict[str, str]] = {}

    @property
    def current_language(self) -> str:
        return self._current_language

    def set_current_language(self, lang: str | None) -> None:
        self._current_language = lang or "en"

    def set_messages_dict(self, messages: Mapping[str, str], *, lang: str | None = None) -> None:
        self._messages[lang or self._current_language] = dict(messages)

    def extend_dictionary(self, messages: Mapping[str, str] | None, *, lang: str | None = None) -> None:
        if not isinstance(messages, Mapping):
            return
        self._messages.setdefault(lang or self._current_language, {}).update(messages)

    def get_message(self, txt: Any, *, lang: str | None = None) -> Any:
        """Translated ``txt``, or ``txt`` itself when no translation is known."""
        if not txt or not isinstance(txt, str):
            return txt
        return self._messages.get(lang or self._current_language, {}).get(txt, txt)

    async def load_translations(self, lang: str | None = None) -> RequestResponse[dict[str, str]]:
        lang = lang or self._current_language
        response = await self.core.request(
            "/api/method/renovation_core.utils.client.get_lang_dict",
            params={"lang": lang},
        )
        if response.success and isinstance(response.data, dict):
            messages = response.data.get("message") or {}
            self.set_messages_dict(messages, lang=lang)
            return RequestResponse.ok(messages, response.http_code or 200, raw=response.raw)
        return RequestResponse.fail(self.handle_error("load_translations", response.error))


__all__ = ["TranslationController"]
