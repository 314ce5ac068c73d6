# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Client-side document events.

Handlers are registered per doctype and event name and run whenever the
document cache triggers that event (a field change triggers the event named
after the field, saving triggers ``"validate"``).

DocType bundles may ship "Renovation Script" entries. Their stored source is
never evaluated; instead applications register a loader under the script's
name with :meth:`ScriptManager.register_script`, and the loader is invoked
with the client when the bundle arrives.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from .controller import RenovationController
from .utils.coro import maybe_await_with_args

if TYPE_CHECKING:
    from .core import Renovation
    from .model.document import Document


EventHandler = Callable[["Renovation", "Document"], Any]
ScriptLoader = Callable[["Renovation"], Any]


class ScriptManager(RenovationController):
    def __init__(self, core: "Renovation") -> None:
        super().__init__(core)
        self._events: defaultdict[str, defaultdict[str, list[EventHandler]]] = defaultdict(lambda: defaultdict(list))
        self._loaders: dict[str, ScriptLoader] = {}

    @property
    def events(self) -> Mapping[str, Mapping[str, list[EventHandler]]]:
        return self._events

    def add_event(self, doctype: str, event: str, handler: EventHandler) -> None:
        self._events[doctype][event].append(handler)

    def add_events(self, doctype: str, handlers: Mapping[str, EventHandler]) -> None:
        for event, handler in handlers.items():
            if callable(handler):
                self.add_event(doctype, event, handler)

    def register_script(self, name: str, loader: ScriptLoader) -> None:
        self._loaders[name] = loader

    async def add_script(self, doctype: str, name: str, code: str | None = None) -> bool:
        """Run the loader registered under ``name``; ``False`` when there is none."""
        loader = self._loaders.get(name)
        if loader is None:
            self.logger.debug(
                "no loader registered for script",
                extra={"event": "scripts.unregistered", "doctype": doctype, "script": name},
            )
            return False
        try:
            await maybe_await_with_args(loader, self.core)
        except Exception:
            self.logger.exception(
                "Renovation Script Error", extra={"event": "scripts.load_failed", "doctype": doctype, "script": name}
            )
            return False
        return True

    async def trigger(self, doctype: str, docname: str, event: str) -> None:
        """Run the handlers for ``event`` against the cached document."""
        handlers = self._events.get(doctype, {}).get(event)
        if not handlers:
            return
        doc = self.core.model.get_from_locals(doctype, docname)
        if doc is None:
            return
        for handler in list(handlers):
            await maybe_await_with_args(handler, self.core, doc)


__all__ = ["EventHandler", "ScriptLoader", "ScriptManager"]
