# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""A minimal observable value.

:class:`Subject` keeps the latest published value and fans every new value
out to its subscribers, in subscription order. Subscribers may be plain
callables or coroutine functions; :meth:`Subject.publish` awaits each one
before moving to the next, so a publish completes only after every subscriber
has seen the value.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from .coro import maybe_await_with_args
from .logger import get_logger


T = TypeVar("T")
Subscriber = Callable[[T], "Awaitable[None] | None"]

_logger = get_logger("renovation.observable")


class Subject(Generic[T]):
    def __init__(self, initial: T | None = None, *, name: str = "subject") -> None:
        self._value = initial
        self._name = name
        self._subscribers: list[Subscriber[T]] = []

    @property
    def value(self) -> T | None:
        return self._value

    def subscribe(self, callback: Subscriber[T]) -> Callable[[], None]:
        """Register ``callback`` and return a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def set(self, value: T) -> None:
        """Replace the current value without notifying subscribers."""
        self._value = value

    async def publish(self, value: T) -> None:
        self._value = value
        await self.notify(value)

    async def notify(self, value: T) -> None:
        for callback in list(self._subscribers):
            try:
                await maybe_await_with_args(callback, value)
            except Exception:
                _logger.exception(
                    "subscriber raised while handling published value",
                    extra={"event": f"{self._name}.subscriber_error"},
                )


__all__ = ["Subject", "Subscriber"]
