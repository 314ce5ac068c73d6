# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Request coalescing for cache loaders.

:class:`InFlight` maps a key to the single pending fetch for that key. The
first caller registers the entry synchronously, before its first suspension
point, and runs the fetch; every caller arriving while it is pending waits on
the same :class:`anyio.Event` and receives the same outcome. The entry is
dropped as soon as the fetch settles, so a failed load can be retried by the
next caller.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import anyio


T = TypeVar("T")


@dataclass(slots=True)
class _Pending(Generic[T]):
    done: anyio.Event = field(default_factory=anyio.Event)
    result: T | None = None
    error: Exception | None = None
    cancelled: bool = False


class InFlight(Generic[T]):
    """Share one running coroutine between concurrent callers of the same key."""

    def __init__(self) -> None:
        self._pending: dict[Hashable, _Pending[T]] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    async def run(self, key: Hashable, fetch: Callable[[], Awaitable[T]]) -> T:
        while (pending := self._pending.get(key)) is not None:
            await pending.done.wait()
            if not pending.cancelled:
                if pending.error is not None:
                    raise pending.error
                return pending.result  # type: ignore[return-value]
            # The leading caller was cancelled; start over.

        pending = _Pending()
        self._pending[key] = pending
        try:
            pending.result = await fetch()
            return pending.result
        except Exception as exc:
            pending.error = exc
            raise
        except BaseException:
            pending.cancelled = True
            raise
        finally:
            if self._pending.get(key) is pending:
                del self._pending[key]
            pending.done.set()

    def forget(self, key: Hashable | None = None) -> None:
        """Detach pending entries so the next caller starts a fresh fetch.

        Callers already waiting still receive the detached fetch's outcome.
        """
        if key is None:
            self._pending.clear()
        else:
            self._pending.pop(key, None)


__all__ = ["InFlight"]
