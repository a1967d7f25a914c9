"""Browser history boundary.

The navigator only needs four things from the browser: the current URL,
``pushState``, ``replaceState`` and ``popstate`` notifications. They are
captured by the ``History`` protocol so the navigator can run against a
real browser bridge or against ``MemoryHistory`` in tests and headless
tools.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable
from urllib.parse import urljoin

from waypoint._internal.invoke import invoke

type PopStateListener = Callable[[], Awaitable[None] | None]


@runtime_checkable
class History(Protocol):
    """What the navigator reads from and writes to the browser."""

    @property
    def url(self) -> str: ...

    def push_state(self, url: str) -> None: ...
    def replace_state(self, url: str) -> None: ...
    def add_popstate_listener(self, listener: PopStateListener) -> Callable[[], None]: ...


class MemoryHistory:
    """In-memory session history with browser semantics.

    ``push_state`` drops any forward entries, ``replace_state`` rewrites
    the current entry, and only traversal (``back``, ``forward``, ``go``)
    fires popstate, exactly like ``window.history``. Relative URLs are
    resolved against the current entry.

    Usage::

        history = MemoryHistory("https://example.com/#/studios")
        history.push_state("/#/studios/s1")
        await history.back()  # popstate listeners run here
    """

    __slots__ = ("_entries", "_index", "_listeners")

    def __init__(self, url: str = "http://localhost/") -> None:
        self._entries: list[str] = [url]
        self._index = 0
        self._listeners: list[PopStateListener] = []

    @property
    def url(self) -> str:
        return self._entries[self._index]

    @property
    def length(self) -> int:
        return len(self._entries)

    def push_state(self, url: str) -> None:
        del self._entries[self._index + 1 :]
        self._entries.append(urljoin(self.url, url))
        self._index += 1

    def replace_state(self, url: str) -> None:
        self._entries[self._index] = urljoin(self.url, url)

    def add_popstate_listener(self, listener: PopStateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def go(self, delta: int) -> None:
        """Move ``delta`` entries through the history and fire popstate.

        Out-of-range moves are ignored, as in browsers.
        """
        target = self._index + delta
        if delta == 0 or not 0 <= target < len(self._entries):
            return
        self._index = target
        for listener in list(self._listeners):
            await invoke(listener)

    async def back(self) -> None:
        await self.go(-1)

    async def forward(self) -> None:
        await self.go(1)
