"""Declarative navigation clauses.

A ``NavigationContext`` turns route changes into exactly one handler call:

1. ``when(key)``: the current route is exactly ``key``;
2. ``when_subroute_of(key)``: the current route is ``key`` or below it.
   The deepest matching key wins, and the handler receives the route of
   that key rather than the current one;
3. ``otherwise``: nothing above matched;
4. ``when_not_found``: the URL matched no route at all.

Selected handlers go through a queue drained by one consumer loop, so a
handler never starts while the previous one is still running.

Usage::

    context = (
        NavigationContext(navigator)
        .when("root", show_home)
        .when_subroute_of("root.studios", show_studios)
        .otherwise(show_fallback)
        .when_not_found(show_404)
    )
    async with context:
        ...
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import anyio

from waypoint._internal.invoke import invoke
from waypoint._internal.ordered_list import OrderedMatchList, compare_route_keys_desc
from waypoint.navigator import Navigator, NotFoundListener
from waypoint.routing.route import Route

logger = logging.getLogger("waypoint.clauses")

type RouteHandler = Callable[[Route, dict[str, Any]], Awaitable[None] | None]
type FallbackHandler = Callable[[], Awaitable[None] | None]


@dataclass(frozen=True, slots=True)
class SubrouteEntry:
    """A ``when_subroute_of`` registration."""

    key: str
    handler: RouteHandler


def _keys(key: str | Sequence[str]) -> list[str]:
    return [key] if isinstance(key, str) else list(key)


class NavigationContext:
    """Chainable clause registry bound to one navigator."""

    __slots__ = (
        "_consumer_done",
        "_fallback",
        "_navigator",
        "_not_found",
        "_queue",
        "_stop",
        "_subroutes",
        "_when",
    )

    def __init__(self, navigator: Navigator) -> None:
        self._navigator = navigator
        self._when: dict[str, RouteHandler] = {}
        self._subroutes: OrderedMatchList[SubrouteEntry] = OrderedMatchList(compare_route_keys_desc)
        self._fallback: FallbackHandler | None = None
        self._not_found: NotFoundListener | None = None
        self._queue: deque[Callable[[], Awaitable[Any]]] = deque()
        self._consumer_done: anyio.Event | None = None
        self._stop: list[Callable[[], None]] = []

    # -- Registration --

    def when(self, key: str | Sequence[str], handler: RouteHandler) -> NavigationContext:
        for k in _keys(key):
            self._when[k] = handler
        return self

    def when_subroute_of(self, key: str | Sequence[str], handler: RouteHandler) -> NavigationContext:
        for k in _keys(key):
            self._subroutes.push(SubrouteEntry(k, handler))
        return self

    def otherwise(self, handler: FallbackHandler) -> NavigationContext:
        if self._fallback is not None:
            logger.warning('"otherwise" has been set more than once. Only the last handler will take effect.')
        self._fallback = handler
        return self

    def when_not_found(self, handler: NotFoundListener) -> NavigationContext:
        if self._not_found is not None:
            logger.warning('"when_not_found" has been set more than once. Only the last handler will take effect.')
        self._not_found = handler
        return self

    # -- Lifecycle --

    async def start(self) -> None:
        """Start listening. The current route, if any, is handled right away."""
        if self._not_found is not None:
            self._stop.append(self._navigator.on_not_found(self._not_found))
        self._stop.append(await self._navigator.on_route_change_async(self._on_route_change))

    def stop(self) -> None:
        while self._stop:
            self._stop.pop()()

    async def __aenter__(self) -> NavigationContext:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.stop()

    # -- Dispatch --

    def _select(self, route: Route, params: dict[str, Any]) -> Callable[[], Awaitable[Any]] | None:
        handler = self._when.get(route.key)
        if handler is not None:
            return lambda: invoke(handler, route, params)
        entry = self._subroutes.find(lambda e: route.is_subroute_of(e.key))
        if entry is not None:
            anchor = self._navigator.tree.get(entry.key) if entry.key in self._navigator.tree else route
            return lambda: invoke(entry.handler, anchor, params)
        if self._fallback is not None:
            fallback = self._fallback
            return lambda: invoke(fallback)
        return None

    async def _on_route_change(self, route: Route, params: dict[str, Any]) -> None:
        selected = self._select(route, params)
        if selected is not None:
            self._queue.append(selected)
        await self._consume()

    async def _consume(self) -> None:
        if self._consumer_done is not None:
            await self._consumer_done.wait()
            return
        self._consumer_done = anyio.Event()
        try:
            while self._queue:
                await self._queue.popleft()()
        finally:
            self._consumer_done.set()
            self._consumer_done = None
