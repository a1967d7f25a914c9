"""The navigator — owns the live tree and the current route.

Every navigation event (popstate, ``go()``, an explicit ``update_route()``)
goes through one FIFO queue drained by a single consumer, so the listeners
of event N+1 never start while those of event N are still running.

Per event:

1. Resolve the URL path against the tree.
2. Not found: log, call the not-found listeners, keep the current route.
3. Found: store route and deserialized parameters, run every async
   listener concurrently in an anyio task group, and only once all of them
   have finished, run the sync listeners in registration order.
   A failing async listener does not cancel its siblings; once they have
   all finished, its exception propagates and the sync listeners are
   skipped.

Nothing here cancels in-flight listener work; a later event simply waits
for the earlier one to drain.
"""

import logging
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, unquote, urlsplit

import anyio

from waypoint._internal.invoke import invoke, invoke_collecting
from waypoint._internal.paths import split_path
from waypoint.config import NavigatorConfig
from waypoint.errors import NavigationError
from waypoint.history import History, MemoryHistory
from waypoint.parsing.types import ValueKind
from waypoint.routing.params import deserialize_parameter, split_array_segment
from waypoint.routing.route import PLACEHOLDER, Match, Route
from waypoint.routing.tree import NodeId, RouteTree

logger = logging.getLogger("waypoint.navigator")

type RouteChangeListener = Callable[[Route, dict[str, Any]], None]
type AsyncRouteChangeListener = Callable[[Route, dict[str, Any]], Awaitable[None] | None]
type NotFoundListener = Callable[[str], Awaitable[None] | None]

# True inside listeners run by the dispatch consumer
_dispatching: ContextVar[bool] = ContextVar("waypoint_dispatching", default=False)


@dataclass(slots=True)
class _NavigationEvent:
    url: str
    # Queued from inside a listener; no caller waits for it
    detached: bool = False
    dispatched: bool = False
    error: Exception | None = None
    wakeup: anyio.Event = field(default_factory=anyio.Event)


def _unsubscriber(listeners: list[Any], listener: Any) -> Callable[[], None]:
    def remove() -> None:
        if listener in listeners:
            listeners.remove(listener)

    return remove


class Navigator:
    """Coordinates URL changes, the route tree and navigation listeners.

    Construct it through ``waypoint.context.open_navigator`` in
    applications; that scope starts it, publishes it and closes it.

    Usage::

        navigator = Navigator(tree, history=MemoryHistory(url))
        await navigator.start()
        navigator.on_route_change(lambda route, params: print(route.key))
        await navigator.go("root.studios", {"limit": 10})
    """

    __slots__ = (
        "_async_route_change_listeners",
        "_draining",
        "_not_found_listeners",
        "_queue",
        "_route_change_listeners",
        "_stop_listening",
        "config",
        "current_node",
        "current_params",
        "history",
        "tree",
    )

    def __init__(
        self,
        tree: RouteTree,
        *,
        history: History | None = None,
        config: NavigatorConfig | None = None,
    ) -> None:
        self.tree = tree
        self.history: History = history if history is not None else MemoryHistory()
        self.config = config or NavigatorConfig()
        self.current_node: NodeId | None = None
        self.current_params: dict[str, Any] = {}
        self._route_change_listeners: list[RouteChangeListener] = []
        self._async_route_change_listeners: list[AsyncRouteChangeListener] = []
        self._not_found_listeners: list[NotFoundListener] = []
        self._queue: deque[_NavigationEvent] = deque()
        self._draining = False
        self._stop_listening: Callable[[], None] | None = None

    # -- State --

    @property
    def use_hash(self) -> bool:
        return self.config.use_hash

    @property
    def root(self) -> Route:
        return self.tree.root_route

    @property
    def current_route(self) -> Route | None:
        if self.current_node is None:
            return None
        return self.tree.route(self.current_node)

    def branch(self) -> list[Route]:
        """Routes from the root down to the current route."""
        if self.current_node is None:
            return []
        return self.tree.branch(self.current_node)

    # -- Lifecycle --

    async def start(self) -> None:
        """Subscribe to popstate and resolve the current URL."""
        if self._stop_listening is None:
            self._stop_listening = self.history.add_popstate_listener(self.update_route)
        await self.update_route()

    def close(self) -> None:
        """Stop reacting to popstate. Listeners and state are kept."""
        if self._stop_listening is not None:
            self._stop_listening()
            self._stop_listening = None

    # -- URLs --

    def get_path(self, url: str | None = None) -> str:
        """Return the route path of ``url`` (default: the current URL).

        ``https://site.com/#/pt/ai`` (hash mode) and ``https://site.com/pt/ai``
        both give ``pt/ai``. The query string is never part of the path.
        """
        parts = urlsplit(self.history.url if url is None else url)
        if self.use_hash:
            return parts.fragment.removeprefix("/").split("?", 1)[0]
        return parts.path.removeprefix("/")

    def _query_string(self, url: str) -> str:
        parts = urlsplit(url)
        if self.use_hash:
            _, _, query = parts.fragment.partition("?")
            return query
        return parts.query

    def _resolve(self, route: Route | str) -> Route:
        return self.tree.get(route) if isinstance(route, str) else route

    def link(
        self,
        route: Route | str,
        params: Mapping[str, Any] | None = None,
        *,
        merge_search_parameters: bool | None = None,
    ) -> str:
        """Relative URL to ``route`` (a ``Route`` or a key).

        Path variables missing from ``params`` are taken from the current
        parameters.
        """
        if merge_search_parameters is None:
            merge_search_parameters = self.config.link_merges_search_parameters
        return self._resolve(route).link(
            params,
            current_params=self.current_params,
            merge_search_parameters=merge_search_parameters,
            use_hash=self.use_hash,
            base_path=urlsplit(self.history.url).path or "/",
        )

    async def go(
        self,
        route: Route | str,
        params: Mapping[str, Any] | None = None,
        *,
        merge_search_parameters: bool | None = None,
        replace: bool | None = None,
        prevent_default: bool = False,
    ) -> None:
        """Navigate to ``route`` through the history API.

        ``replace`` defaults to whether ``route`` is already active, so a
        parameter-only change rewrites the current entry instead of adding
        one. With ``prevent_default`` the URL changes but no navigation
        event fires until the next ``update_route()``.
        """
        target = self._resolve(route)
        if merge_search_parameters is None:
            merge_search_parameters = self.config.go_merges_search_parameters
        if replace is None:
            replace = self.is_active(target)
        url = self.link(target, params, merge_search_parameters=merge_search_parameters)
        if replace:
            self.history.replace_state(url)
        else:
            self.history.push_state(url)
        if not prevent_default:
            await self.update_route()

    def is_active(self, route: Route | str) -> bool:
        return self._resolve(route).match(self.get_path()) is Match.EXACT

    def is_subroute_active(self, route: Route | str) -> bool:
        return self._resolve(route).match(self.get_path()) in (Match.EXACT, Match.SUBROUTE)

    # -- Dispatch --

    async def update_route(self) -> None:
        """Queue a navigation event for the current URL and wait for it.

        Called from inside a listener, the event is queued behind the one
        being dispatched and this returns immediately; waiting there would
        deadlock the consumer. A listener failure in such a queued event
        is logged on ``waypoint.navigator``.

        Exceptions raised by listeners propagate to the caller whose event
        ran them. If the caller draining the queue is cancelled, the next
        waiting caller takes the queue over.
        """
        event = _NavigationEvent(self.history.url, detached=self._draining and _dispatching.get())
        self._queue.append(event)
        if event.detached:
            return
        try:
            while not event.dispatched:
                if self._draining:
                    await event.wakeup.wait()
                    event.wakeup = anyio.Event()
                else:
                    await self._drain()
        finally:
            # Abandoned by a cancelled caller
            if not event.dispatched:
                event.detached = True
        if event.error is not None:
            raise event.error

    async def _drain(self) -> None:
        self._draining = True
        try:
            while self._queue:
                event = self._queue.popleft()
                token = _dispatching.set(True)
                try:
                    await self._dispatch(event.url)
                except Exception as exc:
                    if event.detached:
                        logger.exception(
                            "%s", NavigationError(f"listener failed for queued navigation ({event.url})")
                        )
                    else:
                        event.error = exc
                finally:
                    _dispatching.reset(token)
                    event.dispatched = True
                    event.wakeup.set()
        finally:
            self._draining = False
            # Left over after a cancelled drain
            waiting = next((e for e in self._queue if not e.detached), None)
            if waiting is not None:
                waiting.wakeup.set()

    async def _dispatch(self, url: str) -> None:
        path = self.get_path(url)
        node = self.tree.find_route_by_path(path)
        if node is None:
            await self._handle_not_found(path)
            return
        route = self.tree.route(node)
        self.current_node = node
        self.current_params = {**self._extract_query_params(url, route), **self._extract_path_params(url, route)}
        params = self.current_params

        errors: list[Exception] = []
        async with anyio.create_task_group() as tg:
            for async_listener in list(self._async_route_change_listeners):
                tg.start_soon(invoke_collecting, errors, async_listener, route, params)
        if errors:
            raise errors[0]

        for listener in list(self._route_change_listeners):
            listener(route, params)

    async def _handle_not_found(self, path: str) -> None:
        if self.config.log_not_found:
            logger.error("%s", NavigationError(f"route not registered ({path})"))
        for listener in list(self._not_found_listeners):
            await invoke(listener, path)

    # -- Parameter extraction --

    def _extract_query_params(self, url: str, route: Route) -> dict[str, Any]:
        result: dict[str, Any] = {}
        parsed = parse_qs(self._query_string(url), keep_blank_values=True)
        for name, values in parsed.items():
            kind = route.param_metadata.get(name)
            if kind is not None:
                result[name] = deserialize_parameter(name, values, kind, route.key)
        return result

    def _extract_path_params(self, url: str, route: Route) -> dict[str, Any]:
        result: dict[str, Any] = {}
        route_parts = split_path(route.path)
        url_parts = split_path(self.get_path(url))
        for index, part in enumerate(route_parts):
            match = PLACEHOLDER.search(part)
            if match is None or index >= len(url_parts):
                continue
            name = match.group(1)
            raw = unquote(url_parts[index])
            kind = route.param_metadata.get(name, ValueKind.STRING)
            values = split_array_segment(raw) if kind.is_array else [raw]
            result[name] = deserialize_parameter(name, values, kind, route.key)
        return result

    # -- Listeners --

    def on_route_change(self, listener: RouteChangeListener) -> Callable[[], None]:
        """Register a sync listener; returns a function that removes it.

        The listener is called right away if there is a current route.
        Sync listeners run after every async listener of the same event.
        """
        self._route_change_listeners.append(listener)
        if self.current_route is not None:
            listener(self.current_route, self.current_params)
        return _unsubscriber(self._route_change_listeners, listener)

    async def on_route_change_async(self, listener: AsyncRouteChangeListener) -> Callable[[], None]:
        """Register a listener that may be async; returns its remover.

        If there is a current route the listener is invoked once right away
        and awaited. Async listeners of one event run concurrently.
        """
        self._async_route_change_listeners.append(listener)
        if self.current_route is not None:
            await invoke(listener, self.current_route, self.current_params)
        return _unsubscriber(self._async_route_change_listeners, listener)

    def on_not_found(self, listener: NotFoundListener) -> Callable[[], None]:
        """Register a listener for paths that match no route."""
        self._not_found_listeners.append(listener)
        return _unsubscriber(self._not_found_listeners, listener)

    # -- Modules --

    async def update_navigation_tree(self, subtree: RouteTree, key: str) -> None:
        """Graft ``subtree`` at ``key`` and re-resolve the current URL.

        Raises ``NavigationSetupError`` on collisions; see ``RouteTree.graft``.
        """
        self.tree.graft(subtree, key)
        await self.update_route()
