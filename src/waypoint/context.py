"""Navigator scope via ContextVar.

Provides:
- ``open_navigator``: the owning scope. Builds and starts a navigator,
  publishes it, and closes it on exit.
- ``current_navigator``: the navigator of the active scope.

At most one navigator is active at a time; opening a second scope while
one is open raises ``NavigationSetupError``. Components that need the
navigator should receive it explicitly; ``current_navigator`` is for the
few places that cannot.

Thread safety:
    ``ContextVar`` is task-local under asyncio and trio. Tasks spawned
    inside the scope inherit the navigator.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar

from waypoint.config import NavigatorConfig
from waypoint.errors import NavigationSetupError
from waypoint.history import History
from waypoint.navigator import Navigator
from waypoint.routing.tree import RouteTree

navigator_var: ContextVar[Navigator] = ContextVar("waypoint_navigator")
"""The active navigator. Set by ``open_navigator``."""


def current_navigator() -> Navigator:
    """Return the active navigator.

    Raises ``LookupError`` if called outside an ``open_navigator`` scope.
    """
    return navigator_var.get()


@asynccontextmanager
async def open_navigator(
    tree: RouteTree,
    *,
    history: History | None = None,
    config: NavigatorConfig | None = None,
) -> AsyncIterator[Navigator]:
    """Create, start and publish a navigator for the duration of the block.

    Usage::

        async with open_navigator(load_tree(source), history=history) as navigator:
            await navigator.go("root.studios")
    """
    if navigator_var.get(None) is not None:
        msg = "a navigator is already active in this context. Close it before opening another one."
        raise NavigationSetupError(msg)
    navigator = Navigator(tree, history=history, config=config)
    token = navigator_var.set(navigator)
    try:
        await navigator.start()
        yield navigator
    finally:
        navigator.close()
        navigator_var.reset(token)
