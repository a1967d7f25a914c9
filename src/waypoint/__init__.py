"""Waypoint — a declarative, tree-shaped client-side router.

Describe the route topology once in a small YAML DSL, parse it into a live
route tree, and let the navigator match URLs, (de)serialize typed
parameters and notify listeners in a deterministic order. Independently
built modules can graft their own subtrees onto a running tree.

Basic usage::

    from waypoint import MemoryHistory, load_tree, open_navigator

    tree = load_tree('''
    + root (/):
      + studios (/studios):
        limit: number
        + studio (/{studioId}):
    ''')

    async with open_navigator(tree, history=MemoryHistory()) as navigator:
        navigator.on_route_change(lambda route, params: print(route.key, params))
        await navigator.go("root.studios.studio", {"studioId": "s1"})
"""

__version__ = "0.1.0-dev"
__all__ = [
    "Config",
    "ConfigParser",
    "History",
    "Match",
    "MemoryHistory",
    "NavigationContext",
    "NavigationError",
    "NavigationItem",
    "NavigationSetupError",
    "Navigator",
    "NavigatorConfig",
    "Parameter",
    "ParseError",
    "Route",
    "RouteConfig",
    "RouteTree",
    "ValueKind",
    "WaypointError",
    "current_navigator",
    "load_tree",
    "navigation_list",
    "open_navigator",
    "parse_config",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import waypoint`` fast while providing a clean top-level API.
    """
    if name in ("ConfigParser", "parse_config"):
        from waypoint.parsing import parser as _parser

        return getattr(_parser, name)

    if name in ("Config", "Parameter", "RouteConfig", "ValueKind"):
        from waypoint.parsing import types as _types

        return getattr(_types, name)

    if name in ("Match", "Route"):
        from waypoint.routing import route as _route

        return getattr(_route, name)

    if name in ("RouteTree", "load_tree"):
        from waypoint.routing import tree as _tree

        return getattr(_tree, name)

    if name == "Navigator":
        from waypoint.navigator import Navigator

        return Navigator

    if name == "NavigatorConfig":
        from waypoint.config import NavigatorConfig

        return NavigatorConfig

    if name in ("History", "MemoryHistory"):
        from waypoint import history as _history

        return getattr(_history, name)

    if name in ("current_navigator", "open_navigator"):
        from waypoint import context as _ctx

        return getattr(_ctx, name)

    if name == "NavigationContext":
        from waypoint.clauses import NavigationContext

        return NavigationContext

    if name in ("NavigationItem", "navigation_list"):
        from waypoint import breadcrumbs as _breadcrumbs

        return getattr(_breadcrumbs, name)

    if name in ("NavigationError", "NavigationSetupError", "ParseError", "WaypointError"):
        from waypoint import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
