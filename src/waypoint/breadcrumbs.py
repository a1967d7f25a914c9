"""Navigation list (breadcrumbs) for the current route."""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Final

from waypoint.navigator import Navigator

OMIT: Final = object()
"""Returned by a label factory to leave a route out of the list."""

_UPPERCASE = re.compile(r"([A-Z])")

type LabelFactory = Callable[[str, dict[str, Any]], str | object | None]


@dataclass(frozen=True, slots=True)
class NavigationItem:
    key: str
    href: str
    label: str


def route_key_to_label(key: str) -> str:
    """``root.studios.studioSettings`` -> ``Studio settings``."""
    last = key.rsplit(".", 1)[-1]
    words = _UPPERCASE.sub(lambda m: f" {m.group(1).lower()}", last)
    return words[:1].upper() + words[1:]


def navigation_list(
    navigator: Navigator,
    label_factory: LabelFactory | None = None,
    should_merge_search_params: Callable[[str], bool] | None = None,
) -> list[NavigationItem]:
    """One item per route from the root to the current route.

    ``label_factory(key, params)`` may return a label, ``None`` for the
    default label, or ``OMIT`` to drop the route. Each ``href`` is built
    without the current query string unless ``should_merge_search_params``
    says otherwise for that key.
    """
    items: list[NavigationItem] = []
    for route in navigator.branch():
        label = label_factory(route.key, navigator.current_params) if label_factory else None
        if label is OMIT:
            continue
        merge = should_merge_search_params(route.key) if should_merge_search_params else False
        items.append(
            NavigationItem(
                key=route.key,
                href=navigator.link(route, {}, merge_search_parameters=merge),
                label=label if isinstance(label, str) else route_key_to_label(route.key),
            )
        )
    return items
