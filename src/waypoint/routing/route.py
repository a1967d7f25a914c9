"""Live route nodes and path matching."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from waypoint._internal.paths import is_wildcard, split_path, strip_wildcard
from waypoint.parsing.types import ValueKind
from waypoint.routing.params import build_query, serialize_path_value

logger = logging.getLogger("waypoint.routing")

PLACEHOLDER = re.compile(r"\{(\w+)\}", re.ASCII)


class Match(Enum):
    """How a path relates to a route."""

    NO_MATCH = "no-match"
    EXACT = "exact"
    SUBROUTE = "subroute"
    SUPER_ROUTE = "super-route"


@dataclass(frozen=True, slots=True, eq=False)
class Route:
    """A node of the live navigation tree.

    One generic type for every node: what distinguishes routes is their
    key, their path template and the kinds of their parameters. Tree
    structure (parent, children) lives in ``RouteTree``.

    Routes are equal when their keys are equal.

    Attributes:
        key: Unique dotted key, e.g. ``root.studios.studio``.
        path: Path template, variables as ``{name}``, optionally ending
            in ``/*`` for wildcard routes.
        param_metadata: Kind of every path and query parameter.
    """

    key: str
    path: str
    param_metadata: Mapping[str, ValueKind] = field(default_factory=dict)

    def __post_init__(self) -> None:
        metadata = {name: ValueKind(kind) for name, kind in self.param_metadata.items()}
        object.__setattr__(self, "param_metadata", MappingProxyType(metadata))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Route):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    @property
    def name(self) -> str:
        return self.key.rsplit(".", 1)[-1]

    @property
    def is_wildcard(self) -> bool:
        return is_wildcard(self.path)

    @property
    def path_parameters(self) -> list[str]:
        """Names of the path variables, in path order."""
        return PLACEHOLDER.findall(self.path)

    # -- Keys --

    def is_key(self, key: str) -> bool:
        return self.key == key

    def equals(self, route: Route) -> bool:
        return self.key == route.key

    def contains_subroute(self, key: str) -> bool:
        """True if ``key`` is this route's key or the key of a descendant.

        Only the key format is checked, not whether the route exists.
        """
        return self.key == key or key.startswith(f"{self.key}.")

    def is_subroute_of(self, key: str) -> bool:
        """True if this route is the route ``key`` or one of its descendants."""
        return self.key == key or self.key.startswith(f"{key}.")

    # -- Matching --

    def match(self, path: str) -> Match:
        """Classify ``path`` relative to this route.

        Only the path format is considered:

        - ``NO_MATCH``: a literal segment differs;
        - ``EXACT``: the path is this route (wildcards match any deeper
          path as exact);
        - ``SUBROUTE``: the path is a descendant of this route;
        - ``SUPER_ROUTE``: the path is an ancestor of this route.
        """
        that_parts = split_path(path)
        this_parts = split_path(strip_wildcard(self.path))
        for this, that in zip(this_parts, that_parts):
            if not PLACEHOLDER.search(this) and this != that:
                return Match.NO_MATCH
        if not self.is_wildcard and len(this_parts) < len(that_parts):
            return Match.SUBROUTE
        if len(this_parts) > len(that_parts):
            return Match.SUPER_ROUTE
        return Match.EXACT

    # -- Links --

    def link(
        self,
        params: Mapping[str, Any] | None = None,
        *,
        current_params: Mapping[str, Any] | None = None,
        merge_search_parameters: bool = False,
        use_hash: bool = False,
        base_path: str = "/",
    ) -> str:
        """Build a relative URL to this route.

        Path variables are filled from ``params`` merged over
        ``current_params``. Remaining declared parameters go to the query
        string, taken from the same merge when ``merge_search_parameters``
        is set and from ``params`` alone otherwise.

        With ``use_hash`` the route path goes in the fragment of
        ``base_path``: ``/app#/studios?limit=10``.
        """
        own = dict(params or {})
        parameters = {**(current_params or {}), **own}
        used: list[str] = []

        def substitute(match: re.Match[str]) -> str:
            name = match.group(1)
            used.append(name)
            value = parameters.get(name)
            if value is None:
                logger.warning("Missing value for path parameter %r of route %r.", name, self.key)
            return serialize_path_value(value, self.param_metadata.get(name, ValueKind.STRING))

        path = PLACEHOLDER.sub(substitute, strip_wildcard(self.path)) or "/"
        query_names = [name for name in self.param_metadata if name not in used]
        query = build_query(query_names, parameters if merge_search_parameters else own, self.param_metadata)
        if use_hash:
            return f"{base_path}#{path}{query}"
        return f"{path}{query}"
