"""Static route-tree records produced by the configuration parser.

Plain records: no matching or dispatch lives here. The live tree built
from them is ``waypoint.routing.tree.RouteTree``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ValueKind(Enum):
    """Declared kind of a route or query parameter."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING_ARRAY = "string[]"
    NUMBER_ARRAY = "number[]"
    BOOLEAN_ARRAY = "boolean[]"
    OBJECT = "object"

    @property
    def is_array(self) -> bool:
        return self.value.endswith("[]")

    @property
    def item_kind(self) -> ValueKind:
        """Kind of each element for array kinds, the kind itself otherwise."""
        if self.is_array:
            return ValueKind(self.value.removesuffix("[]"))
        return self


@dataclass(frozen=True, slots=True)
class Parameter:
    """A route (path) or query parameter declaration.

    Attributes:
        name: Identifier, unique among the path and query parameters of a route.
        kind: Declared value kind, drives (de)serialization.
        type_hint: Free-form static type for code generators. Defaults to
            the kind's textual form.
        propagate: Query parameters only. A propagated parameter is part of
            the query of every descendant route.
    """

    name: str
    kind: ValueKind
    type_hint: str = ""
    propagate: bool = False

    def __post_init__(self) -> None:
        if not self.type_hint:
            object.__setattr__(self, "type_hint", self.kind.value)


type PathSegment = str | Parameter
"""A literal path segment or a path variable bound to a ``Parameter``."""


@dataclass(slots=True)
class RouteConfig:
    """One node of the parsed navigation tree.

    Attributes:
        name: Last component of the key.
        local_key: Dotted path of ancestor names from the parsing root.
        global_key: Same as ``local_key`` unless the tree is a module, in
            which case it is rooted at the module's link reference.
        path: Full path from the root, ancestors' segments first.
        query: Inherited propagated query parameters, then own ones.
        parent: Back reference, excluded from comparison and repr.
        children: Child routes in declaration order.
    """

    name: str
    local_key: str
    global_key: str
    path: list[PathSegment] = field(default_factory=list)
    query: list[Parameter] = field(default_factory=list)
    parent: RouteConfig | None = field(default=None, compare=False, repr=False)
    children: list[RouteConfig] = field(default_factory=list)

    @property
    def path_parameters(self) -> list[Parameter]:
        return [segment for segment in self.path if isinstance(segment, Parameter)]

    def walk(self) -> list[RouteConfig]:
        """This route and all of its descendants, depth first."""
        routes = [self]
        for child in self.children:
            routes.extend(child.walk())
        return routes


@dataclass(frozen=True, slots=True)
class Config:
    """Result of parsing a navigation document."""

    root: RouteConfig
    is_module: bool = False
