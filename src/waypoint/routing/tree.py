"""Live navigation tree stored as an arena.

Every node lives in one list and refers to its parent and children by
index, so replacing a subtree (``graft``) is a handful of index rewrites
instead of pointer surgery. Nodes that a graft detaches stay in the arena
unreachable; they are never reused.

Usage::

    tree = load_tree(source)
    node = tree.find_route_by_path("studios/s1")
    tree.route(node).key  # "root.studios.studio"
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from waypoint.errors import NavigationSetupError
from waypoint.parsing.parser import parse_config
from waypoint.parsing.types import Config, Parameter, RouteConfig, ValueKind
from waypoint.routing.route import Match, Route

NodeId = int


@dataclass(slots=True)
class _Node:
    """An arena slot. Mutable during tree surgery only."""

    route: Route
    parent: NodeId | None
    # Child slot name -> node, in declaration order
    children: dict[str, NodeId] = field(default_factory=dict)


class RouteTree:
    """A mutable tree of ``Route`` nodes addressed by ``NodeId``.

    Child slots are named (the last component of the child's local key),
    which is how dotted keys are resolved and how grafts decide which
    routes collide.
    """

    __slots__ = ("_nodes", "_root")

    def __init__(self, root: Route) -> None:
        self._nodes: list[_Node] = [_Node(route=root, parent=None)]
        self._root: NodeId = 0

    # -- Construction --

    def add(self, route: Route, parent: NodeId, name: str | None = None) -> NodeId:
        """Add ``route`` as the last child of ``parent``.

        ``name`` is the child slot name and defaults to the last component
        of the route key.
        """
        slot = name or route.name
        siblings = self._nodes[parent].children
        if slot in siblings:
            msg = f'route "{self.route(parent).key}" already has a child named "{slot}".'
            raise NavigationSetupError(msg)
        node_id = len(self._nodes)
        self._nodes.append(_Node(route=route, parent=parent))
        siblings[slot] = node_id
        return node_id

    @classmethod
    def from_config(cls, config: Config) -> RouteTree:
        """Wire a parsed navigation document into a live tree."""
        tree = cls(route_from_config(config.root))

        def add_children(source: RouteConfig, parent: NodeId) -> None:
            for child in source.children:
                add_children(child, tree.add(route_from_config(child), parent, child.name))

        add_children(config.root, tree.root)
        return tree

    # -- Navigation --

    @property
    def root(self) -> NodeId:
        return self._root

    @property
    def root_route(self) -> Route:
        return self._nodes[self._root].route

    def route(self, node: NodeId) -> Route:
        return self._nodes[node].route

    def parent(self, node: NodeId) -> NodeId | None:
        return self._nodes[node].parent

    def children(self, node: NodeId) -> list[NodeId]:
        return list(self._nodes[node].children.values())

    def child(self, node: NodeId, name: str) -> NodeId | None:
        return self._nodes[node].children.get(name)

    def child_names(self, node: NodeId) -> list[str]:
        return list(self._nodes[node].children)

    def branch(self, node: NodeId) -> list[Route]:
        """Routes from the root down to ``node``, both included."""
        routes: list[Route] = []
        current: NodeId | None = node
        while current is not None:
            routes.append(self._nodes[current].route)
            current = self._nodes[current].parent
        routes.reverse()
        return routes

    def walk(self, node: NodeId | None = None) -> Iterator[NodeId]:
        """Yield ``node`` (default: the root) and its descendants, depth first."""
        start = self._root if node is None else node
        yield start
        for child in self._nodes[start].children.values():
            yield from self.walk(child)

    def resolve_key(self, key: str) -> NodeId | None:
        """Find a node by walking the dotted ``key`` from the root.

        The root's own key prefix is optional: with a root keyed ``root``,
        ``root.studios`` and ``studios`` both name the same node.
        """
        root_key = self.root_route.key
        if key == root_key:
            return self._root
        remainder = key.removeprefix(f"{root_key}.")
        node: NodeId | None = self._root
        for name in remainder.split("."):
            if node is None:
                return None
            node = self.child(node, name)
        return node

    def get(self, key: str) -> Route:
        """Return the route at ``key``. Raises ``KeyError`` if missing."""
        node = self.resolve_key(key)
        if node is None:
            raise KeyError(key)
        return self._nodes[node].route

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.resolve_key(key) is not None

    def __len__(self) -> int:
        return sum(1 for _ in self.walk())

    # -- Resolution --

    def find_route_by_path(self, path: str) -> NodeId | None:
        """Resolve a URL path (no query) to the node that should handle it.

        Returns ``None`` when nothing matches. Wildcard routes act as
        catch-alls for unknown deeper paths, but a more specific descendant
        always wins when one matches.
        """
        return self._find(self._root, path, None)

    def _find_in_children(self, node: NodeId, path: str, last_match: NodeId | None) -> NodeId | None:
        for child in self._nodes[node].children.values():
            found = self._find(child, path, last_match)
            if found is not None:
                return found
        return None

    def _find(self, node: NodeId, path: str, last_match: NodeId | None) -> NodeId | None:
        route = self._nodes[node].route
        match = route.match(path)
        if match is Match.EXACT:
            if not route.is_wildcard:
                return node
            found = self._find_in_children(node, path, node)
            return node if found is None else found
        if match is Match.SUBROUTE:
            found = self._find_in_children(node, path, last_match)
            if found is not None:
                return found
            return node if route.is_wildcard else last_match
        return None

    # -- Modules --

    def graft(self, subtree: RouteTree, anchor_key: str) -> None:
        """Replace the node at ``anchor_key`` with the root of ``subtree``.

        Children of the old anchor that the incoming root does not define
        are moved under it. When both define a child slot and either side
        is a wildcard, the merge recurses into it, so wildcard extension
        points accumulate routes across grafts.

        Raises ``NavigationSetupError`` when the anchor does not exist, or
        when the incoming top-level routes would shadow a non-wildcard path
        or child slot of the anchor. Validation happens before any change,
        so a failed graft leaves the tree untouched.
        """
        anchor = self.resolve_key(anchor_key)
        if anchor is None:
            msg = f'cannot update navigation tree at route with key "{anchor_key}" because the key doesn\'t exist.'
            raise NavigationSetupError(msg)
        self._check_graft(subtree, anchor, anchor_key)

        new_root = self._import(subtree)
        parent = self._nodes[anchor].parent
        if parent is None:
            self._root = new_root
        else:
            slots = self._nodes[parent].children
            slot = next(name for name, child in slots.items() if child == anchor)
            slots[slot] = new_root
            self._nodes[new_root].parent = parent
        self._merge_children(anchor, new_root)

    def _check_graft(self, subtree: RouteTree, anchor: NodeId, anchor_key: str) -> None:
        existing = self._nodes[anchor].children
        fixed_paths = {
            self.route(child).path for child in existing.values() if not self.route(child).is_wildcard
        }
        for name, incoming in subtree._nodes[subtree.root].children.items():
            path = subtree.route(incoming).path
            if path in fixed_paths:
                msg = (
                    f'Error while merging modular route with key "{anchor_key}". Path "{path}" is '
                    "already defined in parent. Only paths with wildcard can be replaced."
                )
                raise NavigationSetupError(msg)
            current = existing.get(name)
            if current is not None and not self.route(current).is_wildcard:
                msg = (
                    f'Error while merging modular route, key "{name}" under "{anchor_key}" is '
                    "already defined with a non-wildcard path."
                )
                raise NavigationSetupError(msg)

    def _import(self, subtree: RouteTree) -> NodeId:
        """Copy the reachable nodes of ``subtree`` into this arena."""
        offset: dict[NodeId, NodeId] = {}
        for old_id in subtree.walk():
            offset[old_id] = len(self._nodes) + len(offset)
        imported: list[_Node] = []
        for old_id in subtree.walk():
            source = subtree._nodes[old_id]
            imported.append(
                _Node(
                    route=source.route,
                    parent=None if source.parent is None else offset[source.parent],
                    children={name: offset[child] for name, child in source.children.items()},
                )
            )
        self._nodes.extend(imported)
        return offset[subtree.root]

    def _merge_children(self, source: NodeId, target: NodeId) -> None:
        target_slots = self._nodes[target].children
        for name, child in self._nodes[source].children.items():
            existing = target_slots.get(name)
            if existing is None:
                target_slots[name] = child
                self._nodes[child].parent = target
            elif self.route(child).is_wildcard or self.route(existing).is_wildcard:
                self._merge_children(child, existing)


def route_from_config(config: RouteConfig) -> Route:
    """Build the live ``Route`` for one parsed node.

    The path template drops interior ``*`` segments inherited from
    wildcard ancestors; the metadata lists path variables, then query
    parameters.
    """
    segments = [s if isinstance(s, str) else f"{{{s.name}}}" for s in config.path]
    if segments:
        segments = [s for s in segments[:-1] if s != "*"] + [segments[-1]]
    metadata: dict[str, ValueKind] = {}
    for segment in config.path:
        if isinstance(segment, Parameter):
            metadata[segment.name] = segment.kind
    for param in config.query:
        metadata[param.name] = param.kind
    return Route(key=config.global_key, path="/" + "/".join(segments), param_metadata=metadata)


def load_tree(source: str) -> RouteTree:
    """Parse navigation DSL text straight into a live tree."""
    return RouteTree.from_config(parse_config(source))
