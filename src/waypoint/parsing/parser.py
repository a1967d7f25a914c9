"""Navigation DSL parser.

Turns the YAML navigation document into a validated ``Config``::

    + root (/):
      + studios (/studios):
        propagate search: string
        limit: number
        + studio (/{studioId}):

Route lines start with ``+``; every other key under a route is a parameter
declaration ``(modifier )?name: kind( (typeHint))?``. Only the root may be
a module link (``+ name ~ global.reference (path)``).

Parsing aborts on the first violation with a ``ParseError`` subclass.
"""

import re
from typing import Any

import yaml

from waypoint.errors import (
    DuplicatedRouteError,
    InvalidDocument,
    InvalidKeyType,
    InvalidModifier,
    InvalidParameterFormat,
    InvalidParameterName,
    InvalidParameterType,
    InvalidPath,
    InvalidRouteFormat,
    InvalidRouteLinkLevel,
    InvalidRouteParamName,
    NoRootError,
    QueryClashWithPropagatedParamError,
    QueryClashWithRouteParamError,
)
from waypoint.parsing.types import Config, Parameter, PathSegment, RouteConfig, ValueKind

PARAM_NAME = re.compile(r"^[A-Za-z_]\w*$", re.ASCII)
ROUTE_LINE = re.compile(r"^\+ (\w+) \(([^)]+)\)\s*$", re.ASCII)
MODULE_LINE = re.compile(r"^\+ (\w+) ~ (\w+(?:\.\w+)*) \(([^)]+)\)\s*$", re.ASCII)

_PARAM_KEY = re.compile(r"^(?:(\w+)\s+)?(\w+)$", re.ASCII)
_PARAM_VALUE = re.compile(r"^(\S+)(?:\s+\((.+)\))?$")
_PATH_VARIABLE = re.compile(r"^\{([^}]+)\}$")

PROPAGATE = "propagate"


def _is_route_key(key: str) -> bool:
    return key.startswith("+")


class ConfigParser:
    """Parses one navigation document.

    A parser instance tracks the route keys seen so far, so use a fresh one
    per document (or call ``parse_config``).
    """

    __slots__ = ("_route_keys", "_source")

    def __init__(self, source: str) -> None:
        self._source = source
        self._route_keys: set[str] = set()

    def parse(self) -> Config:
        try:
            document = yaml.safe_load(self._source)
        except yaml.YAMLError as exc:
            raise InvalidDocument(str(exc)) from exc
        if not isinstance(document, dict):
            raise InvalidDocument()
        if len(document) != 1:
            raise NoRootError()
        ((key, value),) = document.items()
        key = str(key)
        return Config(
            root=self._parse_route(key, value, None),
            is_module=MODULE_LINE.match(key) is not None,
        )

    # -- Parameters --

    def _parse_parameter(self, key: str, value: Any) -> Parameter:
        if not isinstance(value, str):
            raise InvalidKeyType(key)
        key_match = _PARAM_KEY.match(key)
        value_match = _PARAM_VALUE.match(value)
        if key_match is None or value_match is None:
            raise InvalidParameterFormat(key, value)
        modifier, name = key_match.groups()
        kind, type_hint = value_match.groups()
        if modifier and modifier != PROPAGATE:
            raise InvalidModifier(modifier, name)
        if not PARAM_NAME.match(name):
            raise InvalidParameterName(name)
        try:
            value_kind = ValueKind(kind)
        except ValueError:
            raise InvalidParameterType(kind, name) from None
        return Parameter(
            name=name,
            kind=value_kind,
            type_hint=type_hint or kind,
            propagate=modifier == PROPAGATE,
        )

    def _parse_parameters(self, body: dict[str, Any]) -> list[Parameter]:
        return [
            self._parse_parameter(key, value)
            for key, value in body.items()
            if not _is_route_key(key)
        ]

    # -- Paths --

    def _parse_path(self, path: str, params: list[Parameter]) -> list[PathSegment]:
        declared = {param.name: param for param in params}
        segments: list[PathSegment] = []
        for part in path.split("/"):
            if not part:
                continue
            match = _PATH_VARIABLE.match(part)
            if match is None:
                segments.append(part)
                continue
            name = match.group(1)
            if not PARAM_NAME.match(name):
                raise InvalidRouteParamName(name)
            segments.append(declared.get(name) or Parameter(name=name, kind=ValueKind.STRING))
        return segments

    def _query_parameters(
        self,
        params: list[Parameter],
        route_key: str,
        own_path: list[PathSegment],
        parent: RouteConfig | None,
    ) -> list[Parameter]:
        inherited = [param for param in parent.query if param.propagate] if parent else []
        inherited_names = {param.name for param in inherited}
        parent_path_names = {param.name for param in parent.path_parameters} if parent else set()
        own_path_names = {s.name for s in own_path if isinstance(s, Parameter)}
        own: list[Parameter] = []
        for param in params:
            if param.name in parent_path_names:
                raise QueryClashWithRouteParamError(param.name, route_key)
            if param.name in inherited_names:
                raise QueryClashWithPropagatedParamError(param.name, route_key)
            if param.name not in own_path_names:
                own.append(param)
        return [*inherited, *own]

    # -- Routes --

    def _route_body(self, key: str, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise InvalidKeyType(key)
        return {str(k): v for k, v in value.items()}

    def _parse_children(self, body: dict[str, Any], route: RouteConfig) -> list[RouteConfig]:
        return [
            self._parse_route(key, value, route)
            for key, value in body.items()
            if _is_route_key(key)
        ]

    def _parse_module(self, match: re.Match[str], value: Any, parent: RouteConfig | None) -> RouteConfig:
        if parent is not None:
            raise InvalidRouteLinkLevel()
        name, reference, path = match.groups()
        if not path.startswith("/"):
            raise InvalidPath(path)
        body = self._route_body(match.string, value)
        params = self._parse_parameters(body)
        own_path = self._parse_path(path, params)
        route = RouteConfig(
            name=name,
            local_key=name,
            global_key=reference,
            path=own_path,
            query=self._query_parameters(params, name, own_path, None),
        )
        route.children = self._parse_children(body, route)
        return route

    def _parse_route(self, key: str, value: Any, parent: RouteConfig | None) -> RouteConfig:
        module = MODULE_LINE.match(key)
        if module is not None:
            return self._parse_module(module, value, parent)
        match = ROUTE_LINE.match(key)
        if match is None:
            raise InvalidRouteFormat(key)
        name, path = match.groups()
        if not path.startswith("/"):
            raise InvalidPath(path)
        local_key = f"{parent.local_key}.{name}" if parent else name
        if local_key in self._route_keys:
            raise DuplicatedRouteError(local_key)
        self._route_keys.add(local_key)
        body = self._route_body(key, value)
        params = self._parse_parameters(body)
        own_path = self._parse_path(path, params)
        route = RouteConfig(
            name=name,
            local_key=local_key,
            global_key=f"{parent.global_key}.{name}" if parent else name,
            path=[*(parent.path if parent else []), *own_path],
            query=self._query_parameters(params, local_key, own_path, parent),
            parent=parent,
        )
        route.children = self._parse_children(body, route)
        return route


def parse_config(source: str) -> Config:
    """Parse a navigation document into a validated ``Config``."""
    return ConfigParser(source).parse()
