"""Waypoint exception hierarchy.

Shared across the parser, the route tree and the navigator so every
module raises and catches the same types.

Two regimes:

- ``ParseError`` and its subclasses are configuration-time failures.
  Parsing aborts on the first one; there is no partial tree.
- ``NavigationSetupError`` is the one fatal runtime failure (tree merge
  collisions, scope misuse). Everything else at runtime degrades to a
  logged diagnostic instead of raising.
"""

VALID_KINDS = ("string", "number", "boolean", "string[]", "number[]", "boolean[]", "object")


class WaypointError(Exception):
    """Base for all waypoint-specific errors."""


# -- Configuration time --


class ParseError(WaypointError):
    """Raised when the navigation DSL cannot be turned into a route tree."""


_STRUCTURE_HINT = (
    "Please make sure that:\n"
    "  - all parameter values are strings;\n"
    '  - all routes start with "+ " and end with ":".'
)


class InvalidDocument(ParseError):
    """The document is not a YAML mapping."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        msg = f"The navigation document is not formatted correctly. {_STRUCTURE_HINT}"
        if detail:
            msg = f"{msg}\n{detail}"
        super().__init__(msg)


class InvalidKeyType(ParseError):
    """A parameter value is not a string, or a route body is not a mapping."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f'Error while parsing key "{key}". {_STRUCTURE_HINT}')


class InvalidParameterFormat(ParseError):
    def __init__(self, key: str, value: str) -> None:
        self.key = key
        self.value = value
        super().__init__(
            f'Incorrect parameter format: "{key}: {value}". Expected format is '
            '"modifier name: type (typeHint)", where modifier and typeHint are optional.'
        )


class InvalidModifier(ParseError):
    def __init__(self, modifier: str, parameter_name: str) -> None:
        self.modifier = modifier
        self.parameter_name = parameter_name
        super().__init__(
            f'Invalid modifier "{modifier}" for parameter "{parameter_name}". '
            'Valid options are: "propagate".'
        )


class InvalidParameterName(ParseError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Invalid parameter name: {name}. Please use only numbers, letters and _. "
            "Parameters also can't start with a number."
        )


class InvalidParameterType(ParseError):
    def __init__(self, kind: str, parameter_name: str) -> None:
        self.kind = kind
        self.parameter_name = parameter_name
        options = ", ".join(f'"{k}"' for k in VALID_KINDS)
        super().__init__(
            f'Invalid type "{kind}" for parameter "{parameter_name}". Valid options are: {options}.'
        )


class InvalidRouteParamName(ParseError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Invalid route parameter: {name}. Please use only numbers, letters and _. "
            "Route parameters also can't start with a number."
        )


class QueryClashWithRouteParamError(ParseError):
    def __init__(self, parameter_name: str, route_key: str) -> None:
        self.parameter_name = parameter_name
        self.route_key = route_key
        super().__init__(
            f'Parameter "{parameter_name}" of route "{route_key}" has already been defined '
            "as a route parameter for a parent route."
        )


class QueryClashWithPropagatedParamError(ParseError):
    def __init__(self, parameter_name: str, route_key: str) -> None:
        self.parameter_name = parameter_name
        self.route_key = route_key
        super().__init__(
            f'Parameter "{parameter_name}" of route "{route_key}" has already been defined '
            "as a propagated query parameter for a parent route."
        )


class InvalidRouteLinkLevel(ParseError):
    def __init__(self) -> None:
        super().__init__("Invalid route module: route modules (~) can only appear at the root level.")


class InvalidPath(ParseError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f'Invalid path: {path}. Paths must start with "/".')


class InvalidRouteFormat(ParseError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Invalid route key: {key}. Expected format: + name (path).")


class DuplicatedRouteError(ParseError):
    def __init__(self, route_key: str) -> None:
        self.route_key = route_key
        super().__init__(f'Duplicated route: "{route_key}".')


class NoRootError(ParseError):
    def __init__(self) -> None:
        super().__init__("Invalid format. Expected a single route at the root level.")


# -- Runtime --


class NavigationError(WaypointError):
    """Runtime navigation diagnostic.

    Mostly used to format log records; the navigator logs these instead of
    raising them.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Navigation error: {message}")


class NavigationSetupError(WaypointError):
    """Fatal misuse of the navigation tree or of the navigator scope.

    Raised by tree merges that would shadow existing routes and by opening
    a second navigator while one is active.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Navigation setup error: {message}")
