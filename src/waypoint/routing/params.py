"""Route and query parameter codecs.

Serialization (link building):

- scalars use plain string conversion (booleans as ``true``/``false``,
  integral numbers without a trailing ``.0``);
- arrays in a path segment are joined with ``-`` after escaping every
  literal ``\\`` in an element as ``\\\\`` and every ``-`` as ``\\-``;
  arrays in the query become one ``key=value`` pair per element;
- objects are compact JSON;
- path segment values are percent-encoded like ``encodeURIComponent``.

Deserialization never raises: a value that does not fit its declared kind
is logged and replaced by a fallback (``nan`` for numbers, ``True`` for
booleans, the raw string for objects). Numbers must be plain decimals
with an optional exponent.
"""

import json
import logging
import math
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, urlencode

from waypoint.errors import NavigationError
from waypoint.parsing.types import ValueKind

logger = logging.getLogger("waypoint.params")

# Characters encodeURIComponent leaves alone, besides alphanumerics
URI_COMPONENT_SAFE = "-_.!~*'()"

_DECIMAL = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


# -- Serialization --


def stringify(value: Any) -> str:
    """Convert a scalar to its URL text form."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if value.is_integer():
            return str(int(value))
    return str(value)


def to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def escape_array_item(item: str) -> str:
    return item.replace("\\", "\\\\").replace("-", "\\-")


def serialize_path_value(value: Any, kind: ValueKind) -> str:
    """Serialize a value for use as a single, percent-encoded path segment."""
    if kind.is_array and isinstance(value, (list, tuple)):
        serialized = "-".join(escape_array_item(stringify(item)) for item in value)
    elif kind is ValueKind.OBJECT:
        serialized = to_json(value)
    else:
        serialized = stringify(value)
    return quote(serialized, safe=URI_COMPONENT_SAFE)


def query_pairs(name: str, value: Any, kind: ValueKind) -> list[tuple[str, str]]:
    """Query string pairs for one parameter. Empty values produce none."""
    if value is None or (isinstance(value, str) and not value):
        return []
    if kind.is_array and isinstance(value, (list, tuple)):
        return [(name, stringify(item)) for item in value]
    if kind is ValueKind.OBJECT:
        return [(name, to_json(value))]
    return [(name, stringify(value))]


def build_query(
    names: list[str],
    values: Mapping[str, Any],
    metadata: Mapping[str, ValueKind],
) -> str:
    """Build ``?a=1&b=2`` from the named parameters, or ``""`` if none apply."""
    pairs: list[tuple[str, str]] = []
    for name in names:
        pairs.extend(query_pairs(name, values.get(name), metadata[name]))
    return f"?{urlencode(pairs)}" if pairs else ""


# -- Deserialization --


def split_array_segment(raw: str) -> list[str]:
    """Split a decoded path segment on unescaped ``-``.

    ``\\-`` and ``\\\\`` are unescaped; any other backslash is kept as is.
    """
    items = [""]
    chars = iter(raw)
    for char in chars:
        if char == "\\":
            following = next(chars, "")
            if following in ("-", "\\"):
                items[-1] += following
            else:
                items[-1] += char + following
        elif char == "-":
            items.append("")
        else:
            items[-1] += char
    return items


def _type_error(name: str, value: str, kind: str, route_key: str, interpreting_as: str) -> str:
    return str(
        NavigationError(
            f'error while deserializing parameter "{name}" of route "{route_key}". '
            f'The value ("{value}") is not a valid {kind}. It will be interpreted as '
            f"{interpreting_as}, which may cause issues ahead."
        )
    )


def _number(name: str, value: str, route_key: str) -> float:
    if _DECIMAL.fullmatch(value) is None:
        logger.error("%s", _type_error(name, value, "number", route_key, "NaN"))
        return math.nan
    return float(value)


def _boolean(name: str, value: str, route_key: str) -> bool:
    if value in ("true", ""):
        return True
    if value == "false":
        return False
    logger.error("%s", _type_error(name, value, "boolean", route_key, "true"))
    return True


def deserialize_parameter(name: str, values: list[str], kind: ValueKind, route_key: str) -> Any:
    """Coerce the raw string value(s) of a parameter to its declared kind.

    ``values`` holds every occurrence of the parameter; scalar kinds use the
    first one, array kinds use all of them.
    """
    value = values[0]
    if kind is ValueKind.STRING:
        return value
    if kind is ValueKind.NUMBER:
        return _number(name, value, route_key)
    if kind is ValueKind.BOOLEAN:
        return _boolean(name, value, route_key)
    if kind is ValueKind.STRING_ARRAY:
        return list(values)
    if kind is ValueKind.NUMBER_ARRAY:
        return [_number(name, v, route_key) for v in values]
    if kind is ValueKind.BOOLEAN_ARRAY:
        return [_boolean(name, v, route_key) for v in values]
    try:
        return json.loads(value)
    except ValueError:
        logger.error("%s", _type_error(name, value, kind.value, route_key, "a raw string"))
        return value
