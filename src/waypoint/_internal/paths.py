"""Path helpers shared by matching, link building and extraction."""

import re

_WILDCARD_SUFFIX = re.compile(r"/\*$")


def split_path(path: str | None = "") -> list[str]:
    """Split a path on ``/``, normalizing the leading and trailing slash.

    A leading ``/`` is added when missing and a trailing one is ignored, so
    ``"studios/s1"``, ``"/studios/s1"`` and ``"/studios/s1/"`` all give
    ``["", "studios", "s1"]``. The root (``""`` or ``"/"``) gives ``[""]``.
    """
    path = path or ""
    parts = ("/" + path.removeprefix("/")).split("/")
    if parts[-1] == "":
        parts.pop()
    return parts


def strip_wildcard(path: str) -> str:
    """Remove a trailing ``/*`` wildcard marker."""
    return _WILDCARD_SUFFIX.sub("", path)


def is_wildcard(path: str) -> bool:
    return path.endswith("/*")
