"""Ordered singly linked list.

Keeps its elements sorted by a caller-supplied comparator. Used by the
navigation clauses to evaluate ``when_subroute_of`` entries from the most
specific key to the least specific one.
"""

from collections.abc import Callable, Iterator
from typing import Any


class _Item:
    __slots__ = ("next", "value")

    def __init__(self, value: Any, next: "_Item | None" = None) -> None:
        self.value = value
        self.next = next


class OrderedMatchList[T]:
    """A linked list ordered according to ``compare``.

    ``compare(a, b)`` follows the classic contract: negative when ``a``
    sorts before ``b``, zero when equal, positive otherwise. A new element
    is inserted before the first existing element it does not sort after,
    so among equals the most recently pushed comes first.

    Usage::

        entries = OrderedMatchList(compare_route_keys_desc)
        entries.push(SubrouteEntry("root", handler))
        entries.push(SubrouteEntry("root.studios", handler))
        entries.find(lambda e: route.is_subroute_of(e.key))
    """

    __slots__ = ("_compare", "_head", "_size")

    def __init__(self, compare: Callable[[T, T], int]) -> None:
        self._compare = compare
        self._head: _Item | None = None
        self._size = 0

    def push(self, element: T) -> None:
        """Insert ``element`` at its ordered position. O(n) worst case."""
        self._size += 1
        if self._head is None or self._compare(element, self._head.value) <= 0:
            self._head = _Item(element, self._head)
            return
        prev = self._head
        while prev.next is not None and self._compare(element, prev.next.value) > 0:
            prev = prev.next
        prev.next = _Item(element, prev.next)

    def find(self, predicate: Callable[[T], bool]) -> T | None:
        """Return the first element, in list order, accepted by ``predicate``."""
        current = self._head
        while current is not None and not predicate(current.value):
            current = current.next
        return current.value if current is not None else None

    def __iter__(self) -> Iterator[T]:
        current = self._head
        while current is not None:
            yield current.value
            current = current.next

    def __len__(self) -> int:
        return self._size


def compare_route_keys_desc(a: Any, b: Any) -> int:
    """Order entries with a ``key`` attribute from deepest to shallowest.

    Depth is the number of dot separated components of the key, so
    ``root.studios.studio`` sorts before ``root.studios``, which sorts
    before ``root``.
    """
    return len(b.key.split(".")) - len(a.key.split("."))
