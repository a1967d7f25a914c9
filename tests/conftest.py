"""Shared pytest configuration for waypoint tests.

Provides the navigation document most tests run against and fixtures that
build a fresh live tree from it, so every test starts from clean state.
The ``p`` fixture turns a route path into the URL form of the current
mode, letting one test body cover hash and plain URLs.
"""

from collections.abc import Callable

import pytest

from waypoint.routing.tree import RouteTree, load_tree

NAVIGATION = """
+ root (/):
  + testSearchParams (/testSearchParams):
    str: string
    num: number
    boolT: boolean
    boolT2: boolean
    boolF: boolean
    strArr: string[]
    numArr: number[]
    boolArr: boolean[]
    obj: object
    doubleArr: object
  + testRouteParams (/testRouteParams/{str}/{num}/{boolT}/{boolF}/{strArr}/{numArr}/{boolArr}/{obj}/{doubleArr}):
    str: string
    num: number
    boolT: boolean
    boolF: boolean
    strArr: string[]
    numArr: number[]
    boolArr: boolean[]
    obj: object
    doubleArr: object
  + testArrayEscape (/testArrayEscape/{strArr}):
    strArr: string[]
  + account (/account/*):
  + studios (/studios):
    like: string
    limit: number
    + studio (/{studioId}):
      create: string
      + stacks (/stacks):
        type: string (('own' | 'all'))
        limit: number
        + stack (/{stackId}):
          + starters (/starters):
            str: string
            + starter (/{starterId}):
              str: string
      + plugins (/plugins):
"""


@pytest.fixture
def tree() -> RouteTree:
    """A fresh live tree built from ``NAVIGATION``."""
    return load_tree(NAVIGATION)


@pytest.fixture(params=[True, False], ids=["hash", "plain"])
def use_hash(request: pytest.FixtureRequest) -> bool:
    return request.param


@pytest.fixture
def p(use_hash: bool) -> Callable[[str], str]:
    """``p("/studios")`` is ``/#/studios`` in hash mode, ``/studios`` otherwise."""
    return (lambda path: f"/#{path}") if use_hash else (lambda path: path)
