"""Tests for waypoint.navigator — URL resolution, parameters and listeners."""

import logging
import math
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import anyio
import pytest

from waypoint.config import NavigatorConfig
from waypoint.history import MemoryHistory
from waypoint.navigator import Navigator
from waypoint.routing.params import URI_COMPONENT_SAFE
from waypoint.routing.route import Route
from waypoint.routing.tree import RouteTree, load_tree

BASE = "https://www.stackspot.com"


def _encode(value: str) -> str:
    return quote(value, safe=URI_COMPONENT_SAFE)


def _query(pairs: list[tuple[str, str]]) -> str:
    return "&".join(f"{name}={_encode(value)}" for name, value in pairs)


async def _started(tree: RouteTree, use_hash: bool = True, url: str = BASE) -> Navigator:
    navigator = Navigator(tree, history=MemoryHistory(url), config=NavigatorConfig(use_hash=use_hash))
    await navigator.start()
    return navigator


async def _visit(navigator: Navigator, url: str) -> None:
    navigator.history.push_state(url)
    await navigator.update_route()


class TestNavigatorSetup:
    @pytest.mark.anyio
    async def test_starts_at_root(self, tree: RouteTree) -> None:
        navigator = await _started(tree)
        assert navigator.current_route == tree.root_route
        assert navigator.current_params == {}
        assert navigator.use_hash is True
        assert navigator.root is tree.root_route

    def test_not_started(self, tree: RouteTree) -> None:
        navigator = Navigator(tree)
        assert navigator.current_route is None
        assert navigator.branch() == []
        assert isinstance(navigator.history, MemoryHistory)

    def test_get_path(self, tree: RouteTree, use_hash: bool, p: Callable[[str], str]) -> None:
        navigator = Navigator(tree, config=NavigatorConfig(use_hash=use_hash))
        assert navigator.get_path(f"{BASE}{p('/pt/ai-assistente')}") == "pt/ai-assistente"
        assert navigator.get_path(f"{BASE}{p('/studios?like=a')}") == "studios"

    @pytest.mark.anyio
    async def test_close_stops_popstate(self, tree: RouteTree) -> None:
        navigator = await _started(tree)
        history = navigator.history
        assert isinstance(history, MemoryHistory)
        await _visit(navigator, "/#/studios")
        navigator.close()
        await history.back()
        assert navigator.current_route == tree.get("root.studios")


class TestRouteResolution:
    @pytest.mark.anyio
    async def test_follows_url_changes(self, tree: RouteTree, use_hash: bool, p: Callable[[str], str]) -> None:
        navigator = await _started(tree, use_hash)

        await _visit(navigator, p("/account/a/b/test"))
        assert navigator.current_route == tree.get("root.account")
        assert navigator.current_params == {}

        await _visit(navigator, p("/studios?like=test&limit=20"))
        assert navigator.current_route == tree.get("root.studios")
        assert navigator.current_params == {"like": "test", "limit": 20}

        await _visit(navigator, p("/studios/studio1/stacks/stack1/starters/starter1?str=test"))
        assert navigator.current_route == tree.get("root.studios.studio.stacks.stack.starters.starter")
        assert navigator.current_params == {
            "studioId": "studio1",
            "stackId": "stack1",
            "starterId": "starter1",
            "str": "test",
        }

    @pytest.mark.anyio
    async def test_deep_wildcard(self, use_hash: bool, p: Callable[[str], str]) -> None:
        tree = load_tree(
            """
+ root (/):
  + workspaces (/workspaces/*):
    + workspace (/{workspaceId}/*):
      + stacks (/stacks/*):
"""
        )
        navigator = await _started(tree, use_hash)

        await _visit(navigator, p("/workspaces/a/stacks"))
        assert navigator.current_route == tree.get("root.workspaces.workspace.stacks")
        assert navigator.current_params == {"workspaceId": "a"}

        await _visit(navigator, p("/workspaces/a"))
        assert navigator.current_route == tree.get("root.workspaces.workspace")
        assert navigator.current_params == {"workspaceId": "a"}

        await _visit(navigator, p("/workspaces"))
        assert navigator.current_route == tree.get("root.workspaces")
        assert navigator.current_params == {}

    @pytest.mark.anyio
    async def test_popstate_updates_route(self, tree: RouteTree) -> None:
        navigator = await _started(tree)
        history = navigator.history
        assert isinstance(history, MemoryHistory)
        await _visit(navigator, "/#/studios")
        await _visit(navigator, "/#/account")

        await history.back()
        assert navigator.current_route == tree.get("root.studios")
        await history.forward()
        assert navigator.current_route == tree.get("root.account")


class TestParameters:
    @pytest.mark.anyio
    async def test_route_params(
        self,
        tree: RouteTree,
        use_hash: bool,
        p: Callable[[str], str],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        segments = [
            "Hello-World",
            "42",
            "true",
            "false",
            "abc-def-ghi",
            "1-2",
            "true",
            '{"name":"Dalinar Kholin","age":"53","type":"Bondsmith"}',
            "[[1,2,3],[4],[5,6,7]]",
        ]
        url = f"{BASE}{p('/testRouteParams')}/{'/'.join(map(_encode, segments))}"
        with caplog.at_level(logging.ERROR):
            navigator = await _started(tree, use_hash, url)
        assert navigator.current_params == {
            "str": "Hello-World",
            "num": 42,
            "boolT": True,
            "boolF": False,
            "obj": {"name": "Dalinar Kholin", "age": "53", "type": "Bondsmith"},
            "strArr": ["abc", "def", "ghi"],
            "numArr": [1, 2],
            "boolArr": [True],
            "doubleArr": [[1, 2, 3], [4], [5, 6, 7]],
        }
        assert caplog.records == []

    @pytest.mark.anyio
    async def test_escaped_string_array(self, tree: RouteTree, use_hash: bool, p: Callable[[str], str]) -> None:
        values = ["Hello", "Hello-World", "test--a-b---c", "World", ""]
        segment = _encode("-".join(v.replace("-", "\\-") for v in values))
        navigator = await _started(tree, use_hash, f"{BASE}{p('/testArrayEscape')}/{segment}")
        assert navigator.current_params == {"strArr": values}

    @pytest.mark.anyio
    async def test_query_params(
        self,
        tree: RouteTree,
        use_hash: bool,
        p: Callable[[str], str],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        query = _query(
            [
                ("str", "Hello World"),
                ("num", "42"),
                ("boolT", "true"),
                ("boolT2", ""),
                ("boolF", "false"),
                ("obj", '{"name":"Dalinar Kholin","age":"53","type":"Bondsmith"}'),
                ("strArr", "abc"),
                ("strArr", "def-ghi"),
                ("strArr", "jkl"),
                ("numArr", "1"),
                ("numArr", "2"),
                ("boolArr", "true"),
                ("doubleArr", "[[1,2,3],[4],[5,6,7]]"),
            ]
        )
        with caplog.at_level(logging.ERROR):
            navigator = await _started(tree, use_hash, f"{BASE}{p('/testSearchParams')}?{query}")
        assert navigator.current_params == {
            "str": "Hello World",
            "num": 42,
            "boolT": True,
            "boolT2": True,
            "boolF": False,
            "obj": {"name": "Dalinar Kholin", "age": "53", "type": "Bondsmith"},
            "strArr": ["abc", "def-ghi", "jkl"],
            "numArr": [1, 2],
            "boolArr": [True],
            "doubleArr": [[1, 2, 3], [4], [5, 6, 7]],
        }
        assert caplog.records == []

    @pytest.mark.anyio
    async def test_undeclared_query_params_ignored(
        self, tree: RouteTree, use_hash: bool, p: Callable[[str], str]
    ) -> None:
        navigator = await _started(tree, use_hash, f"{BASE}{p('/testSearchParams?str=test&inexistent=test')}")
        assert navigator.current_params == {"str": "test"}

    @pytest.mark.anyio
    async def test_invalid_values_are_logged(
        self,
        tree: RouteTree,
        use_hash: bool,
        p: Callable[[str], str],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        query = _query(
            [
                ("num", "not a number"),
                ("boolT", "not a boolean"),
                ("obj", "not an object"),
                ("numArr", "1"),
                ("numArr", "not a number"),
                ("numArr", "2"),
                ("numArr", "also not a number"),
                ("boolArr", "true"),
                ("boolArr", "false"),
                ("boolArr", "not a boolean"),
            ]
        )
        with caplog.at_level(logging.ERROR, logger="waypoint.params"):
            navigator = await _started(tree, use_hash, f"{BASE}{p('/testSearchParams')}?{query}")
        params = navigator.current_params
        assert math.isnan(params["num"])
        assert params["boolT"] is True
        assert params["obj"] == "not an object"
        assert params["numArr"][0] == 1 and params["numArr"][2] == 2
        assert math.isnan(params["numArr"][1]) and math.isnan(params["numArr"][3])
        assert params["boolArr"] == [True, False, True]
        assert len([r for r in caplog.records if r.name == "waypoint.params"]) == 6


class TestListeners:
    @pytest.mark.anyio
    async def test_route_change_listener(self, tree: RouteTree, use_hash: bool, p: Callable[[str], str]) -> None:
        navigator = await _started(tree, use_hash)
        calls: list[tuple[Route, dict[str, Any]]] = []

        remove = navigator.on_route_change(lambda route, params: calls.append((route, params)))
        assert calls == [(tree.root_route, {})]

        calls.clear()
        await _visit(navigator, p("/studios?limit=50"))
        assert calls == [(tree.get("root.studios"), {"limit": 50})]

        calls.clear()
        remove()
        await _visit(navigator, p("/studios/studio1"))
        assert calls == []

    @pytest.mark.anyio
    async def test_async_route_change_listener(
        self, tree: RouteTree, use_hash: bool, p: Callable[[str], str]
    ) -> None:
        navigator = await _started(tree, use_hash)
        calls: list[str] = []

        async def listener(route: Route, params: dict[str, Any]) -> None:
            await anyio.sleep(0.01)
            calls.append(route.key)

        remove = await navigator.on_route_change_async(listener)
        assert calls == ["root"]

        await _visit(navigator, p("/studios?limit=50"))
        assert calls == ["root", "root.studios"]

        remove()
        await _visit(navigator, p("/studios/studio1"))
        assert calls == ["root", "root.studios"]

    @pytest.mark.anyio
    async def test_async_listeners_run_together_before_sync(self, tree: RouteTree) -> None:
        navigator = await _started(tree)
        order: list[str] = []
        first_started = anyio.Event()

        async def first(route: Route, params: dict[str, Any]) -> None:
            first_started.set()
            await anyio.sleep(0.01)
            order.append("first")

        async def second(route: Route, params: dict[str, Any]) -> None:
            await first_started.wait()
            order.append("second")

        navigator.on_route_change(lambda route, params: order.append("sync"))
        await navigator.on_route_change_async(first)
        await navigator.on_route_change_async(second)
        order.clear()
        # ``second`` now only finishes if ``first`` runs alongside it
        first_started = anyio.Event()

        with anyio.fail_after(2):
            await _visit(navigator, "/#/studios")
        assert order == ["second", "first", "sync"]

    @pytest.mark.anyio
    async def test_not_found(
        self,
        tree: RouteTree,
        use_hash: bool,
        p: Callable[[str], str],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        navigator = await _started(tree, use_hash)
        missing: list[str] = []
        changes: list[str] = []
        remove = navigator.on_not_found(missing.append)
        navigator.on_route_change(lambda route, params: changes.append(route.key))
        changes.clear()

        with caplog.at_level(logging.ERROR, logger="waypoint.navigator"):
            await _visit(navigator, p("/inexistent"))
        assert missing == ["inexistent"]
        assert changes == []
        assert navigator.current_route == tree.root_route
        assert "Navigation error: route not registered (inexistent)" in caplog.text

        remove()
        await _visit(navigator, p("/inexistent2"))
        assert missing == ["inexistent"]

    @pytest.mark.anyio
    async def test_not_found_logging_can_be_disabled(
        self, tree: RouteTree, caplog: pytest.LogCaptureFixture
    ) -> None:
        navigator = Navigator(tree, config=NavigatorConfig(log_not_found=False))
        await navigator.start()
        with caplog.at_level(logging.ERROR, logger="waypoint.navigator"):
            await _visit(navigator, "/#/inexistent")
        assert caplog.records == []

    @pytest.mark.anyio
    async def test_listener_error_reaches_caller(self, tree: RouteTree) -> None:
        navigator = await _started(tree)

        def listener(route: Route, params: dict[str, Any]) -> None:
            if route.key == "root.account":
                raise ValueError("boom")

        navigator.on_route_change(listener)
        with pytest.raises(ValueError, match="boom"):
            await _visit(navigator, "/#/account")
        await _visit(navigator, "/#/studios")
        assert navigator.current_route == tree.get("root.studios")

    @pytest.mark.anyio
    async def test_failing_async_listener_does_not_cancel_siblings(self, tree: RouteTree) -> None:
        navigator = await _started(tree)
        finished: list[str] = []

        async def slow(route: Route, params: dict[str, Any]) -> None:
            await anyio.sleep(0.05)
            finished.append(route.key)

        async def failing(route: Route, params: dict[str, Any]) -> None:
            if route.key == "root.account":
                raise ValueError("boom")

        await navigator.on_route_change_async(slow)
        await navigator.on_route_change_async(failing)
        navigator.on_route_change(lambda route, params: finished.append("sync"))
        finished.clear()

        with anyio.fail_after(2), pytest.raises(ValueError, match="boom"):
            await _visit(navigator, "/#/account")
        assert finished == ["root.account"]
        assert navigator.current_route == tree.get("root.account")


class TestDispatchQueue:
    @pytest.mark.anyio
    async def test_events_run_in_order(self, tree: RouteTree) -> None:
        navigator = await _started(tree)
        release = anyio.Event()
        seen: list[str] = []

        async def slow(route: Route, params: dict[str, Any]) -> None:
            if route.key == "root.studios":
                await release.wait()

        await navigator.on_route_change_async(slow)
        navigator.on_route_change(lambda route, params: seen.append(route.key))
        seen.clear()

        with anyio.fail_after(2):
            async with anyio.create_task_group() as tg:
                navigator.history.push_state("/#/studios")
                tg.start_soon(navigator.update_route)
                await anyio.wait_all_tasks_blocked()
                navigator.history.push_state("/#/account")
                tg.start_soon(navigator.update_route)
                await anyio.wait_all_tasks_blocked()
                assert seen == []
                release.set()
        assert seen == ["root.studios", "root.account"]

    @pytest.mark.anyio
    async def test_redirect_from_listener(self, tree: RouteTree) -> None:
        navigator = await _started(tree)

        async def redirect(route: Route, params: dict[str, Any]) -> None:
            if route.key == "root.account":
                await navigator.go("root.studios")

        await navigator.on_route_change_async(redirect)
        with anyio.fail_after(2):
            await _visit(navigator, "/#/account")
        assert navigator.current_route == tree.get("root.studios")

    @pytest.mark.anyio
    async def test_queued_event_failure_is_logged(self, tree: RouteTree, caplog: pytest.LogCaptureFixture) -> None:
        navigator = await _started(tree)

        async def redirect(route: Route, params: dict[str, Any]) -> None:
            if route.key == "root.account":
                await navigator.go("root.studios")

        def failing(route: Route, params: dict[str, Any]) -> None:
            if route.key == "root.studios":
                raise ValueError("lost")

        await navigator.on_route_change_async(redirect)
        navigator.on_route_change(failing)

        with caplog.at_level(logging.ERROR, logger="waypoint.navigator"), anyio.fail_after(2):
            await _visit(navigator, "/#/account")
        assert navigator.current_route == tree.get("root.studios")
        [record] = caplog.records
        assert record.getMessage().endswith("queued navigation (https://www.stackspot.com/#/studios)")
        assert record.exc_info is not None
        assert isinstance(record.exc_info[1], ValueError)

    @pytest.mark.anyio
    async def test_waiting_caller_takes_over_cancelled_drain(self, tree: RouteTree) -> None:
        navigator = await _started(tree)
        never = anyio.Event()
        timed_out: list[bool] = []

        async def blocking(route: Route, params: dict[str, Any]) -> None:
            if route.key == "root.studios":
                await never.wait()

        async def first() -> None:
            with anyio.move_on_after(0.05) as scope:
                await navigator.update_route()
            timed_out.append(scope.cancelled_caught)

        await navigator.on_route_change_async(blocking)

        with anyio.fail_after(2):
            async with anyio.create_task_group() as tg:
                navigator.history.push_state("/#/studios")
                tg.start_soon(first)
                await anyio.wait_all_tasks_blocked()
                navigator.history.push_state("/#/account")
                tg.start_soon(navigator.update_route)
        assert timed_out == [True]
        assert navigator.current_route == tree.get("root.account")
        assert not navigator._queue


class TestNavigation:
    @pytest.mark.anyio
    async def test_go_pushes_then_replaces(self, tree: RouteTree, use_hash: bool, p: Callable[[str], str]) -> None:
        navigator = await _started(tree, use_hash)
        history = navigator.history
        assert isinstance(history, MemoryHistory)

        await navigator.go("root.studios.studio", {"studioId": "test"})
        assert history.url == f"{BASE}{p('/studios/test')}"
        assert history.length == 2
        assert navigator.current_params == {"studioId": "test"}

        # Same route, new parameter: replace
        await navigator.go("root.studios.studio", {"studioId": "test2"})
        assert history.url == f"{BASE}{p('/studios/test2')}"
        assert history.length == 2

    @pytest.mark.anyio
    async def test_go_search_param_change_replaces(self, tree: RouteTree, p: Callable[[str], str], use_hash: bool) -> None:
        navigator = await _started(tree, use_hash, f"{BASE}{p('/studios')}")
        history = navigator.history
        assert isinstance(history, MemoryHistory)
        await navigator.go(tree.get("root.studios"), {"limit": 20})
        assert history.url == f"{BASE}{p('/studios?limit=20')}"
        assert history.length == 1

    @pytest.mark.anyio
    async def test_go_forced_modes(self, tree: RouteTree) -> None:
        navigator = await _started(tree, url=f"{BASE}/#/studios")
        history = navigator.history
        assert isinstance(history, MemoryHistory)

        await navigator.go("root.studios", {"like": "search"}, replace=False)
        assert history.length == 2
        await navigator.go("root.studios.studio", {"studioId": "test"}, replace=True)
        assert history.length == 2
        assert navigator.current_route == tree.get("root.studios.studio")

    @pytest.mark.anyio
    async def test_go_merges_search_params_by_default(self, tree: RouteTree) -> None:
        navigator = await _started(tree, url=f"{BASE}/#/studios?like=x")
        await navigator.go("root.studios", {"limit": 20})
        assert navigator.history.url == f"{BASE}/#/studios?like=x&limit=20"
        await navigator.go("root.studios", {"limit": 30}, merge_search_parameters=False)
        assert navigator.history.url == f"{BASE}/#/studios?limit=30"

    @pytest.mark.anyio
    async def test_go_prevent_default(self, tree: RouteTree) -> None:
        navigator = await _started(tree)
        await navigator.go("root.studios.studio", {"studioId": "test"}, prevent_default=True)
        assert navigator.history.url == f"{BASE}/#/studios/test"
        assert navigator.current_route == tree.root_route
        await navigator.update_route()
        assert navigator.current_route == tree.get("root.studios.studio")

    @pytest.mark.anyio
    async def test_link_uses_current_params(self, tree: RouteTree) -> None:
        navigator = await _started(tree, url=f"{BASE}/#/studios/test/stacks?type=own")
        assert navigator.link("root.studios.studio.stacks", {"limit": 10}) == "/#/studios/test/stacks?limit=10"
        merged = navigator.link("root.studios.studio.stacks", {"limit": 10}, merge_search_parameters=True)
        assert merged == "/#/studios/test/stacks?type=own&limit=10"

    @pytest.mark.anyio
    async def test_link_respects_config_default(self, tree: RouteTree) -> None:
        config = NavigatorConfig(link_merges_search_parameters=True)
        navigator = Navigator(tree, history=MemoryHistory(f"{BASE}/#/studios?like=x"), config=config)
        await navigator.start()
        assert navigator.link("root.studios", {"limit": 1}) == "/#/studios?like=x&limit=1"

    @pytest.mark.anyio
    async def test_active_routes(self, tree: RouteTree) -> None:
        navigator = await _started(tree)
        assert navigator.is_active("root")
        assert not navigator.is_active("root.studios")
        assert navigator.is_subroute_active("root")
        assert not navigator.is_subroute_active("root.studios")

        await _visit(navigator, "/#/studios/studio/stacks/stack")
        assert not navigator.is_active("root")
        for key in (
            "root",
            "root.studios",
            "root.studios.studio",
            "root.studios.studio.stacks",
            "root.studios.studio.stacks.stack",
        ):
            assert navigator.is_subroute_active(key)
        assert not navigator.is_subroute_active("root.studios.studio.stacks.stack.starters")
        assert not navigator.is_subroute_active("root.studios.studio.plugins")

    @pytest.mark.anyio
    async def test_branch(self, tree: RouteTree) -> None:
        navigator = await _started(tree, url=f"{BASE}/#/studios/s1/stacks")
        assert [r.key for r in navigator.branch()] == [
            "root",
            "root.studios",
            "root.studios.studio",
            "root.studios.studio.stacks",
        ]


class TestUpdateNavigationTree:
    @pytest.mark.anyio
    async def test_graft_and_resolve_again(self, tree: RouteTree) -> None:
        navigator = await _started(tree, url=f"{BASE}/#/account/settings")
        assert navigator.current_route == tree.get("root.account")

        module = load_tree("+ account ~ root.account (/account/*):\n  + settings (/settings):")
        await navigator.update_navigation_tree(module, "root.account")
        assert navigator.current_route == tree.get("root.account.settings")
