"""Calling user callbacks that may or may not be coroutines.

Route-change listeners, clause handlers and popstate subscribers are all
accepted as plain functions or ``async def``. ``invoke`` awaits the result
when needed. ``invoke_collecting`` is the variant for listeners started
side by side in one task group: it keeps the exception so a failing
listener never cancels its siblings.

Usage::

    errors: list[Exception] = []
    async with anyio.create_task_group() as tg:
        for listener in listeners:
            tg.start_soon(invoke_collecting, errors, listener, route, params)
    if errors:
        raise errors[0]
"""

import inspect
from collections.abc import Callable
from typing import Any


async def invoke(callback: Callable[..., Any], *args: Any) -> Any:
    """Call ``callback`` and await its result when it is awaitable."""
    outcome = callback(*args)
    return await outcome if inspect.isawaitable(outcome) else outcome


async def invoke_collecting(errors: list[Exception], callback: Callable[..., Any], *args: Any) -> None:
    """Run ``callback`` to completion, appending any exception to ``errors``.

    Cancellation is not caught.
    """
    try:
        await invoke(callback, *args)
    except Exception as exc:
        errors.append(exc)
