"""Invoke helpers — call sync or async handlers uniformly.

Warble handlers can be ``def`` or ``async def``. Any code that calls
a user-provided handler must handle both cases. This module provides
a single helper so the sync/async check lives in exactly one place.

Usage::

    from warble._internal.invoke import invoke

    result = await invoke(handler, request, response, next)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable.

    Works with both sync and async callables::

        # sync: returns immediately
        def hello(request, response, next):
            response.send("hello")

        # async: returns a coroutine, awaited here
        async def timing(request, response, next):
            started = time.monotonic()
            await next()
            log(time.monotonic() - started)
    """
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
