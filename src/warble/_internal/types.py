"""Shared type aliases used across warble modules."""

from collections.abc import Awaitable, Callable
from typing import Any, TypeAlias

# Normal handler: (request, response, next), sync or async
Handler: TypeAlias = Callable[..., Any]

# Error-handling function: (error, request, response, next), sync or async
ErrorHandlerFunc: TypeAlias = Callable[..., Any]

# Parameter hook: (request, response, next, value)
ParamHook: TypeAlias = Callable[..., Any]

# Continuation handed to a walk when it is exhausted: receives the
# pending error (or a skip signal), returns the next walk step or None
Done: TypeAlias = Callable[[Any], Awaitable[Any]]
