"""Layer — one matchable, invocable unit of a dispatch list.

A layer pairs a compiled pattern (or none, meaning every path) with one
handler and says what kind of handler it is. The kind is explicit:
error-handling stages are tagged with ``error_handler`` at registration,
never detected by counting a function's parameters.
"""

from __future__ import annotations

import enum
import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from warble._internal.types import ErrorHandlerFunc, Handler
from warble.http.response import Response
from warble.routing.context import Continuation, DispatchContext, Next, Resume, Step
from warble.routing.pattern import PathMatch, PathPattern

if TYPE_CHECKING:
    from warble.routing.route import Route
    from warble.routing.router import Router

# Method filter value admitting every verb
ALL_METHODS = "*"

_MATCH_EVERYTHING = PathMatch(params={}, consumed="")


class LayerKind(enum.Enum):
    HANDLER = "handler"  # (request, response, next)
    ERROR = "error"  # (error, request, response, next)
    ROUTE = "route"  # a Route with its own per-method handler list
    MOUNT = "mount"  # a nested Router


@dataclass(frozen=True, slots=True)
class ErrorHandler:
    """Tag marking a function as an error-handling stage.

    Usage::

        @error_handler
        def on_error(error, request, response, next):
            response.status(500).json({"error": str(error)})

        app.use(on_error)
    """

    func: ErrorHandlerFunc

    def __call__(self, error: BaseException, *args: Any) -> Any:
        return self.func(error, *args)


def error_handler(func: ErrorHandlerFunc) -> ErrorHandler:
    """Mark *func* as an error handler. Idempotent."""
    if isinstance(func, ErrorHandler):
        return func
    return ErrorHandler(func)


async def call_handler(
    handler: Handler,
    args: tuple[Any, ...],
    response: Response,
    resume: Resume,
) -> Step:
    """Invoke one handler with a fresh ``Next`` and route its outcome.

    Returns the step that continues the walk, or None when the handler
    settled it:

    - raised before its continuation ran: resume with the exception as the
      pending error (a requested-but-unrun continuation is dropped)
    - requested a continuation without awaiting it: resume with what it
      passed to ``next``
    - returned a value without responding or calling ``next``: send it
    - raised after its continuation already ran: the walk has moved on,
      so the exception propagates to whoever awaited this handler
    """
    nxt = Next(resume)
    try:
        result = handler(*args, nxt)
        # ``return next()`` hands back the continuation; it stays pending
        if inspect.isawaitable(result) and not isinstance(result, Continuation):
            result = await result
    except Exception as exc:
        if nxt.ran:
            raise
        nxt.discard()
        return resume, exc
    if nxt.pending:
        return resume, nxt.take()
    if not nxt.called and result is not None and not response.finished:
        response.send(result)
    return None


@dataclass(frozen=True, slots=True)
class Layer:
    """An immutable entry in a router's (or route's) dispatch list.

    ``method`` is only set for entries inside a route: a specific verb or
    ``ALL_METHODS``. Router-level layers leave it ``None``; route layers
    delegate the method check to their ``Route``.
    """

    pattern: PathPattern | None
    handler: Any
    kind: LayerKind
    method: str | None = None

    @property
    def handles_errors(self) -> bool:
        return self.kind is LayerKind.ERROR

    @property
    def strips_prefix(self) -> bool:
        """Prefix layers hand their handler the path minus the matched part."""
        return self.pattern is not None and not self.pattern.end

    @property
    def name(self) -> str:
        target = self.handler.func if self.kind is LayerKind.ERROR else self.handler
        return getattr(target, "__name__", type(target).__name__)

    def try_match(self, method: str, path: str) -> PathMatch | None:
        """Match *method* and *path*; None when either is not admitted."""
        if self.kind is LayerKind.ROUTE:
            route: Route = self.handler
            if not route.handles_method(method):
                return None
        elif self.method is not None and self.method not in (ALL_METHODS, method):
            return None
        if self.pattern is None:
            return _MATCH_EVERYTHING
        return self.pattern.match(path)

    async def invoke(self, ctx: DispatchContext, resume: Resume) -> Step:
        """Run this layer for the request in *ctx*; *resume* continues the walk.

        Returns the step that continues the walk, or None once settled.
        """
        request, response = ctx.request, ctx.response
        if self.kind is LayerKind.MOUNT:
            router: Router = self.handler
            return await router.walk(request, response, resume)
        if self.kind is LayerKind.ROUTE:
            route: Route = self.handler
            return await route.dispatch(request, response, resume)
        if self.kind is LayerKind.ERROR:
            args = (ctx.error, request, response)
            return await call_handler(self.handler.func, args, response, resume)
        return await call_handler(self.handler, (request, response), response, resume)
