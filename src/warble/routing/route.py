"""Route — the per-method handler list bound to one pattern.

``Router.route(pattern)`` returns a Route; ``Router.get(pattern, ...)``
and friends register through one. The router only checks the path; the
route checks the method and walks its own handlers::

    router.route("/users/:id").get(show_user).put(update_user)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from warble._internal.types import Done
from warble.errors import ConfigurationError
from warble.http.request import Request
from warble.http.response import Response
from warble.routing.context import DispatchContext, Outcome, Signal, Step, walk_halted
from warble.routing.layer import ALL_METHODS, ErrorHandler, Layer, LayerKind

METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")


def flatten_handlers(handlers: Iterable[Any]) -> list[Any]:
    """Flatten nested lists/tuples of handlers, preserving order."""
    flat: list[Any] = []
    for handler in handlers:
        if isinstance(handler, list | tuple):
            flat.extend(flatten_handlers(handler))
        else:
            flat.append(handler)
    return flat


class Route:
    """Handlers for one path pattern, keyed by HTTP method."""

    __slots__ = ("_stack", "methods", "path")

    def __init__(self, path: str) -> None:
        self.path = path
        self.methods: set[str] = set()
        self._stack: list[Layer] = []

    def __repr__(self) -> str:
        return f"<Route {self.path!r} {sorted(self.methods)}>"

    def handles_method(self, method: str) -> bool:
        if ALL_METHODS in self.methods or method in self.methods:
            return True
        # HEAD falls back to GET
        return method == "HEAD" and "GET" in self.methods

    def allowed_methods(self) -> list[str]:
        """Explicitly registered verbs, plus HEAD when GET is registered.

        ``all()`` is not listed. Used for the automatic OPTIONS answer.
        """
        methods = self.methods - {ALL_METHODS}
        if "GET" in methods:
            methods = methods | {"HEAD"}
        return sorted(methods)

    # -- Registration --

    def _add(self, method: str, handlers: tuple[Any, ...]) -> Route:
        flat = flatten_handlers(handlers)
        if not flat:
            msg = f"Route {self.path!r}: {method.lower()}() requires at least one handler."
            raise ConfigurationError(msg)
        for handler in flat:
            if not callable(handler):
                msg = (
                    f"Route {self.path!r}: {method.lower()}() expects callables, "
                    f"got {type(handler).__name__}."
                )
                raise ConfigurationError(msg)
            kind = LayerKind.ERROR if isinstance(handler, ErrorHandler) else LayerKind.HANDLER
            self._stack.append(Layer(pattern=None, handler=handler, kind=kind, method=method))
        self.methods.add(method)
        return self

    def get(self, *handlers: Any) -> Route:
        return self._add("GET", handlers)

    def post(self, *handlers: Any) -> Route:
        return self._add("POST", handlers)

    def put(self, *handlers: Any) -> Route:
        return self._add("PUT", handlers)

    def patch(self, *handlers: Any) -> Route:
        return self._add("PATCH", handlers)

    def delete(self, *handlers: Any) -> Route:
        return self._add("DELETE", handlers)

    def head(self, *handlers: Any) -> Route:
        return self._add("HEAD", handlers)

    def options(self, *handlers: Any) -> Route:
        return self._add("OPTIONS", handlers)

    def all(self, *handlers: Any) -> Route:
        return self._add(ALL_METHODS, handlers)

    def method(self, method: str, *handlers: Any) -> Route:
        """Register handlers for an arbitrary verb."""
        return self._add(method.upper(), handlers)

    # -- Dispatch --

    async def dispatch(self, request: Request, response: Response, done: Done) -> Step:
        """Walk this route's handlers; *done* resumes the owning router.

        Returns the first pending step for the owning router's loop.
        """
        method = request.method
        if method == "HEAD" and "HEAD" not in self.methods:
            method = "GET"
        ctx = DispatchContext(request, response, path=request.path, base_path=request.base_path)

        async def resume(outcome: Outcome = None) -> Step:
            if outcome is Signal.SKIP_ROUTE:
                return done, None
            if outcome is Signal.SKIP_ROUTER:
                return done, outcome
            ctx.error = outcome
            if walk_halted(ctx):
                return None
            while ctx.index < len(self._stack):
                layer = self._stack[ctx.index]
                ctx.index += 1
                if layer.handles_errors != (ctx.error is not None):
                    continue
                if layer.try_match(method, ctx.path) is None:
                    continue
                return await layer.invoke(ctx, resume)
            return done, ctx.error

        return await resume(None)
