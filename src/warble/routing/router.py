"""Router — an ordered layer list and the loop that walks it.

Layers run in registration order. Normal layers are visited until one
finalizes the response; once a handler raises or passes an error to
``next``, only error layers are visited until one of them recovers by
calling ``next()`` with no argument. Mounted routers see the request
path relative to their mount point and restore it on the way out.

Usage::

    api = Router(merge_params=True)

    @api.get("/widgets/:id")
    async def show(request, response, next):
        response.json({"id": request.params["id"]})

    app.use("/api", api)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

from warble._internal.invoke import invoke
from warble._internal.types import Done, ParamHook
from warble.config import RouterOptions
from warble.errors import ConfigurationError
from warble.http.request import Request
from warble.http.response import Response
from warble.routing.context import (
    DispatchContext,
    Next,
    Outcome,
    Signal,
    Step,
    trampoline,
    walk_halted,
)
from warble.routing.layer import ErrorHandler, Layer, LayerKind, error_handler
from warble.routing.pattern import PathPattern, compile_pattern
from warble.routing.route import Route, flatten_handlers

logger = logging.getLogger("warble.routing")

# Request cache key for param values whose hooks already ran
_PARAM_CACHE = "_param_hooks"


class Router:
    """An ordered list of layers plus its matching options.

    Matching options are fixed at construction. A router created through
    ``App.create_router()`` takes them from the app settings of that
    moment; later settings changes do not touch existing routers.
    """

    __slots__ = ("_param_hooks", "_stack", "config")

    def __init__(
        self,
        *,
        case_sensitive: bool = False,
        strict: bool = False,
        merge_params: bool = False,
    ) -> None:
        self.config = RouterOptions(
            case_sensitive=case_sensitive,
            strict=strict,
            merge_params=merge_params,
        )
        self._stack: list[Layer] = []
        self._param_hooks: dict[str, list[ParamHook]] = {}

    def __repr__(self) -> str:
        return f"<Router layers={len(self._stack)}>"

    @property
    def layers(self) -> tuple[Layer, ...]:
        return tuple(self._stack)

    # -- Registration --

    def _compile(self, pattern: str, *, end: bool) -> PathPattern:
        return compile_pattern(
            pattern,
            end=end,
            case_sensitive=self.config.case_sensitive,
            strict=self.config.strict,
        )

    def _mounts(self) -> Iterator[Router]:
        for layer in self._stack:
            if layer.kind is LayerKind.MOUNT:
                yield layer.handler

    def _reaches(self, target: Router) -> bool:
        """Whether *target* is this router or is mounted anywhere beneath it."""
        if self is target:
            return True
        return any(child._reaches(target) for child in self._mounts())

    def use(self, *args: Any) -> Router:
        """Add middleware, error handlers or nested routers.

        An optional leading string is a path prefix, matched on segment
        boundaries (``"/api"`` matches ``/api`` and ``/api/x``, never
        ``/apix``). Without it the layers see every path.
        """
        handlers = list(args)
        pattern = "/"
        if handlers and isinstance(handlers[0], str):
            pattern = handlers.pop(0)
        flat = flatten_handlers(handlers)
        if not flat:
            msg = f"Router.use({pattern!r}) requires at least one handler."
            raise ConfigurationError(msg)

        compiled = None if pattern == "/" else self._compile(pattern, end=False)
        for handler in flat:
            if isinstance(handler, Router):
                if handler._reaches(self):
                    msg = f"Mounting a router at {pattern!r} would create a cycle."
                    raise ConfigurationError(msg)
                kind = LayerKind.MOUNT
            elif isinstance(handler, ErrorHandler):
                kind = LayerKind.ERROR
            elif callable(handler):
                kind = LayerKind.HANDLER
            else:
                msg = f"Router.use() expects callables or routers, got {type(handler).__name__}."
                raise ConfigurationError(msg)
            self._stack.append(Layer(pattern=compiled, handler=handler, kind=kind))
        return self

    def use_error(self, *args: Any) -> Router:
        """Like ``use``, tagging every callable as an error handler."""
        handlers = list(args)
        prefix = [handlers.pop(0)] if handlers and isinstance(handlers[0], str) else []
        tagged = [error_handler(h) for h in flatten_handlers(handlers)]
        return self.use(*prefix, *tagged)

    def route(self, pattern: str) -> Route:
        """Create a Route for *pattern* and append it to the layer list."""
        compiled = self._compile(pattern, end=True)
        route = Route(pattern)
        self._stack.append(Layer(pattern=compiled, handler=route, kind=LayerKind.ROUTE))
        return route

    def _verb(self, method: str, pattern: str, handlers: tuple[Any, ...]) -> Any:
        if not handlers:

            def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
                self.route(pattern).method(method, func)
                return func

            return decorator
        self.route(pattern).method(method, *handlers)
        return self

    def get(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("GET", pattern, handlers)

    def post(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("POST", pattern, handlers)

    def put(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("PUT", pattern, handlers)

    def patch(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("PATCH", pattern, handlers)

    def delete(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("DELETE", pattern, handlers)

    def head(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("HEAD", pattern, handlers)

    def options(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("OPTIONS", pattern, handlers)

    def all(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("*", pattern, handlers)

    def param(self, name: str, hook: ParamHook) -> Router:
        """Run *hook* before any layer of this router that binds *name*.

        The hook is called as ``hook(request, response, next, value)`` at
        most once per distinct value per request. It must call ``next()``
        to continue; ``next(exc)`` turns the walk into an error walk.
        """
        if not callable(hook):
            msg = f"Router.param({name!r}) expects a callable, got {type(hook).__name__}."
            raise ConfigurationError(msg)
        self._param_hooks.setdefault(name, []).append(hook)
        return self

    # -- Dispatch --

    async def handle(self, request: Request, response: Response, done: Done) -> None:
        """Walk the layer list for *request*.

        *done* is called with the pending error (or None) when the list is
        exhausted or a handler asked to leave this router. It is not called
        when the response was finalized, the client went away, or a handler
        neither responded nor continued.
        """
        await trampoline(await self.walk(request, response, done))

    async def walk(self, request: Request, response: Response, done: Done) -> Step:
        """Start the walk and return its first pending step.

        Used directly when this router is mounted: the enclosing walk's
        loop drives the returned step.
        """
        saved = (request.path, request.base_path, request.params)
        ctx = DispatchContext(
            request,
            response,
            path=request.path,
            base_path=request.base_path,
            parent_params=dict(request.params),
        )
        # Verbs of the routes matching the path, for the automatic OPTIONS answer
        allowed: set[str] | None = set() if request.method == "OPTIONS" else None

        async def leave(error: Outcome) -> Step:
            request.path, request.base_path, request.params = saved
            if error is None and allowed and not walk_halted(ctx):
                _send_allow(response, allowed)
                return None
            return done, error

        async def resume(outcome: Outcome = None) -> Step:
            if outcome is Signal.SKIP_ROUTER:
                return leave, None
            if outcome is Signal.SKIP_ROUTE:
                # Outside a route "skip the route" is just "continue"
                outcome = None
            ctx.error = outcome
            if walk_halted(ctx):
                return None
            while ctx.index < len(self._stack):
                layer = self._stack[ctx.index]
                ctx.index += 1
                if layer.handles_errors != (ctx.error is not None):
                    continue
                if allowed is not None and layer.kind is LayerKind.ROUTE:
                    if layer.pattern is None or layer.pattern.match(ctx.path) is not None:
                        allowed.update(layer.handler.allowed_methods())
                match = layer.try_match(request.method, ctx.path)
                if match is None:
                    continue

                if self.config.merge_params:
                    request.params = {**ctx.parent_params, **match.params}
                else:
                    request.params = dict(match.params)
                if layer.strips_prefix:
                    request.path = ctx.path[len(match.consumed) :] or "/"
                    request.base_path = ctx.base_path + match.consumed
                else:
                    request.path, request.base_path = ctx.path, ctx.base_path

                if self._param_hooks and match.params and ctx.error is None:
                    proceed, hook_outcome = await self._run_param_hooks(
                        request, response, match.params
                    )
                    if not proceed:
                        return None
                    if hook_outcome is not None:
                        return resume, hook_outcome
                    if walk_halted(ctx):
                        return None

                logger.debug(
                    "%s %s -> %s %s",
                    request.method,
                    request.original_path,
                    layer.kind.value,
                    layer.name,
                )
                return await layer.invoke(ctx, resume)
            return leave, ctx.error

        return await resume(None)

    async def _run_param_hooks(
        self,
        request: Request,
        response: Response,
        params: dict[str, str],
    ) -> tuple[bool, Outcome]:
        """Run the hooks registered for *params*.

        Returns ``(proceed, outcome)``. ``proceed`` is False when a hook
        returned without calling ``next``; ``outcome`` is an error or skip
        signal a hook passed to ``next``, or what it raised.
        """
        seen: dict[tuple[int, str], str] = request._cache.setdefault(_PARAM_CACHE, {})
        for name, value in params.items():
            hooks = self._param_hooks.get(name)
            key = (id(self), name)
            if not hooks or seen.get(key) == value:
                continue
            for hook in hooks:
                outcomes: list[Outcome] = []

                async def record(outcome: Outcome, outcomes: list[Outcome] = outcomes) -> None:
                    outcomes.append(outcome)

                nxt = Next(record)
                try:
                    await invoke(hook, request, response, nxt, value)
                except Exception as exc:
                    return True, exc
                await nxt.run()
                if not nxt.called:
                    return False, None
                if outcomes[0] is not None:
                    return True, outcomes[0]
            seen[key] = value
        return True, None


def _send_allow(response: Response, methods: set[str]) -> None:
    """Answer an OPTIONS request no handler answered with the allowed verbs."""
    allow = ", ".join(sorted(methods))
    response.set("Allow", allow).type("text")
    response.send(allow)
