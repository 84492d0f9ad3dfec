"""Warble application class.

An App owns the root router, the settings table, the view engines and
the lifespan hooks. It is also the ASGI callable: every ``http`` scope
becomes a Request/Response pair that is walked through the root router,
then written back to the listener in one piece.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from warble._internal.asgi import Receive, Scope, Send
from warble._internal.types import ParamHook
from warble.config import AppConfig
from warble.errors import ConfigurationError
from warble.http.request import Request
from warble.http.response import Response
from warble.routing.route import Route, flatten_handlers
from warble.routing.router import Router
from warble.server.errors import send_error, send_not_found
from warble.server.sender import send_response
from warble.views import KidaEngine, ViewEngine, render_view

logger = logging.getLogger("warble.server")


class App:
    """The warble application.

    Usage::

        app = App()

        @app.get("/items/:id")
        def show(request, response, next):
            response.send(request.params["id"])

    Settings are a plain mutable mapping seeded from ``AppConfig``.
    Routing settings are read when a router is created (the root router
    is created on first registration), so changing them afterwards does
    not affect existing routers.
    """

    __slots__ = (
        "_engines",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
        "locals",
        "mountpath",
        "parent",
        "settings",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self.settings: dict[str, Any] = self.config.to_settings()
        self.locals: dict[str, Any] = {}
        self.parent: App | None = None
        self.mountpath = "/"
        self._router: Router | None = None
        self._engines: dict[str, ViewEngine] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []

    def __repr__(self) -> str:
        return f"<App mountpath={self.mountpath!r}>"

    # -- Settings --

    def set(self, name: str, value: Any) -> App:
        self.settings[name] = value
        return self

    def setting(self, name: str, default: Any = None) -> Any:
        return self.settings.get(name, default)

    def enable(self, name: str) -> App:
        return self.set(name, True)

    def disable(self, name: str) -> App:
        return self.set(name, False)

    def enabled(self, name: str) -> bool:
        return bool(self.settings.get(name))

    def disabled(self, name: str) -> bool:
        return not self.settings.get(name)

    # -- Routers --

    def create_router(
        self,
        *,
        case_sensitive: bool | None = None,
        strict: bool | None = None,
        merge_params: bool = False,
    ) -> Router:
        """Build a Router whose matching defaults come from the current settings."""
        if case_sensitive is None:
            case_sensitive = self.enabled("case_sensitive_routing")
        if strict is None:
            strict = self.enabled("strict_routing")
        return Router(case_sensitive=case_sensitive, strict=strict, merge_params=merge_params)

    @property
    def router(self) -> Router:
        """The root router, created on first use."""
        if self._router is None:
            self._router = self.create_router()
        return self._router

    def path(self) -> str:
        """Full mount path of this app; empty for the top-level app."""
        if self.parent is None:
            return ""
        return self.parent.path() + self.mountpath

    # -- Registration (forwarded to the root router) --

    def use(self, *args: Any) -> App:
        """Add middleware, error handlers, routers or sub-apps.

        A sub-app is mounted through its root router: requests that no
        layer of the sub-app answers continue in this app.
        """
        handlers = list(args)
        prefix = [handlers.pop(0)] if handlers and isinstance(handlers[0], str) else []
        mountpath = prefix[0] if prefix else "/"
        resolved: list[Any] = []
        sub_apps: list[App] = []
        for handler in flatten_handlers(handlers):
            if isinstance(handler, App):
                if handler is self:
                    msg = "An app cannot be mounted on itself."
                    raise ConfigurationError(msg)
                sub_apps.append(handler)
                resolved.append(handler.router)
            else:
                resolved.append(handler)
        self.router.use(*prefix, *resolved)
        for sub_app in sub_apps:
            sub_app.parent = self
            sub_app.mountpath = mountpath
        return self

    def use_error(self, *args: Any) -> App:
        self.router.use_error(*args)
        return self

    def route(self, pattern: str) -> Route:
        return self.router.route(pattern)

    def param(self, name: str, hook: ParamHook) -> App:
        self.router.param(name, hook)
        return self

    def _verb(self, name: str, pattern: str, handlers: tuple[Any, ...]) -> Any:
        result = getattr(self.router, name)(pattern, *handlers)
        return self if handlers else result

    def get(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("get", pattern, handlers)

    def post(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("post", pattern, handlers)

    def put(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("put", pattern, handlers)

    def patch(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("patch", pattern, handlers)

    def delete(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("delete", pattern, handlers)

    def head(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("head", pattern, handlers)

    def options(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("options", pattern, handlers)

    def all(self, pattern: str, *handlers: Any) -> Any:
        return self._verb("all", pattern, handlers)

    # -- Views --

    def engine(self, ext: str, render: ViewEngine) -> App:
        """Register a view engine for files ending in ``.ext``."""
        if not callable(render):
            msg = f"View engine for {ext!r} must be callable, got {type(render).__name__}."
            raise ConfigurationError(msg)
        self._engines[ext.lstrip(".")] = render
        return self

    def render(self, name: str, context: dict[str, Any] | None = None) -> str:
        """Render view *name* with ``app.locals`` underneath *context*."""
        if "html" not in self._engines:
            self._engines["html"] = KidaEngine(
                Path(self.settings["views"]),
                debug=self.enabled("debug"),
            )
        return render_view(
            self._engines,
            name,
            {**self.locals, **(context or {})},
            default_ext=self.settings.get("view_engine") or "",
        )

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup.
        """
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator."""
        self._shutdown_hooks.append(func)
        return func

    async def startup(self) -> None:
        for hook in self._startup_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    async def shutdown(self) -> None:
        for hook in self._shutdown_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    # -- Request entry --

    async def handle(self, request: Request, response: Response) -> None:
        """Dispatch one request through the root router.

        Listener-agnostic: the ASGI entry point and tests both call this.
        On return the response is finalized (or abandoned).
        """
        request.app = self
        response.app = self
        response.request = request
        debug = self.enabled("debug")
        if self.enabled("x_powered_by"):
            response.set("X-Powered-By", "warble")

        async def final(error: BaseException | None) -> None:
            if error is None:
                send_not_found(request, response)
            else:
                send_error(error, request, response, debug=debug)

        try:
            await self.router.handle(request, response, final)
        except Exception as exc:
            send_error(exc, request, response, debug=debug)

        if not response.finished and not response.abandoned:
            logger.warning(
                "%s %s: no handler responded or called next; closing with %d",
                request.method,
                request.original_path,
                response.status_code,
            )
            response.end()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            logger.debug("Ignoring unsupported ASGI scope type %r", scope["type"])
            return

        request = Request.from_asgi(scope, receive)
        response = Response(request, self)
        await self.handle(request, response)
        await send_response(response, send, head=request.method == "HEAD")

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol."""
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    logger.exception("Startup hook failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                try:
                    await self.shutdown()
                except Exception as exc:
                    logger.exception("Shutdown hook failed")
                    await send({"type": "lifespan.shutdown.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.shutdown.complete"})
                return
