"""Warble — an ordered middleware pipeline and router for ASGI.

Handlers and middleware share one calling convention and run in the
order they were registered. Routers nest under path prefixes, errors
skip ahead to error handlers, and ``await next()`` gives middleware a
chance to act after everything downstream has run.

Basic usage::

    from warble import App

    app = App()

    @app.get("/items/:id")
    def show(request, response, next):
        response.send(request.params["id"])

Serve ``app`` with any ASGI server.
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "ErrorHandler",
    "HTTPError",
    "Next",
    "NotFound",
    "Request",
    "Response",
    "Route",
    "Router",
    "WarbleError",
    "error_handler",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import warble`` fast while providing a clean top-level API.
    """
    if name == "App":
        from warble.app import App

        return App

    if name == "AppConfig":
        from warble.config import AppConfig

        return AppConfig

    if name == "Request":
        from warble.http.request import Request

        return Request

    if name == "Response":
        from warble.http.response import Response

        return Response

    if name == "Router":
        from warble.routing.router import Router

        return Router

    if name == "Route":
        from warble.routing.route import Route

        return Route

    if name == "Next":
        from warble.routing.context import Next

        return Next

    if name in ("ErrorHandler", "error_handler"):
        from warble.routing import layer as _layer

        return getattr(_layer, name)

    if name in ("WarbleError", "ConfigurationError", "HTTPError", "NotFound"):
        from warble import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
