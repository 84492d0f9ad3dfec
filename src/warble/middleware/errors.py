"""Reusable error-handling middleware.

Each factory returns a handler ready for ``app.use(...)``. The error
handlers come tagged with ``error_handler``, so they only run while an
error is pending. A typical stack, registered after every route::

    app.use(not_found_handler())
    app.use(error_logger())
    app.use(validation_error_handler())
    app.use(rate_limit_error_handler())
    app.use(content_negotiation_error_handler(show_stack=app.enabled("debug")))

The logger, validation and rate-limit handlers pass anything they do not
answer along with ``next(error)``. The content-negotiation handler always
answers, so it belongs last.
"""

import logging
import traceback
from typing import Any

from kida import Environment

from warble._internal.types import Handler
from warble.errors import HTTPError, NotFound, TooManyRequests, UnprocessableEntity
from warble.http.request import Request
from warble.http.response import Response, reason_phrase
from warble.routing.context import Next
from warble.routing.layer import ErrorHandler, error_handler
from warble.server.errors import error_message, error_status

logger = logging.getLogger("warble.errors")

ERROR_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Error {{ status }}</title>
</head>
<body>
  <h1>{{ status }} {{ reason }}</h1>
  <p class="message">{{ message }}</p>
  {% if stack %}<pre>{{ stack }}</pre>{% end %}
  <p><a href="/">Back to home</a></p>
</body>
</html>
"""


def not_found_handler() -> Handler:
    """Turn a request no route answered into a pending ``NotFound``.

    Unlike the application's built-in 404, this sends the miss through
    the error layers registered after it.
    """

    def not_found(request: Request, response: Response, next: Next) -> None:
        next(NotFound(f"Cannot {request.method} {request.original_path}"))

    return not_found


def error_logger(log: logging.Logger | None = None, *, include_stack: bool = True) -> ErrorHandler:
    """Log the pending error and pass it on.

    Server errors are logged at ERROR (with the traceback unless
    *include_stack* is off), client errors at WARNING.
    """
    target = log or logger

    def log_error(error: BaseException, request: Request, response: Response, next: Next) -> None:
        status = error_status(error)
        args = (request.method, request.original_path, status, error)
        if status >= 500:
            target.error("%s %s - %d - %s", *args, exc_info=error if include_stack else None)
        else:
            target.warning("%s %s - %d - %s", *args)
        next(error)

    return error_handler(log_error)


def validation_error_handler() -> ErrorHandler:
    """Answer validation failures (422) with their individual messages."""

    def on_validation_error(
        error: BaseException, request: Request, response: Response, next: Next
    ) -> None:
        if not isinstance(error, UnprocessableEntity) and error_status(error) != 422:
            next(error)
            return
        response.headers.remove("content-type")
        response.status(422).json(
            {
                "error": error_message(error, 422, debug=False),
                "errors": list(getattr(error, "errors", ())),
            }
        )

    return error_handler(on_validation_error)


def rate_limit_error_handler(default_retry_after: int = 60) -> ErrorHandler:
    """Answer rate-limit errors (429) with ``Retry-After``."""

    def on_rate_limit(
        error: BaseException, request: Request, response: Response, next: Next
    ) -> None:
        if not isinstance(error, TooManyRequests) and error_status(error) != 429:
            next(error)
            return
        retry_after = getattr(error, "retry_after", default_retry_after)
        response.headers.remove("content-type")
        response.set("Retry-After", str(retry_after)).status(429)
        response.json(
            {"error": error_message(error, 429, debug=False), "retry_after": retry_after}
        )

    return error_handler(on_rate_limit)


def content_negotiation_error_handler(
    *,
    show_stack: bool = False,
    template: str = ERROR_PAGE,
) -> ErrorHandler:
    """Answer any error as HTML or JSON, whichever the client prefers.

    HTML is rendered from *template* (kida source) with ``status``,
    ``reason``, ``message`` and ``stack``; JSON is the default when the
    client states no preference. Server error messages are hidden unless
    *show_stack* is on, which also adds the traceback.
    """
    page = Environment(autoescape=True).from_string(template)

    def negotiate_error(
        error: BaseException, request: Request, response: Response, next: Next
    ) -> None:
        status = error_status(error)
        message = error_message(error, status, debug=show_stack)
        response.headers.remove("content-type")
        response.status(status)
        if isinstance(error, HTTPError):
            for name, value in error.headers:
                response.set(name, value)

        if request.accepts("json", "html") == "html":
            context: dict[str, Any] = {
                "status": status,
                "reason": reason_phrase(status),
                "message": message,
                "stack": "".join(traceback.format_exception(error)) if show_stack else "",
            }
            response.type("html").send(page.render(context))
            return

        body: dict[str, object] = {"error": message, "status": status}
        if show_stack:
            body["stack"] = traceback.format_exception(error)
        response.json(body)

    return error_handler(negotiate_error)
