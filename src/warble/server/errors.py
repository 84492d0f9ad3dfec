"""Final handlers — what the application does when dispatch falls through.

Two outcomes reach the application after its root router is done with a
request: nothing responded (not found), or an error is still pending.
Both produce a JSON body. The terminal error handler never raises.
"""

import logging
import traceback

from warble.errors import HTTPError, UnprocessableEntity
from warble.http.request import Request
from warble.http.response import Response, reason_phrase

logger = logging.getLogger("warble.server")

_PLAIN_500 = b"Internal Server Error"


def send_not_found(request: Request, response: Response) -> None:
    """404 for a request no layer answered."""
    logger.debug("404 %s %s — no matching layer", request.method, request.original_path)
    response.status(404)
    response.headers.remove("content-type")
    response.json({"error": "Not Found"})


def error_status(exc: BaseException) -> int:
    """HTTP status for *exc*: its own for ``HTTPError``, else 500."""
    if isinstance(exc, HTTPError) and 400 <= exc.status < 600:
        return exc.status
    return 500


def error_message(exc: BaseException, status: int, *, debug: bool) -> str:
    """The message a client may see for *exc*.

    Client errors (and everything in debug mode) expose the error message;
    server errors otherwise show only the reason phrase.
    """
    if status < 500 or debug:
        message = exc.detail if isinstance(exc, HTTPError) and exc.detail else str(exc)
    else:
        message = reason_phrase(status)
    return message or reason_phrase(status)


def error_body(exc: BaseException, status: int, *, debug: bool) -> dict[str, object]:
    """JSON body for a terminal error. Debug adds the formatted traceback."""
    body: dict[str, object] = {"error": error_message(exc, status, debug=debug)}
    if isinstance(exc, UnprocessableEntity) and exc.errors:
        body["errors"] = list(exc.errors)
    if debug:
        body["stack"] = traceback.format_exception(exc)
    return body


def send_error(exc: BaseException, request: Request, response: Response, *, debug: bool) -> None:
    """Terminal error handler. Logs *exc* and answers with its status."""
    try:
        status = error_status(exc)
        if status >= 500:
            logger.error(
                "%d %s %s",
                status,
                request.method,
                request.original_path,
                exc_info=exc,
            )
        else:
            logger.debug("%d %s %s — %s", status, request.method, request.original_path, exc)

        if response.abandoned:
            return
        if response.finished:
            logger.error(
                "Cannot report error for %s %s: response already sent",
                request.method,
                request.original_path,
            )
            return

        response.status(status)
        response.headers.remove("content-type")
        if isinstance(exc, HTTPError):
            for name, value in exc.headers:
                response.set(name, value)
        response.json(error_body(exc, status, debug=debug))
    except Exception:
        logger.critical(
            "Terminal error handler failed for %s %s",
            request.method,
            request.original_path,
            exc_info=True,
        )
        if not response.finished and not response.abandoned:
            response.status(500).type("text")
            response.end(_PLAIN_500)
