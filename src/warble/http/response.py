"""Per-request HTTP response object.

Builders (``status``, ``set``, ``type``, ``cookie``) are chainable and may
be called any number of times. Terminal operations (``send``, ``json``,
``end``, ``send_status``, ``redirect``, ``render``, ``send_file``) finalize
the response: the first one wins, a second one is reported and rejected.

Terminal operations only buffer the final message; the application writes
it to the listener once dispatch is over. That keeps them synchronous, so
``def`` and ``async def`` handlers share one API.
"""

from __future__ import annotations

import json as json_module
import logging
import mimetypes
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from warble.errors import ResponseAlreadySent
from warble.http.cookies import SetCookie
from warble.http.headers import MutableHeaders

if TYPE_CHECKING:
    from warble.app import App
    from warble.http.request import Request

logger = logging.getLogger("warble.server")

_SHORT_TYPES: dict[str, str] = {
    "html": "text/html; charset=utf-8",
    "text": "text/plain; charset=utf-8",
    "json": "application/json",
    "bin": "application/octet-stream",
}

_REASONS: dict[int, str] = {
    200: "OK",
    201: "Created",
    202: "Accepted",
    204: "No Content",
    301: "Moved Permanently",
    302: "Found",
    303: "See Other",
    304: "Not Modified",
    307: "Temporary Redirect",
    308: "Permanent Redirect",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


def reason_phrase(status: int) -> str:
    return _REASONS.get(status, str(status))


class Response:
    """An HTTP response under construction.

    Usage::

        def show(request, response, next):
            response.status(201).set("X-Id", "7").json({"id": "7"})
    """

    __slots__ = (
        "_abandoned",
        "_body",
        "_finished",
        "_status",
        "app",
        "headers",
        "locals",
        "request",
    )

    def __init__(self, request: Request | None = None, app: App | None = None) -> None:
        self.request = request
        self.app = app
        self.headers = MutableHeaders()
        self.locals: dict[str, Any] = {}
        self._status = 200
        self._body = b""
        self._finished = False
        self._abandoned = False

    def __repr__(self) -> str:
        state = "finished" if self._finished else "open"
        return f"<Response {self._status} {state}>"

    # -- State --

    @property
    def status_code(self) -> int:
        return self._status

    @property
    def body(self) -> bytes:
        return self._body

    @property
    def finished(self) -> bool:
        """True once a terminal operation has run."""
        return self._finished

    @property
    def headers_sent(self) -> bool:
        return self._finished

    @property
    def abandoned(self) -> bool:
        """True when the client went away; further writes are no-ops."""
        return self._abandoned

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    def abandon(self) -> None:
        """Mark the connection as dropped."""
        self._abandoned = True

    # -- Chainable builders --

    def status(self, code: int) -> Response:
        self._status = code
        return self

    def set(self, name: str, value: str) -> Response:
        self.headers.set(name, value)
        return self

    def set_headers(self, headers: Mapping[str, str]) -> Response:
        self.headers.update(headers)
        return self

    def append(self, name: str, value: str) -> Response:
        self.headers.append(name, value)
        return self

    def get(self, name: str) -> str | None:
        return self.headers.get(name)

    def type(self, content_type: str) -> Response:
        """Set Content-Type. Accepts short names (``json``) or extensions (``.css``)."""
        if content_type in _SHORT_TYPES:
            value = _SHORT_TYPES[content_type]
        elif "/" not in content_type:
            guessed, _ = mimetypes.guess_type(f"x.{content_type.lstrip('.')}")
            value = guessed or _SHORT_TYPES["bin"]
        else:
            value = content_type
        return self.set("Content-Type", value)

    def cookie(
        self,
        name: str,
        value: str,
        *,
        max_age: int | None = None,
        path: str = "/",
        domain: str | None = None,
        secure: bool = False,
        httponly: bool = True,
        samesite: str | None = "Lax",
    ) -> Response:
        cookie = SetCookie(
            name=name,
            value=value,
            max_age=max_age,
            path=path,
            domain=domain,
            secure=secure,
            httponly=httponly,
            samesite=samesite,
        )
        return self.append("Set-Cookie", cookie.to_header_value())

    def clear_cookie(self, name: str, path: str = "/") -> Response:
        cookie = SetCookie(name, "", max_age=0, path=path)
        return self.append("Set-Cookie", cookie.to_header_value())

    # -- Terminal operations --

    def _finalize(self, body: bytes) -> None:
        if self._abandoned:
            return
        if self._finished:
            method = self.request.method if self.request else "?"
            path = self.request.original_path if self.request else "?"
            logger.error("Response for %s %s finalized twice", method, path)
            msg = (
                f"Response for {method} {path} was already sent; "
                "a handler must finalize the response at most once."
            )
            raise ResponseAlreadySent(msg)
        self._body = body
        self._finished = True

    def send(self, body: Any = None) -> None:
        """Finalize with *body*.

        ``str`` defaults to HTML, ``bytes`` to octet-stream, ``dict`` and
        ``list`` are serialized as JSON. An explicit Content-Type wins.
        """
        if body is None:
            self.end()
            return
        if isinstance(body, dict | list):
            self.json(body)
            return
        if isinstance(body, str):
            if self.content_type is None:
                self.type("html")
            self._finalize(body.encode("utf-8"))
            return
        if isinstance(body, bytes | bytearray | memoryview):
            if self.content_type is None:
                self.type("bin")
            self._finalize(bytes(body))
            return
        self.send(str(body))

    def json(self, obj: Any) -> None:
        if self.content_type is None:
            self.type("json")
        self._finalize(json_module.dumps(obj).encode("utf-8"))

    def end(self, body: bytes | str = b"") -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._finalize(body)

    def send_status(self, code: int) -> None:
        self.status(code)
        if self.content_type is None:
            self.type("text")
        self._finalize(reason_phrase(code).encode("utf-8"))

    def redirect(self, url: str, status: int = 302) -> None:
        self.status(status).set("Location", url)
        if self.content_type is None:
            self.type("text")
        self._finalize(f"{reason_phrase(status)}. Redirecting to {url}".encode())

    def render(self, view: str, context: Mapping[str, Any] | None = None) -> None:
        """Render *view* through the app's view engines and send it as HTML."""
        if self.app is None:
            msg = "Response.render() needs an app; the response was not created by App.handle()."
            raise RuntimeError(msg)
        html = self.app.render(view, {**self.locals, **(context or {})})
        self.send(html)

    def send_file(self, path: str | Path, *, content_type: str | None = None) -> None:
        """Send a file from disk. Content type is guessed from the extension."""
        file_path = Path(path)
        data = file_path.read_bytes()
        if content_type is None:
            guessed, _ = mimetypes.guess_type(file_path.name)
            content_type = guessed or _SHORT_TYPES["bin"]
        self.type(content_type)
        self._finalize(data)
