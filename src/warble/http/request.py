"""Per-request HTTP request object.

Unlike the metadata it carries, the request is not frozen: the dispatch
walk rewrites ``path``, ``base_path`` and ``params`` as it descends into
mounted routers, and middleware may fill ``body``.
"""

from __future__ import annotations

import json as json_module
import mimetypes
from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from warble._internal.asgi import Receive, Scope
from warble.http.cookies import parse_cookies
from warble.http.headers import Headers
from warble.http.query import QueryParams

if TYPE_CHECKING:
    from warble.app import App


async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@dataclass(slots=True, eq=False)
class Request:
    """An HTTP request as seen by handlers.

    ``path`` is relative to the router currently walking the request;
    ``base_path`` is the prefix consumed by enclosing mounts, so
    ``base_path + path`` is always the ``original_path`` (modulo the
    root ``"/"``).

    ``params`` holds percent-decoded strings only; no type coercion
    ever happens. ``body`` is an opaque slot for body-parsing middleware.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query: QueryParams = field(default_factory=QueryParams)
    original_path: str = ""
    base_path: str = ""
    params: dict[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    client: tuple[str, int] | None = None
    body: Any = None
    app: App | None = field(default=None, repr=False)

    # Private: ASGI receive callable for body streaming
    _receive: Receive = field(default=_empty_receive, repr=False)

    # Private: per-request scratch space (raw body cache, param hooks already run)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        if not self.original_path:
            self.original_path = self.path

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def is_json(self) -> bool:
        ct = self.content_type or ""
        return ct.split(";", 1)[0].strip().endswith("json")

    @property
    def url(self) -> str:
        """Original path plus query string."""
        qs = str(self.query)
        if qs:
            return f"{self.original_path}?{qs}"
        return self.original_path

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return a request header (case-insensitive)."""
        return self.headers.get(name, default)

    def accepts(self, *types: str) -> str | None:
        """Return whichever of *types* the Accept header prefers, or None.

        Types are short names (``json``, ``html``, ``text``), extensions
        (``css``) or full media types, and are returned as given. The
        most specific matching range decides a type's quality; ties go
        to the earlier type. Without an Accept header the first type wins.
        """
        if not types:
            msg = "accepts() needs at least one type"
            raise TypeError(msg)
        header = self.headers.get("accept")
        if not header:
            return types[0]
        ranges = _parse_accept(header)
        best: str | None = None
        best_q = 0.0
        for candidate in types:
            q = _quality(_media_type(candidate), ranges)
            if q > best_q:
                best, best_q = candidate, q
        return best

    # -- Async body access --

    async def read(self) -> bytes:
        """Read the full raw request body.

        Cached — the receive channel is consumed once.
        """
        if "_raw_body" not in self._cache:
            self._cache["_raw_body"] = b"".join([chunk async for chunk in self.stream()])
        return self._cache["_raw_body"]

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            if message.get("type") == "http.disconnect":
                break
            chunk = message.get("body", b"")
            if chunk:
                yield chunk
            if not message.get("more_body", False):
                break

    async def text(self) -> str:
        raw = await self.read()
        return raw.decode("utf-8")

    async def json(self) -> Any:
        raw = await self.read()
        return json_module.loads(raw)

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Build a Request from an ASGI ``http`` scope.

        The path comes from ``raw_path`` when the server supplies it, so
        parameter values are percent-decoded exactly once, by the matcher.
        Otherwise the decoded ``path`` is quoted again, ``%`` included, so
        the matcher's single decode gives back exactly what the server saw.
        """
        raw_path = scope.get("raw_path")
        if raw_path:
            path = raw_path.decode("latin-1").split("?", 1)[0]
        else:
            path = quote(scope["path"], safe="/:@!$&'()*+,;=-._~")
        headers = Headers(scope.get("headers", ()))
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=path or "/",
            headers=headers,
            query=QueryParams(scope.get("query_string", b"")),
            cookies=parse_cookies(headers.get("cookie")),
            client=tuple(client) if client else None,
            _receive=receive,
        )


_SHORT_MEDIA_TYPES: dict[str, str] = {
    "html": "text/html",
    "json": "application/json",
    "text": "text/plain",
}


def _media_type(name: str) -> str:
    if name in _SHORT_MEDIA_TYPES:
        return _SHORT_MEDIA_TYPES[name]
    if "/" in name:
        return name.lower()
    guessed, _ = mimetypes.guess_type(f"x.{name.lstrip('.')}")
    return guessed or "application/octet-stream"


def _parse_accept(header: str) -> list[tuple[str, float]]:
    """``(media range, quality)`` pairs; malformed entries are skipped."""
    ranges: list[tuple[str, float]] = []
    for part in header.split(","):
        media, *params = (piece.strip() for piece in part.split(";"))
        if "/" not in media:
            continue
        q = 1.0
        for param in params:
            key, _, value = param.partition("=")
            if key.strip().lower() == "q":
                try:
                    q = float(value)
                except ValueError:
                    q = -1.0
        if 0.0 <= q <= 1.0:
            ranges.append((media.lower(), q))
    return ranges


def _quality(media_type: str, ranges: list[tuple[str, float]]) -> float:
    main = media_type.split("/", 1)[0]
    best_specificity, best_q = -1, 0.0
    for media, q in ranges:
        if media == media_type:
            specificity = 2
        elif media == f"{main}/*":
            specificity = 1
        elif media == "*/*":
            specificity = 0
        else:
            continue
        if specificity > best_specificity:
            best_specificity, best_q = specificity, q
    return best_q
