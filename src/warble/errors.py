"""Warble exception hierarchy.

Shared across Router, App, handlers, and middleware so every module
raises and catches the same types.
"""

from dataclasses import dataclass


class WarbleError(Exception):
    """Base for all warble-specific errors."""


class ConfigurationError(WarbleError):
    """Raised when a route, mount, or handler registration is invalid.

    Always raised at registration time, never while serving a request.
    """


class ViewError(WarbleError):
    """Raised when a view cannot be rendered (no engine for its extension)."""


# -- Programming errors detected during dispatch --


class DispatchError(WarbleError):
    """A handler broke the dispatch contract."""


class NextCalledTwice(DispatchError):  # noqa: N818: reads as the condition it reports
    """``next`` was invoked more than once by a single handler invocation."""


class ResponseAlreadySent(DispatchError):  # noqa: N818: reads as the condition it reports
    """A terminal response operation ran after the response was finalized."""


# -- HTTP errors --


@dataclass(frozen=True, slots=True)
class HTTPError(WarbleError):
    """An error that maps directly to an HTTP status code.

    Raise it from any handler; the terminal error handler uses ``status``
    and, for client errors, exposes ``detail`` in the response body.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)

    @property
    def expose(self) -> bool:
        """True when the detail is safe to show to the client."""
        return self.status < 500


class BadRequest(HTTPError):  # noqa: N818: conventional name in web frameworks
    """400 — the request could not be understood."""

    def __init__(self, detail: str = "Bad Request") -> None:
        super().__init__(status=400, detail=detail)


class Unauthorized(HTTPError):  # noqa: N818: conventional name in web frameworks
    """401 — authentication is required."""

    def __init__(self, detail: str = "Unauthorized") -> None:
        super().__init__(status=401, detail=detail)


class Forbidden(HTTPError):  # noqa: N818: conventional name in web frameworks
    """403 — authenticated but not allowed."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(status=403, detail=detail)


class NotFound(HTTPError):  # noqa: N818: conventional name in web frameworks
    """404 — no layer produced a response for the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class Conflict(HTTPError):  # noqa: N818: conventional name in web frameworks
    """409 — the request conflicts with the current resource state."""

    def __init__(self, detail: str = "Conflict") -> None:
        super().__init__(status=409, detail=detail)


class UnprocessableEntity(HTTPError):  # noqa: N818: conventional name in web frameworks
    """422 — validation failed.

    ``errors`` carries the individual validation messages and is included
    in the terminal error response body.
    """

    errors: tuple[str, ...]

    def __init__(self, detail: str = "Validation Error", errors: tuple[str, ...] = ()) -> None:
        super().__init__(status=422, detail=detail)
        object.__setattr__(self, "errors", errors)


class TooManyRequests(HTTPError):  # noqa: N818: conventional name in web frameworks
    """429 — rate limit exceeded. Sets ``Retry-After``."""

    retry_after: int

    def __init__(self, detail: str = "Too Many Requests", retry_after: int = 60) -> None:
        super().__init__(
            status=429,
            detail=detail,
            headers=(("Retry-After", str(retry_after)),),
        )
        object.__setattr__(self, "retry_after", retry_after)


class InternalServerError(HTTPError):  # noqa: N818: conventional name in web frameworks
    """500 — explicit server-side failure."""

    def __init__(self, detail: str = "Internal Server Error") -> None:
        super().__init__(status=500, detail=detail)


class ServiceUnavailable(HTTPError):  # noqa: N818: conventional name in web frameworks
    """503 — temporarily unable to serve."""

    def __init__(self, detail: str = "Service Unavailable") -> None:
        super().__init__(status=503, detail=detail)
