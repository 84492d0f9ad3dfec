"""Per-request dispatch state and the ``next`` continuation.

Every router (and every route) that walks a request gets its own
``DispatchContext``: the remaining path it matches against, the params
inherited from enclosing mounts, a cursor into its layer list and the
pending error, if any. Contexts are created per request and never shared.

``Next`` is what handlers receive as their last argument. Calling it asks
the walk to continue; awaiting the returned continuation runs the rest of
the chain before returning, so middleware can act after downstream
handlers. A synchronous handler may call ``next()`` without awaiting:
the walk notices the unconsumed request when the handler returns and
continues from its own loop.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable, Generator
from dataclasses import dataclass, field
from typing import Any

from warble.errors import NextCalledTwice
from warble.http.request import Request
from warble.http.response import Response

logger = logging.getLogger("warble.routing")


class Signal(enum.Enum):
    """Non-error instructions a handler can pass to ``next``."""

    SKIP_ROUTE = "route"
    SKIP_ROUTER = "router"


type Outcome = BaseException | Signal | None

# What a walk function hands back: the next walk function to call and
# the outcome to call it with, or None once the request is settled
type Step = tuple[Resume, Outcome] | None
type Resume = Callable[[Outcome], Awaitable[Step]]


async def trampoline(step: Step) -> None:
    """Run walk steps until one returns None.

    Walk functions return their successor instead of awaiting it, so a
    long chain of handlers that call ``next()`` without awaiting it runs
    here at constant stack depth. Only an awaited ``next()`` nests.
    """
    while step is not None:
        resume, outcome = step
        step = await resume(outcome)


@dataclass(slots=True)
class DispatchContext:
    """Walk state for one router or route over one request."""

    request: Request
    response: Response
    path: str
    base_path: str = ""
    parent_params: dict[str, str] = field(default_factory=dict)
    index: int = 0
    error: BaseException | None = None


def walk_halted(ctx: DispatchContext) -> bool:
    """Whether the walk must stop because the response is already settled.

    Once a response is finalized no further layer runs, in this router or
    any enclosing one. An error that surfaces after that point can no
    longer be answered; it is logged instead.
    """
    response = ctx.response
    if response.abandoned:
        logger.debug("Client gone; abandoning %s %s", ctx.request.method, ctx.request.original_path)
        return True
    if response.finished:
        if ctx.error is not None:
            logger.error(
                "Error after response was sent for %s %s",
                ctx.request.method,
                ctx.request.original_path,
                exc_info=ctx.error,
            )
        return True
    return False


_IDLE, _REQUESTED, _RAN = range(3)


class Next:
    """The continuation handed to one handler invocation.

    ``await next()`` — continue with the following matching layer.
    ``await next(exc)`` — switch to the error walk with *exc* pending.
    ``await next.route()`` — skip the remaining handlers of this route.
    ``await next.router()`` — leave the current router.

    Each invocation may request its continuation once. A second request
    is logged and raises ``NextCalledTwice``; the cursor is never touched.
    """

    __slots__ = ("_resume", "_signal", "_state")

    def __init__(self, resume: Resume) -> None:
        self._resume = resume
        self._signal: Outcome = None
        self._state = _IDLE

    def __call__(self, error: BaseException | None = None) -> Continuation:
        if error is not None and not isinstance(error, BaseException):
            msg = f"next() accepts an exception or nothing, got {type(error).__name__}"
            raise TypeError(msg)
        return self._request(error)

    def route(self) -> Continuation:
        return self._request(Signal.SKIP_ROUTE)

    def router(self) -> Continuation:
        return self._request(Signal.SKIP_ROUTER)

    def _request(self, signal: Outcome) -> Continuation:
        if self._state != _IDLE:
            logger.error("next() called more than once by the same handler invocation")
            msg = "next() was called more than once by the same handler invocation."
            raise NextCalledTwice(msg)
        self._state = _REQUESTED
        self._signal = signal
        return Continuation(self)

    @property
    def called(self) -> bool:
        return self._state != _IDLE

    @property
    def pending(self) -> bool:
        """Requested but not yet run."""
        return self._state == _REQUESTED

    @property
    def ran(self) -> bool:
        return self._state == _RAN

    async def run(self) -> None:
        """Run the requested continuation, at most once."""
        if self._state != _REQUESTED:
            return
        self._state = _RAN
        await trampoline((self._resume, self._signal))

    def take(self) -> Outcome:
        """Hand a requested continuation to the caller's loop instead of running it."""
        self._state = _RAN
        return self._signal

    def discard(self) -> None:
        """Drop a requested continuation (the handler failed after asking for it)."""
        self._state = _RAN


class Continuation:
    """Awaitable returned by ``next(...)``."""

    __slots__ = ("_next",)

    def __init__(self, owner: Next) -> None:
        self._next = owner

    def __await__(self) -> Generator[Any, None, None]:
        return self._next.run().__await__()
