"""Custom Middleware — function and class middleware examples.

Demonstrates:
- Function middleware (timing — adds X-Response-Time after the handler ran)
- Class middleware (rate limiter — 5 req/min per IP, passes TooManyRequests on)
- rate_limit_error_handler turning that error into a 429 with Retry-After
- threading.Lock for thread-safe shared state

Run with any ASGI server, for example::

    uvicorn app:app
"""

import asyncio
import threading
import time

from warble import App, Request, Response
from warble.errors import TooManyRequests
from warble.middleware import rate_limit_error_handler

app = App()


# ---------------------------------------------------------------------------
# Function middleware: timing
# ---------------------------------------------------------------------------


async def timing(request: Request, response: Response, next) -> None:
    """Add X-Response-Time header to every response."""
    start = time.monotonic()
    await next()
    elapsed = time.monotonic() - start
    response.set("X-Response-Time", f"{elapsed:.3f}s")


# ---------------------------------------------------------------------------
# Class middleware: rate limiter
# ---------------------------------------------------------------------------


class RateLimiter:
    """Per-IP rate limiter. Passes TooManyRequests down the error walk."""

    def __init__(self, max_requests: int, window: float) -> None:
        self.max_requests = max_requests
        self.window = window
        self._counts: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def __call__(self, request: Request, response: Response, next) -> None:
        # Use X-Forwarded-For if behind a proxy; else the peer address
        client_ip = request.get("x-forwarded-for") or (request.client or ("127.0.0.1", 0))[0]
        if "," in client_ip:
            client_ip = client_ip.split(",")[0].strip()

        with self._lock:
            now = time.monotonic()
            hits = self._counts.setdefault(client_ip, [])
            hits[:] = [t for t in hits if now - t < self.window]

            if len(hits) >= self.max_requests:
                next(TooManyRequests(retry_after=int(self.window)))
                return
            hits.append(now)

        next()


# ---------------------------------------------------------------------------
# Middleware stack (runs in registration order)
# ---------------------------------------------------------------------------

app.use(timing)
app.use(RateLimiter(max_requests=5, window=60.0))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/")
def index(request, response, next):
    """Simple OK response."""
    response.type("text").send("OK")


@app.get("/slow")
async def slow(request, response, next):
    """Delayed response — verifies timing header."""
    await asyncio.sleep(0.1)
    response.type("text").send("OK")


# ---------------------------------------------------------------------------
# Error handling (after the routes)
# ---------------------------------------------------------------------------

app.use(rate_limit_error_handler())
