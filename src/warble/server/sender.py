"""ASGI response sending — translates a finalized Response to ASGI messages.

Dispatch only buffers the response; this is the single place that
writes it to the listener. A failed write means the peer went away: the
response is marked abandoned and nothing is retried.
"""

import logging

from warble._internal.asgi import Send
from warble.http.response import Response

logger = logging.getLogger("warble.server")


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def raw_headers(response: Response, body_length: int) -> list[tuple[bytes, bytes]]:
    """Encode response headers, replacing any stale content-length."""
    headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in response.headers
        if name.lower() != "content-length"
    ]
    headers.append((b"content-length", str(body_length).encode("latin-1")))
    return headers


async def send_response(response: Response, send: Send, *, head: bool = False) -> None:
    """Translate a warble Response into ASGI send() calls.

    HEAD responses report the length of the body they would have carried
    but send none.
    """
    if response.abandoned:
        return
    status = response.status_code
    body = response.body if _body_allowed(status) else b""
    try:
        await send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": raw_headers(response, len(body)),
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": b"" if head else body,
            }
        )
    except OSError:
        logger.debug("Client disconnected while sending %d response", status)
        response.abandon()
