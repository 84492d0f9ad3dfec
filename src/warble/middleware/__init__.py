"""Middleware — reusable handlers for ``app.use(...)``.

Error handling:
    not_found_handler -- turn an unanswered request into a pending NotFound
    error_logger -- log the pending error and pass it on
    validation_error_handler -- 422 with the individual validation messages
    rate_limit_error_handler -- 429 with Retry-After
    content_negotiation_error_handler -- HTML or JSON, chosen by Accept
"""

from warble.middleware.errors import (
    ERROR_PAGE,
    content_negotiation_error_handler,
    error_logger,
    not_found_handler,
    rate_limit_error_handler,
    validation_error_handler,
)

__all__ = [
    "ERROR_PAGE",
    "content_negotiation_error_handler",
    "error_logger",
    "not_found_handler",
    "rate_limit_error_handler",
    "validation_error_handler",
]
