"""Cookie parsing and Set-Cookie serialization.

The read side (``parse_cookies``) feeds ``Request.cookies``; the write
side (``SetCookie``) backs ``Response.cookie`` and ``Response.clear_cookie``.
Signing and sessions are left to middleware.
"""

from dataclasses import dataclass
from urllib.parse import quote, unquote


def parse_cookies(header: str | None) -> dict[str, str]:
    """Parse a ``Cookie`` header value into a name-value dict.

    The first occurrence of a name wins. Values are percent-decoded.
    """
    cookies: dict[str, str] = {}
    if not header:
        return cookies
    for pair in header.split(";"):
        name, sep, value = pair.strip().partition("=")
        if not sep or not name:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        cookies.setdefault(name.strip(), unquote(value))
    return cookies


@dataclass(frozen=True, slots=True)
class SetCookie:
    """A ``Set-Cookie`` directive attached to a response."""

    name: str
    value: str
    max_age: int | None = None
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = True
    samesite: str | None = "Lax"

    def to_header_value(self) -> str:
        parts = [f"{self.name}={quote(self.value, safe='')}"]
        if self.max_age is not None:
            parts.append(f"Max-Age={self.max_age}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.secure:
            parts.append("Secure")
        if self.httponly:
            parts.append("HttpOnly")
        if self.samesite:
            parts.append(f"SameSite={self.samesite}")
        return "; ".join(parts)
