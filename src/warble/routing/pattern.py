"""Route pattern compilation.

A route pattern is compiled once, at registration time, into a
``PathPattern`` that tests request paths and extracts parameters.

Pattern syntax::

    /users                 literal segments
    /users/:id             named parameter (one segment, no "/")
    /users/:id(\\d+)        parameter constrained by a regex
    /posts/:slug?          optional trailing segment
    /files/:path*          rest parameter (one or more trailing segments)
    /static/*              anonymous rest, bound as "*"
    *                      every path

Literals match case-insensitively and ignore a trailing slash unless the
router asked for ``case_sensitive`` / ``strict``. Prefix patterns
(middleware and mounts) match on segment boundaries and report how much
of the path they consumed.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from urllib.parse import unquote

from warble.errors import ConfigurationError

_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Anonymous rest parameters bind under this key
WILDCARD = "*"


@dataclass(frozen=True, slots=True)
class PathMatch:
    """Result of a successful match.

    ``consumed`` is the part of the path the pattern covered. For a prefix
    match it is what an enclosing mount strips before nested dispatch.
    """

    params: dict[str, str]
    consumed: str


@dataclass(frozen=True, slots=True)
class _Param:
    name: str
    group: str
    rest: bool


@dataclass(frozen=True, slots=True)
class PathPattern:
    """A compiled route pattern."""

    source: str
    regex: re.Pattern[str]
    end: bool
    _params: tuple[_Param, ...] = field(repr=False)

    @property
    def keys(self) -> tuple[str, ...]:
        """Parameter names in the order they appear in the pattern."""
        return tuple(p.name for p in self._params)

    def match(self, path: str) -> PathMatch | None:
        """Test *path*; return the bound params, or None. Never raises."""
        m = self.regex.match(path or "/")
        if m is None:
            return None
        params: dict[str, str] = {}
        for param in self._params:
            raw = m.group(param.group)
            if raw is None:
                continue
            if not param.rest and "/" in raw:
                return None
            params[param.name] = decode_param(raw)
        consumed = m.group(0)
        if not self.end:
            consumed = consumed.rstrip("/")
        return PathMatch(params=params, consumed=consumed)

    def test(self, path: str) -> bool:
        return self.match(path) is not None


def decode_param(value: str) -> str:
    """Percent-decode a captured value once; undecodable input is kept as-is."""
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


def _read_constraint(pattern: str, start: int) -> tuple[str, int]:
    """Read a balanced ``(...)`` group starting at *start*; return body and end index."""
    depth = 0
    i = start
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return pattern[start + 1 : i], i + 1
        i += 1
    msg = f"Unbalanced parenthesis in route pattern {pattern!r}."
    raise ConfigurationError(msg)


@lru_cache(maxsize=1024)
def compile_pattern(
    pattern: str,
    *,
    end: bool = True,
    case_sensitive: bool = False,
    strict: bool = False,
) -> PathPattern:
    """Compile *pattern* into a ``PathPattern``.

    Args:
        pattern: Route pattern (see module docstring).
        end: Match the whole path (routes) instead of a prefix (middleware, mounts).
        case_sensitive: Match literal segments case-sensitively.
        strict: Treat a trailing slash as significant.

    Raises:
        ConfigurationError: The pattern is malformed — it does not start
            with ``/``, repeats a parameter name, has more than one rest
            parameter, or contains an invalid constraint.
    """
    if pattern in ("*", "/*"):
        regex = re.compile(r"^/(?P<p0>.*)$", re.DOTALL)
        return PathPattern(pattern, regex, True, (_Param(WILDCARD, "p0", rest=True),))

    if not pattern.startswith("/"):
        msg = f"Route pattern {pattern!r} must start with '/'."
        raise ConfigurationError(msg)

    body = pattern
    if not strict or not end:
        body = body.rstrip("/")

    parts: list[str] = []
    params: list[_Param] = []
    rests = 0
    i = 0
    while i < len(body):
        ch = body[i]
        name_match = _NAME.match(body, i + 1) if ch == ":" else None

        if name_match is not None:
            name = name_match.group(0)
            i = name_match.end()
            value_re = "[^/]+"
            if i < len(body) and body[i] == "(":
                value_re, i = _read_constraint(body, i)
            modifier = body[i] if i < len(body) and body[i] in "?*" else ""
            i += len(modifier)

            if any(p.name == name for p in params):
                msg = f"Duplicate parameter {name!r} in route pattern {pattern!r}."
                raise ConfigurationError(msg)
            if modifier == "*":
                rests += 1
                value_re = ".+"
            group = f"p{len(params)}"
            params.append(_Param(name, group, rest=modifier == "*"))
            capture = f"(?P<{group}>(?:{value_re}))"

            if modifier == "?":
                if parts and parts[-1] == "/":
                    parts[-1] = f"(?:/{capture})?"
                else:
                    parts.append(f"{capture}?")
            else:
                parts.append(capture)
            continue

        if ch == "*":
            rests += 1
            group = f"p{len(params)}"
            params.append(_Param(WILDCARD, group, rest=True))
            parts.append(f"(?P<{group}>.+)")
            i += 1
            continue

        parts.append("/" if ch == "/" else re.escape(ch))
        i += 1

    if rests > 1:
        msg = f"Route pattern {pattern!r} has more than one rest parameter."
        raise ConfigurationError(msg)

    source = "".join(parts)
    if end:
        source = f"^{source}/?$" if not strict else f"^{source}$"
        if strict and pattern == "/":
            source = "^/$"
    else:
        source = f"^{source}(?=/|$)"

    flags = re.DOTALL if case_sensitive else re.IGNORECASE | re.DOTALL
    try:
        regex = re.compile(source, flags)
    except re.error as exc:
        msg = f"Invalid constraint in route pattern {pattern!r}: {exc}"
        raise ConfigurationError(msg) from exc
    return PathPattern(pattern, regex, end, tuple(params))
