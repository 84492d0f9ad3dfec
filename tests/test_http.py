"""Tests for warble.http — headers, query strings, cookies and content negotiation."""

import pytest

from warble.http.cookies import SetCookie, parse_cookies
from warble.http.headers import Headers, MutableHeaders
from warble.http.query import QueryParams
from warble.http.request import Request


def _h(*pairs: tuple[str, str]) -> Headers:
    """Shorthand: build Headers from string pairs."""
    raw = tuple((k.encode("latin-1"), v.encode("latin-1")) for k, v in pairs)
    return Headers(raw)


class TestHeaders:
    def test_case_insensitive(self) -> None:
        h = _h(("Content-Type", "text/html"))
        assert h["content-type"] == "text/html"
        assert h["CONTENT-TYPE"] == "text/html"

    def test_missing_key_raises(self) -> None:
        with pytest.raises(KeyError):
            _h(("Accept", "*/*"))["X-Missing"]

    def test_contains_rejects_non_str(self) -> None:
        assert 42 not in _h(("Accept", "*/*"))  # type: ignore[operator]

    def test_get_list(self) -> None:
        h = _h(("Accept", "a"), ("Accept", "b"))
        assert h.get_list("accept") == ["a", "b"]
        assert len(h) == 1


class TestMutableHeaders:
    def test_set_replaces_any_case(self) -> None:
        h = MutableHeaders()
        h.set("X-A", "1")
        h.set("x-a", "2")
        assert list(h) == [("x-a", "2")]

    def test_remove(self) -> None:
        h = MutableHeaders()
        h.append("Vary", "Accept")
        h.append("vary", "Cookie")
        h.remove("VARY")
        assert len(h) == 0
        assert "vary" not in h


class TestQueryParams:
    def test_first_value_and_list(self) -> None:
        q = QueryParams(b"tag=a&tag=b&empty=")
        assert q["tag"] == "a"
        assert q.get_list("tag") == ["a", "b"]
        assert q["empty"] == ""

    def test_str_is_raw(self) -> None:
        assert str(QueryParams("a=1&b=2")) == "a=1&b=2"


class TestCookies:
    def test_parse(self) -> None:
        assert parse_cookies('a=1; b="two"; c=x%20y') == {"a": "1", "b": "two", "c": "x y"}

    def test_first_occurrence_wins(self) -> None:
        assert parse_cookies("a=1; a=2") == {"a": "1"}

    def test_empty(self) -> None:
        assert parse_cookies(None) == {}
        assert parse_cookies("garbage") == {}

    def test_set_cookie_header(self) -> None:
        cookie = SetCookie("sid", "abc", secure=True, samesite="Strict", domain="example.com")
        assert cookie.to_header_value() == (
            "sid=abc; Path=/; Domain=example.com; Secure; HttpOnly; SameSite=Strict"
        )


class TestAccepts:
    def _request(self, accept: str | None) -> Request:
        headers = _h(("Accept", accept)) if accept is not None else Headers()
        return Request(method="GET", path="/", headers=headers)

    def test_no_header_picks_first(self) -> None:
        assert self._request(None).accepts("json", "html") == "json"

    def test_exact_match(self) -> None:
        assert self._request("text/html").accepts("json", "html") == "html"
        assert self._request("application/json").accepts("html", "json") == "json"

    def test_nothing_acceptable(self) -> None:
        assert self._request("image/png").accepts("json", "html") is None

    def test_quality_decides(self) -> None:
        browser = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
        assert self._request(browser).accepts("json", "html") == "html"

    def test_tie_goes_to_first(self) -> None:
        assert self._request("*/*").accepts("html", "json") == "html"

    def test_zero_quality_refuses(self) -> None:
        assert self._request("application/json;q=0, */*").accepts("json") is None

    def test_subtype_wildcard_and_full_types(self) -> None:
        request = self._request("text/*;q=0.5, application/xml")
        assert request.accepts("text/plain") == "text/plain"
        assert request.accepts("application/xml", "text") == "application/xml"

    def test_extension(self) -> None:
        assert self._request("text/css").accepts("css") == "css"

    def test_requires_a_type(self) -> None:
        with pytest.raises(TypeError):
            self._request(None).accepts()
