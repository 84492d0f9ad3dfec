"""Tests for warble.errors — exception hierarchy and error responses."""

import pytest

from warble.errors import (
    BadRequest,
    ConfigurationError,
    DispatchError,
    HTTPError,
    InternalServerError,
    NextCalledTwice,
    NotFound,
    ResponseAlreadySent,
    TooManyRequests,
    UnprocessableEntity,
    ViewError,
    WarbleError,
)
from warble.http.request import Request
from warble.http.response import Response
from warble.server.errors import error_body, error_status, send_error


class TestHierarchy:
    def test_http_error_is_warble_error(self) -> None:
        assert issubclass(HTTPError, WarbleError)

    def test_not_found_is_http_error(self) -> None:
        assert issubclass(NotFound, HTTPError)

    def test_configuration_and_view_errors(self) -> None:
        assert issubclass(ConfigurationError, WarbleError)
        assert issubclass(ViewError, WarbleError)

    def test_dispatch_errors(self) -> None:
        assert issubclass(NextCalledTwice, DispatchError)
        assert issubclass(ResponseAlreadySent, DispatchError)


class TestHTTPError:
    def test_str_with_detail(self) -> None:
        assert str(HTTPError(status=400, detail="Bad request body")) == "400: Bad request body"

    def test_str_without_detail(self) -> None:
        assert str(HTTPError(status=500)) == "500"

    def test_frozen(self) -> None:
        err = HTTPError(status=400)
        with pytest.raises(AttributeError):
            err.status = 500  # type: ignore[misc]

    def test_expose(self) -> None:
        assert BadRequest().expose
        assert not InternalServerError().expose

    def test_retry_after(self) -> None:
        assert TooManyRequests(retry_after=5).headers == (("Retry-After", "5"),)

    def test_validation_errors(self) -> None:
        err = UnprocessableEntity(errors=("a", "b"))
        assert err.status == 422
        assert err.errors == ("a", "b")


class TestTerminalHandler:
    def test_status_from_http_error(self) -> None:
        assert error_status(NotFound()) == 404
        assert error_status(ValueError()) == 500

    def test_server_error_message_hidden(self) -> None:
        assert error_body(RuntimeError("db password"), 500, debug=False) == {
            "error": "Internal Server Error"
        }

    def test_client_error_message_shown(self) -> None:
        assert error_body(BadRequest("bad field"), 400, debug=False) == {"error": "bad field"}

    def test_debug_adds_stack(self) -> None:
        try:
            raise RuntimeError("traced")
        except RuntimeError as exc:
            body = error_body(exc, 500, debug=True)
        assert body["error"] == "traced"
        assert isinstance(body["stack"], list)

    def test_never_raises(self, caplog: pytest.LogCaptureFixture) -> None:
        class Unprintable(Exception):
            def __str__(self) -> str:
                raise RuntimeError("cannot format")

        response = Response(Request(method="GET", path="/"))
        with caplog.at_level("CRITICAL", logger="warble.server"):
            send_error(Unprintable(), response.request, response, debug=True)
        assert response.status_code == 500
        assert response.body == b"Internal Server Error"
        assert any(r.levelname == "CRITICAL" for r in caplog.records)

    def test_does_not_overwrite_sent_response(self) -> None:
        response = Response(Request(method="GET", path="/"))
        response.send("already")
        send_error(RuntimeError("late"), response.request, response, debug=False)
        assert response.body == b"already"
        assert response.status_code == 200
