"""Tests for warble.middleware.errors — the reusable error-handling stack."""

import logging

import pytest

from warble import App
from warble.errors import BadRequest, TooManyRequests, UnprocessableEntity
from warble.middleware import (
    content_negotiation_error_handler,
    error_logger,
    not_found_handler,
    rate_limit_error_handler,
    validation_error_handler,
)
from warble.routing.layer import ErrorHandler
from warble.testing import TestClient


def _app_raising(error: BaseException) -> App:
    app = App()

    def fail(request, response, next):
        raise error

    app.get("/fail", fail)
    return app


class TestNotFoundHandler:
    async def test_miss_flows_through_error_layers(self) -> None:
        app = App()
        app.get("/known", lambda req, res, next: res.send("known"))
        app.use(not_found_handler())
        app.use(content_negotiation_error_handler())

        async with TestClient(app) as client:
            response = await client.get("/nope")

        assert response.status == 404
        assert response.json() == {"error": "Cannot GET /nope", "status": 404}

    def test_is_a_normal_handler(self) -> None:
        assert not isinstance(not_found_handler(), ErrorHandler)


class TestErrorLogger:
    async def test_server_error_logged_and_passed_on(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        app = _app_raising(RuntimeError("disk on fire"))
        app.use(error_logger())

        with caplog.at_level(logging.WARNING, logger="warble.errors"):
            async with TestClient(app) as client:
                response = await client.get("/fail")

        assert response.status == 500
        records = [r for r in caplog.records if r.name == "warble.errors"]
        assert [r.levelno for r in records] == [logging.ERROR]
        assert records[0].message == "GET /fail - 500 - disk on fire"
        assert records[0].exc_info is not None

    async def test_client_error_is_a_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        app = _app_raising(BadRequest("missing name"))
        app.use(error_logger(include_stack=False))

        with caplog.at_level(logging.WARNING, logger="warble.errors"):
            async with TestClient(app) as client:
                response = await client.get("/fail")

        assert response.status == 400
        records = [r for r in caplog.records if r.name == "warble.errors"]
        assert [r.levelno for r in records] == [logging.WARNING]

    async def test_custom_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        app = _app_raising(RuntimeError("boom"))
        app.use(error_logger(logging.getLogger("myapp.errors"), include_stack=False))

        with caplog.at_level(logging.ERROR, logger="myapp.errors"):
            async with TestClient(app) as client:
                await client.get("/fail")

        records = [r for r in caplog.records if r.name == "myapp.errors"]
        assert len(records) == 1
        assert not records[0].exc_info


class TestValidationErrorHandler:
    async def test_answers_validation_errors(self) -> None:
        app = _app_raising(UnprocessableEntity(errors=("name is required", "age must be positive")))
        app.use(validation_error_handler())

        async with TestClient(app) as client:
            response = await client.get("/fail")

        assert response.status == 422
        assert response.json() == {
            "error": "Validation Error",
            "errors": ["name is required", "age must be positive"],
        }

    async def test_passes_other_errors_on(self) -> None:
        app = _app_raising(BadRequest("nope"))
        app.use(validation_error_handler())

        async with TestClient(app) as client:
            response = await client.get("/fail")

        assert response.status == 400
        assert response.json() == {"error": "nope"}


class TestRateLimitErrorHandler:
    async def test_sets_retry_after(self) -> None:
        app = _app_raising(TooManyRequests(retry_after=15))
        app.use(rate_limit_error_handler())

        async with TestClient(app) as client:
            response = await client.get("/fail")

        assert response.status == 429
        assert response.header("retry-after") == "15"
        assert response.json() == {"error": "Too Many Requests", "retry_after": 15}

    async def test_passes_other_errors_on(self) -> None:
        app = _app_raising(RuntimeError("boom"))
        app.use(rate_limit_error_handler())

        async with TestClient(app) as client:
            response = await client.get("/fail")

        assert response.status == 500
        assert response.header("retry-after") is None


class TestContentNegotiationErrorHandler:
    async def test_json_by_default(self) -> None:
        app = _app_raising(RuntimeError("secret internals"))
        app.use(content_negotiation_error_handler())

        async with TestClient(app) as client:
            response = await client.get("/fail")

        assert response.status == 500
        assert response.content_type == "application/json"
        assert response.json() == {"error": "Internal Server Error", "status": 500}

    async def test_html_for_browsers(self) -> None:
        app = _app_raising(BadRequest("bad <input>"))
        app.use(content_negotiation_error_handler())
        accept = "text/html,application/xhtml+xml,*/*;q=0.8"

        async with TestClient(app) as client:
            response = await client.get("/fail", headers={"Accept": accept})

        assert response.status == 400
        assert response.content_type == "text/html; charset=utf-8"
        assert "400 Bad Request" in response.text
        assert "bad <input>" not in response.text
        assert "<pre>" not in response.text

    async def test_json_when_preferred(self) -> None:
        app = _app_raising(BadRequest("bad input"))
        app.use(content_negotiation_error_handler())

        async with TestClient(app) as client:
            response = await client.get("/fail", headers={"Accept": "application/json"})

        assert response.json() == {"error": "bad input", "status": 400}

    async def test_show_stack(self) -> None:
        app = _app_raising(RuntimeError("secret internals"))
        app.use(content_negotiation_error_handler(show_stack=True))

        async with TestClient(app) as client:
            response = await client.get("/fail")

        body = response.json()
        assert body["error"] == "secret internals"
        assert any("RuntimeError" in line for line in body["stack"])

    async def test_custom_template(self) -> None:
        app = _app_raising(BadRequest("bad input"))
        app.use(content_negotiation_error_handler(template="<p>{{ status }}: {{ message }}</p>"))

        async with TestClient(app) as client:
            response = await client.get("/fail", headers={"Accept": "text/html"})

        assert response.text == "<p>400: bad input</p>"

    async def test_http_error_headers_applied(self) -> None:
        app = _app_raising(TooManyRequests(retry_after=5))
        app.use(content_negotiation_error_handler())

        async with TestClient(app) as client:
            response = await client.get("/fail")

        assert response.status == 429
        assert response.header("retry-after") == "5"


class TestFullStack:
    async def test_handlers_compose(self, caplog: pytest.LogCaptureFixture) -> None:
        app = App()

        def validate(request, response, next):
            next(UnprocessableEntity(errors=("title is required",)))

        app.post("/posts", validate)
        app.use(not_found_handler())
        app.use(error_logger())
        app.use(validation_error_handler())
        app.use(rate_limit_error_handler())
        app.use(content_negotiation_error_handler())

        with caplog.at_level(logging.WARNING, logger="warble.errors"):
            async with TestClient(app) as client:
                invalid = await client.post("/posts")
                missing = await client.get("/posts/1")

        assert invalid.status == 422
        assert invalid.json()["errors"] == ["title is required"]
        assert missing.status == 404
        assert missing.json() == {"error": "Cannot GET /posts/1", "status": 404}
        assert len([r for r in caplog.records if r.name == "warble.errors"]) == 2
