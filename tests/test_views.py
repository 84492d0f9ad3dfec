"""Tests for warble.views — view engines and the kida default."""

from pathlib import Path

import pytest

from warble import App, AppConfig
from warble.errors import ConfigurationError, ViewError
from warble.testing import TestClient
from warble.views import render_view, resolve_view


class TestResolveView:
    def test_default_extension_appended(self) -> None:
        assert resolve_view("index", "html") == ("index.html", "html")

    def test_explicit_extension_kept(self) -> None:
        assert resolve_view("mail/welcome.txt", "html") == ("mail/welcome.txt", "txt")

    def test_no_extension_and_no_default(self) -> None:
        with pytest.raises(ViewError):
            resolve_view("index", "")


class TestEngines:
    def test_custom_engine(self) -> None:
        app = App()
        app.engine(".txt", lambda path, context: f"{path}:{context['x']}")
        assert app.render("page.txt", {"x": 1}) == "page.txt:1"

    def test_app_locals_underneath_context(self) -> None:
        app = App()
        app.locals.update(site="Warble", x="local")
        app.engine("txt", lambda path, context: f"{context['site']}/{context['x']}")
        assert app.render("page.txt", {"x": "given"}) == "Warble/given"

    def test_missing_engine(self) -> None:
        with pytest.raises(ViewError, match="No view engine registered for '.pug'"):
            render_view({}, "index.pug", {}, default_ext="html")

    def test_engine_must_be_callable(self) -> None:
        with pytest.raises(ConfigurationError):
            App().engine("txt", "not callable")  # type: ignore[arg-type]


class TestKidaDefault:
    def test_render_html_view(self, tmp_path: Path) -> None:
        (tmp_path / "hello.html").write_text("Hello, {{ name }}!")
        app = App(AppConfig(views=tmp_path))
        assert app.render("hello", {"name": "Ada"}) == "Hello, Ada!"

    def test_autoescape(self, tmp_path: Path) -> None:
        (tmp_path / "hello.html").write_text("{{ name }}")
        app = App(AppConfig(views=tmp_path))
        assert "<b>" not in app.render("hello", {"name": "<b>bold</b>"})

    async def test_response_render(self, tmp_path: Path) -> None:
        (tmp_path / "profile.html").write_text("{{ site }}: {{ user }} ({{ role }})")
        app = App(AppConfig(views=tmp_path))
        app.locals["site"] = "Warble"

        def profile(request, response, next):
            response.locals["role"] = "admin"
            response.render("profile", {"user": request.params["name"]})

        app.get("/users/:name", profile)

        async with TestClient(app) as client:
            response = await client.get("/users/ada")

        assert response.status == 200
        assert response.text == "Warble: ada (admin)"
        assert response.content_type == "text/html; charset=utf-8"

    async def test_missing_view_is_500(self, tmp_path: Path) -> None:
        app = App(AppConfig(views=tmp_path))
        app.get("/", lambda req, res, next: res.render("nope"))

        async with TestClient(app) as client:
            response = await client.get("/")

        assert response.status == 500
