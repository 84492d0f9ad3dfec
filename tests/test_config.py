"""Tests for warble.config — AppConfig and RouterOptions."""

import pytest

from warble.config import AppConfig, RouterOptions


class TestAppConfig:
    def test_defaults(self) -> None:
        config = AppConfig()
        assert config.env == "development"
        assert config.debug is False
        assert config.x_powered_by is True
        assert config.view_engine == "html"

    def test_frozen(self) -> None:
        with pytest.raises(AttributeError):
            AppConfig().debug = True  # type: ignore[misc]

    def test_to_settings(self) -> None:
        settings = AppConfig(strict_routing=True).to_settings()
        assert settings["strict_routing"] is True
        assert set(settings) == {
            "env",
            "debug",
            "case_sensitive_routing",
            "strict_routing",
            "x_powered_by",
            "views",
            "view_engine",
        }


class TestRouterOptions:
    def test_defaults(self) -> None:
        options = RouterOptions()
        assert not options.case_sensitive
        assert not options.strict
        assert not options.merge_params
