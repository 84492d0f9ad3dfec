"""Fixtures for the runnable warble examples.

``example_app`` imports the ``app.py`` sitting next to the requesting
test module under a fresh module name, so module-level state such as the
``api`` item store or the rate limiter's per-client counters starts
empty for every test.
"""

import importlib.util
from pathlib import Path

import pytest

from warble import App


@pytest.fixture
def example_app(request: pytest.FixtureRequest) -> App:
    """A freshly imported ``app`` from the example under test."""
    app_file = Path(request.path).with_name("app.py")
    module_name = f"warble_example_{app_file.parent.name}"
    spec = importlib.util.spec_from_file_location(module_name, app_file)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    app = module.app
    assert isinstance(app, App)
    return app
