"""View rendering — extension-keyed engines with a kida default.

An engine is any callable ``(path, context) -> str``. The app keeps one
per file extension; ``.html`` views use a kida Environment over the
``views`` directory unless the application registers its own engine.
"""

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from kida import Environment, FileSystemLoader

from warble.errors import ViewError

type ViewEngine = Callable[[str, Mapping[str, Any]], str]


def create_environment(views: str | Path, *, debug: bool = False) -> Environment:
    """Create the kida Environment used by the default ``.html`` engine."""
    return Environment(
        loader=FileSystemLoader(str(views)),
        autoescape=True,
        auto_reload=debug,
    )


class KidaEngine:
    """Default engine: renders a view path relative to the views directory."""

    __slots__ = ("_debug", "_env", "views")

    def __init__(self, views: str | Path, *, debug: bool = False) -> None:
        self.views = Path(views)
        self._env: Environment | None = None
        self._debug = debug

    def __call__(self, path: str, context: Mapping[str, Any]) -> str:
        if self._env is None:
            self._env = create_environment(self.views, debug=self._debug)
        template = self._env.get_template(path)
        return template.render(dict(context))


def resolve_view(name: str, default_ext: str) -> tuple[str, str]:
    """Split *name* into ``(template_path, extension)``.

    A name without an extension gets ``default_ext`` appended.
    """
    suffix = Path(name).suffix
    if suffix:
        return name, suffix.lstrip(".")
    ext = default_ext.lstrip(".")
    if not ext:
        msg = f"View {name!r} has no extension and no default view engine is set."
        raise ViewError(msg)
    return f"{name}.{ext}", ext


def render_view(
    engines: Mapping[str, ViewEngine],
    name: str,
    context: Mapping[str, Any],
    *,
    default_ext: str,
) -> str:
    """Render *name* with the engine registered for its extension."""
    path, ext = resolve_view(name, default_ext)
    engine = engines.get(ext)
    if engine is None:
        msg = f"No view engine registered for '.{ext}' (rendering {name!r})."
        raise ViewError(msg)
    return engine(path, context)
