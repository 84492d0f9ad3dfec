"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable.
It seeds the mutable ``App.settings`` mapping, which is what routers and
views read at runtime.
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, strict_routing=True)
    """

    env: str = "development"
    debug: bool = False

    # Routing defaults read by routers created through the app
    case_sensitive_routing: bool = False
    strict_routing: bool = False

    # Responses
    x_powered_by: bool = True

    # Views
    views: str | Path = "views"
    view_engine: str = "html"

    def to_settings(self) -> dict[str, Any]:
        """Return the initial contents of ``App.settings``."""
        return asdict(self)


@dataclass(frozen=True, slots=True)
class RouterOptions:
    """Per-router matching options, fixed when the router is constructed.

    ``case_sensitive`` and ``strict`` are baked into every pattern the
    router compiles; changing app settings later does not alter them.
    ``merge_params`` lets a mounted router see its parent's path params.
    """

    case_sensitive: bool = False
    strict: bool = False
    merge_params: bool = False
