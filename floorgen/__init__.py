"""
project: floorgen
module: __init__.py

Configuration factory and public re-exports.

Generation settings are sourced from environment variables (a local `.env`
is honoured through python-dotenv) and can be overridden per process by
pushing the context of a Flask app built with `create_app()`. The generator
only reads `current_app.config`; no routes or extensions are registered.
"""

import os

from dotenv import load_dotenv
from flask import Flask

# Load .env if present so FLOOR_* settings can be supplied without exporting
# shell variables during development.
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() not in {"0", "false", "no", ""}


def create_app(**overrides) -> Flask:
    """Return a Flask app whose config carries the floor generation settings.

    Keyword overrides are applied last, e.g. ``create_app(FLOOR_MAX_ATTEMPTS=3)``.
    """
    app = Flask(__name__)
    app.config.update(
        FLOOR_MAX_ATTEMPTS=int(os.getenv("FLOOR_MAX_ATTEMPTS", "10")),
        FLOOR_ENABLE_GENERATION_METRICS=_env_flag("FLOOR_ENABLE_GENERATION_METRICS", "1"),
        FLOOR_FORCE_REACHABILITY=_env_flag("FLOOR_FORCE_REACHABILITY", "0"),
    )
    app.config.update(overrides)
    return app


from floorgen.dungeon import (  # noqa: E402
    Floor,
    FloorGenerator,
    FloorProperties,
    Layout,
    SeededRandom,
    generate_floor,
)

__all__ = [
    "create_app",
    "Floor",
    "FloorGenerator",
    "FloorProperties",
    "Layout",
    "SeededRandom",
    "generate_floor",
]
