"""
travel_app/paths.py -- Data directory resolution.

Uses platformdirs for the per-user data directory.  The
``TRAVEL_REGISTRY_HOME`` environment variable overrides it (handy for
portable installs and for pointing the CLI at a game's config folder).
"""

from __future__ import annotations

import os

from platformdirs import user_data_dir

from travel_engine.settings import CITIES_FILE_NAME, LEGACY_CFG_FILE_NAME

_APP_NAME = "TravelRegistry"
_APP_AUTHOR = "TravelButton"

ENV_HOME = "TRAVEL_REGISTRY_HOME"


def get_user_data_dir() -> str:
    """Return the platform-appropriate user data directory."""
    path = user_data_dir(_APP_NAME, _APP_AUTHOR)
    os.makedirs(path, exist_ok=True)
    return path


def get_data_dir(override: str | None = None) -> str:
    """Resolve the directory holding the cities file.

    Priority: explicit *override*, then ``$TRAVEL_REGISTRY_HOME``, then the
    platformdirs user data directory.
    """
    path = override or os.environ.get(ENV_HOME) or get_user_data_dir()
    path = os.path.abspath(os.path.expanduser(path))
    os.makedirs(path, exist_ok=True)
    return path


def get_cities_json_path(data_dir: str | None = None) -> str:
    return os.path.join(get_data_dir(data_dir), CITIES_FILE_NAME)


def get_legacy_cfg_path(data_dir: str | None = None) -> str:
    return os.path.join(get_data_dir(data_dir), LEGACY_CFG_FILE_NAME)
