"""
Shared pytest fixtures for the travel registry test suite.

Provides:
    - data_dir: an empty temporary data directory
    - cities_path / backup_path: canonical file and backup locations in it
    - sample_document: a small canonical document (dict) with one unknown key
    - write_document: helper writing a dict (or raw text) as the cities file
    - loaded_store: a CityStore loaded from an empty dir (six defaults)
    - qapp: a QCoreApplication for the Qt service tests
"""

import json
import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Ensure the packages are importable regardless of where pytest is invoked
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from travel_engine.city_store import CityStore  # noqa: E402
from travel_engine.settings import BACKUP_SUFFIX, CITIES_FILE_NAME  # noqa: E402


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def data_dir(tmp_path):
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture
def cities_path(data_dir):
    return str(data_dir / CITIES_FILE_NAME)


@pytest.fixture
def backup_path(cities_path):
    return cities_path + BACKUP_SUFFIX


@pytest.fixture
def sample_document():
    """A canonical document with two cities and an unknown top-level key."""
    return {
        "cities": [
            {
                "name": "Cierzo",
                "sceneName": "CierzoNewTerrain",
                "coords": [1410.3, 6.7, 1665.6],
                "price": 200,
                "targetGameObjectName": "Cierzo",
                "desc": "Cierzo - starting village",
                "enabled": True,
                "visited": False,
                "variants": ["Cierzo", "CierzoDestroyed"],
                "lastKnownVariant": "Cierzo",
            },
            {
                "name": "Berg",
                "sceneName": "Berg",
                "coords": None,
                "price": None,
                "targetGameObjectName": "Berg",
                "desc": None,
                "enabled": True,
                "visited": False,
                "variants": [],
                "lastKnownVariant": "",
                "note": "kept verbatim",
            },
        ],
        "schemaVersion": 3,
    }


@pytest.fixture
def write_document(cities_path):
    """Return a helper that writes a dict (as JSON) or raw text to *path*."""
    def _write(content, path=None):
        target = path or cities_path
        with open(target, "w", encoding="utf-8") as fh:
            if isinstance(content, str):
                fh.write(content)
            else:
                json.dump(content, fh, indent=2)
        return target
    return _write


@pytest.fixture
def loaded_store(data_dir):
    store = CityStore(str(data_dir))
    store.load()
    return store


@pytest.fixture
def qapp():
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app

