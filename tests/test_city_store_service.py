"""
Tests for travel_app/services/city_store_service.py -- signals, serialized
mutations and reloads on external changes.
"""

import json
import time
from unittest.mock import MagicMock

import pytest

from travel_app.services.city_store_service import CityStoreService
from travel_engine.city_store import CityStore


def _pump(app, condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not condition() and time.monotonic() < deadline:
        app.processEvents()
        time.sleep(0.001)
    return condition()


@pytest.fixture
def service(qapp, data_dir):
    svc = CityStoreService(CityStore(str(data_dir)), watch=False)
    yield svc
    svc.deleteLater()


class TestCityStoreService:
    def test_start_loads_and_emits(self, qapp, service):
        changed = MagicMock()
        service.cities_changed.connect(changed)
        service.start()
        assert _pump(qapp, lambda: changed.called)
        assert len(service.store.list()) == 6

    def test_start_runs_legacy_migration(self, qapp, service):
        with open(service.store.legacy_cfg_path, "w", encoding="utf-8") as fh:
            fh.write("Levant.Visited = true\n")
        visited = MagicMock()
        service.visited_changed.connect(visited)
        service.start()
        assert _pump(qapp, lambda: visited.called)
        visited.assert_called_once_with("Levant")
        assert service.store.find("Levant").visited

    def test_mark_visited_emits_and_saves(self, qapp, service):
        service.start()
        service.task_queue.drain()
        visited = MagicMock()
        saved = MagicMock()
        service.visited_changed.connect(visited)
        service.store_saved.connect(saved)

        service.mark_visited("Berg")
        assert _pump(qapp, lambda: saved.called)
        visited.assert_called_once_with("Berg")
        with open(service.store.cities_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        assert [c["name"] for c in data["cities"] if c["visited"]] == ["Berg"]

    def test_unknown_city_reports_error(self, qapp, service):
        service.start()
        errors = MagicMock()
        service.store_error.connect(errors)
        service.mark_visited("Atlantis")
        assert _pump(qapp, lambda: errors.called)
        assert "Atlantis" in errors.call_args[0][0]

    def test_external_change_reloads(self, qapp, service):
        service.start()
        service.mark_visited("Berg")
        service.task_queue.drain()

        with open(service.store.cities_path, "w", encoding="utf-8") as fh:
            json.dump({"cities": [{"name": "Berg", "visited": True}, {"name": "Vendavel"}]}, fh)

        service._on_file_changed(service.store.cities_path)
        service.task_queue.drain()
        assert service.store.find("Vendavel") is not None

    def test_own_write_does_not_reload(self, qapp, service):
        service.start()
        service.mark_visited("Berg")
        service.task_queue.drain()

        changed = MagicMock()
        service.cities_changed.connect(changed)
        service._on_file_changed(service.store.cities_path)
        service.task_queue.drain()
        changed.assert_not_called()
