"""
travel_engine/settings.py -- Tunable constants for the travel registry.

Everything that the original mod hard-coded (file names, the default
price, the watcher debounce, the evidence blacklists) lives on a single
``StoreSettings`` dataclass so that a host can override individual values
without monkeypatching module globals.

Usage::

    from travel_engine.settings import StoreSettings

    settings = StoreSettings(default_price=150)
    store = CityStore(data_dir, settings=settings)
"""

from __future__ import annotations

from dataclasses import dataclass, field

CITIES_FILE_NAME = "TravelButton_Cities.json"
BACKUP_SUFFIX = ".bak"
LEGACY_CFG_FILE_NAME = "cz.valheimskal.travelbutton.cfg"
LEGACY_CFG_SECTION = "TravelButton.Cities"

DEFAULT_PRICE = 200
WATCH_DEBOUNCE_MS = 150
MAX_EVIDENCE_TOKENS = 5000

# Generic object names that show up in every scene and say nothing about
# which destination the player is in.
EVIDENCE_BLACKLIST = frozenset({
    "main", "mainmenu", "menu", "ui", "hud", "canvas", "camera",
    "maincamera", "player", "playerchar", "light", "directionallight",
    "eventsystem", "audio", "audiosource", "manager", "managers",
    "system", "systems", "root", "terrain", "scene", "world", "default",
    "object", "gameobject", "environment", "water", "sky", "skybox",
    "clone", "prefab", "loading", "transition",
})

# Transient scenes that must never be persisted as destinations.
SCENE_BLACKLIST = frozenset({
    "MainMenu_Empty",
    "LowMemory_TransitionScene",
})


@dataclass
class StoreSettings:
    """Runtime configuration for a :class:`~travel_engine.city_store.CityStore`."""

    cities_file_name: str = CITIES_FILE_NAME
    backup_suffix: str = BACKUP_SUFFIX
    legacy_cfg_file_name: str = LEGACY_CFG_FILE_NAME
    legacy_cfg_section: str = LEGACY_CFG_SECTION
    default_price: int = DEFAULT_PRICE
    debounce_ms: int = WATCH_DEBOUNCE_MS
    max_evidence_tokens: int = MAX_EVIDENCE_TOKENS
    evidence_blacklist: frozenset[str] = field(default_factory=lambda: EVIDENCE_BLACKLIST)
    scene_blacklist: frozenset[str] = field(default_factory=lambda: SCENE_BLACKLIST)

    def is_blacklisted_scene(self, scene_name: str | None) -> bool:
        if not scene_name:
            return True
        return scene_name.strip() in self.scene_blacklist
