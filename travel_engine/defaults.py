"""
travel_engine/defaults.py -- Compiled-in destinations.

Used when the cities file does not exist yet, is empty, or could not be
read at all.  Every call returns fresh record objects so callers may
mutate them freely.
"""

from __future__ import annotations

from travel_engine.models.city import CityRecord
from travel_engine.settings import DEFAULT_PRICE

_DEFAULT_CITIES = [
    ("Cierzo", "CierzoNewTerrain", (1410.3, 6.7, 1665.6), "Cierzo - starting village", True),
    ("Berg", "Berg", (1039.0, 20.0, 1189.0), "Berg - mountain city", True),
    ("Monsoon", "Monsoon", (800.0, 5.0, 1300.0), "Monsoon - coastal town", True),
    ("Levant", "Levant", (600.0, 10.0, 900.0), "Levant - desert city", True),
    ("Harmattan", "Harmattan", (500.0, 15.0, 700.0), "Harmattan - oasis settlement", True),
    ("Sirocco", "NewSirocco", (400.0, 8.0, 600.0),
     "Sirocco - under construction (temporarily disabled)", False),
]


def default_cities(price: int = DEFAULT_PRICE) -> list[CityRecord]:
    """Return the six default destinations, all unvisited, at *price*."""
    return [
        CityRecord(
            name=name,
            scene_id=scene,
            coords=coords,
            price=price,
            anchor_id=name,
            desc=desc,
            enabled=enabled,
            visited=False,
            variants=[],
            last_known_variant="",
        )
        for name, scene, coords, desc, enabled in _DEFAULT_CITIES
    ]


def default_city_names() -> list[str]:
    return [entry[0] for entry in _DEFAULT_CITIES]
