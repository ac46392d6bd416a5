"""
travel_engine/models/ -- Pydantic v2 models for the travel registry.

Submodules:
    city        CityRecord and CityDocument (file format, coercion).
    validators  Semantic checks for observed scene-variant names.
"""

from travel_engine.models.city import CityDocument, CityRecord

__all__ = ["CityDocument", "CityRecord"]
