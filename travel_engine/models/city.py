"""
travel_engine/models/city.py -- City Record and Canonical Document models.

``CityRecord`` is the one record type used by every part of the registry.
All coercion of foreign or legacy shapes happens here, in the model
validators, so the rest of the engine can rely on:

    - ``name`` being a non-empty, immutable string;
    - ``variants`` always being a list and ``last_known_variant`` always a
      string (never ``None``);
    - ``coords`` being either ``None`` or a 3-tuple rounded to 3 decimals;
    - ``price`` being either ``None`` (inherit the global default) or a
      non-negative integer.

Python attribute names are snake_case; the on-disk JSON keys are the
original camelCase names and are used as aliases.  Unknown keys are kept
(``extra='allow'``) and written back unchanged.

Usage::

    from travel_engine.models.city import CityRecord

    rec = CityRecord.model_validate({"name": "Berg", "sceneName": "Berg"})
    rec.to_document()   # -> ordered dict in file format
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

COORD_DECIMALS = 3

# Legacy per-record keys folded into ``variants`` on load.
_LEGACY_VARIANT_KEYS = ("variantNormalName", "variantDestroyedName")


def _coerce_coords(value: Any) -> Any:
    """Accept list/tuple, {x, y, z} mappings and "x,y,z" strings."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        lowered = {str(k).lower(): v for k, v in value.items()}
        try:
            return (lowered["x"], lowered["y"], lowered["z"])
        except KeyError as exc:
            raise ValueError(f"coords mapping is missing axis {exc.args[0]!r}") from exc
    if isinstance(value, str):
        text = value.strip().strip("()[]")
        if not text:
            return None
        parts = [p.strip() for p in text.split(",")]
        if len(parts) < 3:
            raise ValueError(f"coords string needs three components: {value!r}")
        return tuple(parts[:3])
    if isinstance(value, (list, tuple)):
        if len(value) < 3:
            raise ValueError(f"coords needs three components, got {len(value)}")
        return tuple(value[:3])
    return value


class CityRecord(BaseModel):
    """A single travel destination."""

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        validate_assignment=True,
    )

    name: str = Field(min_length=1, frozen=True)
    scene_id: Optional[str] = Field(default=None, alias="sceneName")
    coords: Optional[tuple[float, float, float]] = None
    price: Optional[int] = None
    anchor_id: Optional[str] = Field(default=None, alias="targetGameObjectName")
    desc: Optional[str] = None
    enabled: bool = False
    visited: bool = False
    variants: list[str] = Field(default_factory=list)
    last_known_variant: str = Field(default="", alias="lastKnownVariant")

    # ------------------------------------------------------------------
    # Input coercion
    # ------------------------------------------------------------------

    @model_validator(mode="before")
    @classmethod
    def _absorb_legacy_variant_fields(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        normal, destroyed = (data.pop(key, None) for key in _LEGACY_VARIANT_KEYS)
        if data.get("variants"):
            return data
        legacy = [v.strip() for v in (normal, destroyed) if isinstance(v, str) and v.strip()]
        if not legacy:
            return data
        data["variants"] = legacy
        has_last_known = data.get("lastKnownVariant") or data.get("last_known_variant")
        if not has_last_known and isinstance(normal, str) and normal.strip():
            data["lastKnownVariant"] = normal.strip()
        return data

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("coords", mode="before")
    @classmethod
    def _coords_before(cls, value: Any) -> Any:
        return _coerce_coords(value)

    @field_validator("coords")
    @classmethod
    def _round_coords(cls, value: Optional[tuple[float, float, float]]):
        if value is None:
            return None
        if not all(math.isfinite(c) for c in value):
            raise ValueError("coords must be finite numbers")
        return tuple(round(c, COORD_DECIMALS) for c in value)

    @field_validator("price")
    @classmethod
    def _negative_price_means_default(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            return None
        return value

    @field_validator("variants", mode="before")
    @classmethod
    def _materialize_variants(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple)):
            seen: list[str] = []
            for item in value:
                if not isinstance(item, str):
                    raise ValueError(f"variant names must be strings, got {item!r}")
                item = item.strip()
                if item and item not in seen:
                    seen.append(item)
            return seen
        return value

    @field_validator("last_known_variant", mode="before")
    @classmethod
    def _materialize_last_known(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        """Return the record in on-disk key order, extras appended."""
        data: dict[str, Any] = {
            "name": self.name,
            "sceneName": self.scene_id,
            "coords": list(self.coords) if self.coords is not None else None,
            "price": self.price,
            "targetGameObjectName": self.anchor_id,
            "desc": self.desc,
            "enabled": self.enabled,
            "visited": self.visited,
            "variants": list(self.variants),
            "lastKnownVariant": self.last_known_variant,
        }
        for key, value in (self.model_extra or {}).items():
            data.setdefault(key, value)
        return data

    def merged(self, partial: Mapping[str, Any]) -> CityRecord:
        """Return a new validated record with *partial* applied.

        Keys may be python attribute names or JSON aliases.  Raises
        ``KeyError`` for unknown fields, ``ValueError`` for an attempt to
        rename, and ``pydantic.ValidationError`` for invalid values.
        """
        data = self.to_document()
        for key, value in partial.items():
            json_key = field_json_key(key)
            if json_key is None:
                raise KeyError(key)
            if json_key == "name" and value != self.name:
                raise ValueError(f"City name is immutable ({self.name!r} -> {value!r})")
            data[json_key] = value
        return CityRecord.model_validate(data)

    def describe(self) -> str:
        flags = []
        if self.enabled:
            flags.append("enabled")
        if self.visited:
            flags.append("visited")
        return f"{self.name} [{', '.join(flags) or '-'}]"


def field_json_key(key: str) -> str | None:
    """Map a python attribute name or JSON key to the JSON key, or None."""
    for attr, info in CityRecord.model_fields.items():
        alias = info.alias or attr
        if key in (attr, alias):
            return alias
    return None


class CityDocument(BaseModel):
    """The whole canonical file: ordered cities plus unknown top-level keys."""

    model_config = ConfigDict(extra="allow")

    cities: list[CityRecord] = Field(default_factory=list)

    def names(self) -> list[str]:
        return [c.name for c in self.cities]

    def to_document(self) -> dict[str, Any]:
        data: dict[str, Any] = {"cities": [c.to_document() for c in self.cities]}
        for key, value in (self.model_extra or {}).items():
            data.setdefault(key, value)
        return data
